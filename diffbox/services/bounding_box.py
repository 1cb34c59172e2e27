"""
差异包围盒检测核心服务

对两张尺寸相同的图片逐像素计算归一化颜色距离，超过阈值的像素通过
4 邻域泛洪填充聚成连通区域，每个区域生成一个包围盒；再经过噪声过滤、
相接/重叠包围盒合并，最终按面积从大到小返回。

整个过程是同步的纯计算，不保存任何跨调用状态。
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Callable, Iterable, Iterator, Optional, Protocol

import numpy as np

from .. import config
from ..errors import DimensionMismatch

logger = logging.getLogger(__name__)

# alpha 通道的权重只有颜色通道的一半
ALPHA_WEIGHT = 0.5
MAX_DISTANCE = math.sqrt(3 * 255**2 + (ALPHA_WEIGHT * 255) ** 2)

# 4 邻域：右、左、下、上
NEIGHBORS = ((1, 0), (-1, 0), (0, 1), (0, -1))

Pixel = tuple[int, int, int, int]
DistanceFn = Callable[[int, int], float]


class ImageView(Protocol):
    """只读图片视图：宽、高以及按坐标读取 RGBA 像素"""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def get_pixel(self, x: int, y: int) -> Pixel: ...


class RgbaImage:
    """基于 numpy (H, W, 4) uint8 数组的图片视图"""

    def __init__(self, pixels: np.ndarray):
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"需要 (H, W, 4) 的 RGBA 数组，实际为 {pixels.shape}")
        if pixels.dtype != np.uint8:
            if pixels.size and (pixels.min() < 0 or pixels.max() > 255):
                raise ValueError("RGBA 通道值必须在 [0, 255] 范围内")
            pixels = pixels.astype(np.uint8)
        self.pixels = pixels

    @classmethod
    def filled(cls, width: int, height: int, color: Pixel) -> "RgbaImage":
        """创建纯色图片"""
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = color
        return cls(pixels)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    def get_pixel(self, x: int, y: int) -> Pixel:
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)


@dataclass
class BoundingBox:
    """差异包围盒"""

    x: int
    y: int
    width: int
    height: int
    diff_score: float
    pixels: int

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def touches(self, other: "BoundingBox") -> bool:
        """两个矩形重叠或边界相接（包含边界）"""
        return (
            self.x <= other.right
            and self.right >= other.x
            and self.y <= other.bottom
            and self.bottom >= other.y
        )

    def merge(self, other: "BoundingBox") -> "BoundingBox":
        """合并为并集矩形，差异分数按像素数加权平均"""
        x = min(self.x, other.x)
        y = min(self.y, other.y)
        pixels = self.pixels + other.pixels
        return BoundingBox(
            x=x,
            y=y,
            width=max(self.right, other.right) - x,
            height=max(self.bottom, other.bottom) - y,
            diff_score=(self.diff_score * self.pixels + other.diff_score * other.pixels) / pixels,
            pixels=pixels,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DiffRequest:
    """
    差异检测请求

    参数不会因越界而报错：threshold 被截断到 [0, 1]，
    两个整数参数小于 0 时按 0 处理，缺省时各自取默认值。
    """

    image_a: ImageView
    image_b: ImageView
    threshold: Optional[float] = None
    min_box_area: Optional[int] = None
    min_cluster_pixels: Optional[int] = None

    def __post_init__(self):
        threshold = self.threshold
        if threshold is None or math.isnan(threshold):
            threshold = config.DEFAULT_THRESHOLD
        self.threshold = min(max(float(threshold), 0.0), 1.0)

        if self.min_box_area is None:
            self.min_box_area = config.DEFAULT_MIN_BOX_AREA
        self.min_box_area = max(int(self.min_box_area), 0)

        if self.min_cluster_pixels is None:
            self.min_cluster_pixels = config.DEFAULT_MIN_CLUSTER_PIXELS
        self.min_cluster_pixels = max(int(self.min_cluster_pixels), 0)


@dataclass
class DiffResponse:
    """差异检测结果"""

    image_width: int
    image_height: int
    boxes: list[BoundingBox] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "boxes": [box.to_dict() for box in self.boxes],
            "image_width": self.image_width,
            "image_height": self.image_height,
        }


def color_distance(px_a: Pixel, px_b: Pixel) -> float:
    """
    计算两个 RGBA 像素的归一化距离。

    在 (ΔR, ΔG, ΔB, 0.5·ΔA) 上取欧氏距离，再除以该加权距离的最大值，
    结果落在 [0, 1]，相同像素为 0。
    """
    dr = px_a[0] - px_b[0]
    dg = px_a[1] - px_b[1]
    db = px_a[2] - px_b[2]
    da = (px_a[3] - px_b[3]) * ALPHA_WEIGHT
    return math.sqrt(dr * dr + dg * dg + db * db + da * da) / MAX_DISTANCE


def distance_map(image_a: RgbaImage, image_b: RgbaImage) -> np.ndarray:
    """对整张图片向量化计算逐像素距离，返回 (H, W) 的 float64 数组"""
    diff = image_a.pixels.astype(np.float64) - image_b.pixels.astype(np.float64)
    diff[..., 3] *= ALPHA_WEIGHT
    return np.sqrt(np.sum(diff * diff, axis=2)) / MAX_DISTANCE


def _distance_lookup(image_a: ImageView, image_b: ImageView) -> DistanceFn:
    """返回按坐标取像素距离的函数"""
    if isinstance(image_a, RgbaImage) and isinstance(image_b, RgbaImage):
        grid = distance_map(image_a, image_b).tolist()
        return lambda x, y: grid[y][x]

    def lookup(x: int, y: int) -> float:
        return color_distance(image_a.get_pixel(x, y), image_b.get_pixel(x, y))

    return lookup


def extract_regions(
    distance_at: DistanceFn,
    width: int,
    height: int,
    threshold: float,
    min_box_area: int = 0,
    min_cluster_pixels: int = 0,
) -> Iterator[BoundingBox]:
    """
    按行扫描差异图，对每个未访问且超过阈值的像素做泛洪填充。

    算法要点：
    - visited 位图记录已访问像素，每个像素只会作为种子被考察一次
    - 使用显式栈而不是递归，避免大区域导致调用栈过深
    - 邻居超过阈值时入栈；未超过阈值的邻居同样标记为已访问，但不扩展、
      不计入区域的像素数和差异总和
    - 像素数不足 min_cluster_pixels 或包围盒面积不足 min_box_area 的区域
      视为噪声直接丢弃

    Args:
        distance_at: 按 (x, y) 返回像素距离的函数
        width: 图片宽度
        height: 图片高度
        threshold: 像素距离阈值，严格大于该值才算差异像素
        min_box_area: 最小包围盒面积
        min_cluster_pixels: 最小连通像素数

    Yields:
        通过噪声过滤的包围盒，diff_score 为区域内差异像素距离的平均值
    """
    visited = bytearray(width * height)

    for y in range(height):
        for x in range(width):
            idx = y * width + x
            if visited[idx]:
                continue
            visited[idx] = 1
            if distance_at(x, y) <= threshold:
                continue

            min_x = max_x = x
            min_y = max_y = y
            pixels = 0
            sum_diff = 0.0
            stack = [(x, y)]

            while stack:
                cx, cy = stack.pop()
                sum_diff += distance_at(cx, cy)
                pixels += 1
                if cx < min_x:
                    min_x = cx
                elif cx > max_x:
                    max_x = cx
                if cy < min_y:
                    min_y = cy
                elif cy > max_y:
                    max_y = cy

                for dx, dy in NEIGHBORS:
                    nx = cx + dx
                    ny = cy + dy
                    if nx < 0 or ny < 0 or nx >= width or ny >= height:
                        continue
                    n_idx = ny * width + nx
                    if visited[n_idx]:
                        continue
                    visited[n_idx] = 1
                    if distance_at(nx, ny) > threshold:
                        stack.append((nx, ny))

            box_width = max_x - min_x + 1
            box_height = max_y - min_y + 1
            if pixels >= min_cluster_pixels and box_width * box_height >= min_box_area:
                yield BoundingBox(
                    x=min_x,
                    y=min_y,
                    width=box_width,
                    height=box_height,
                    diff_score=sum_diff / pixels,
                    pixels=pixels,
                )


def merge_boxes(boxes: Iterable[BoundingBox]) -> list[BoundingBox]:
    """
    合并重叠或相接的包围盒，直到任意两个包围盒都不再相交。

    每次合并后新矩形可能与其他包围盒相接，因此合并一次就从头重新扫描。
    """
    merged = list(boxes)
    changed = True

    while changed:
        changed = False
        for i in range(len(merged)):
            for j in range(i + 1, len(merged)):
                if merged[i].touches(merged[j]):
                    merged[i] = merged[i].merge(merged[j])
                    del merged[j]
                    changed = True
                    break
            if changed:
                break

    return merged


def consolidate_boxes(boxes: Iterable[BoundingBox]) -> list[BoundingBox]:
    """合并包围盒并按面积从大到小排序"""
    merged = merge_boxes(boxes)
    merged.sort(key=lambda box: box.area, reverse=True)
    return merged


def compute_diff_bounding_boxes(request: DiffRequest) -> DiffResponse:
    """
    计算两张图片的差异包围盒

    Raises:
        DimensionMismatch: 两张图片宽高不一致，在读取任何像素之前抛出
    """
    image_a, image_b = request.image_a, request.image_b
    width, height = image_a.width, image_a.height
    if (width, height) != (image_b.width, image_b.height):
        raise DimensionMismatch((width, height), (image_b.width, image_b.height))

    distance_at = _distance_lookup(image_a, image_b)
    candidates = list(
        extract_regions(
            distance_at,
            width,
            height,
            request.threshold,
            min_box_area=request.min_box_area,
            min_cluster_pixels=request.min_cluster_pixels,
        )
    )
    boxes = consolidate_boxes(candidates)

    logger.debug(
        "diff %dx%d threshold=%.3f: %d candidate regions, %d boxes",
        width,
        height,
        request.threshold,
        len(candidates),
        len(boxes),
    )
    return DiffResponse(image_width=width, image_height=height, boxes=boxes)


def find_diff_boxes(
    image_a: ImageView,
    image_b: ImageView,
    threshold: Optional[float] = None,
    min_box_area: Optional[int] = None,
    min_cluster_pixels: Optional[int] = None,
) -> DiffResponse:
    """compute_diff_bounding_boxes 的关键字参数版本"""
    return compute_diff_bounding_boxes(
        DiffRequest(
            image_a=image_a,
            image_b=image_b,
            threshold=threshold,
            min_box_area=min_box_area,
            min_cluster_pixels=min_cluster_pixels,
        )
    )
