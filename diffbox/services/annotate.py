"""
差异结果可视化
在图片上标记包围盒、生成差异热力图
"""

import base64
from typing import Sequence

import cv2
import numpy as np

from .bounding_box import BoundingBox, RgbaImage, distance_map


def image_to_base64(img: np.ndarray, format: str = ".png") -> str:
    """将图片转换为 base64 字符串"""
    ok, buffer = cv2.imencode(format, img)
    if not ok:
        raise ValueError(f"无法编码图片: {format}")
    return base64.b64encode(buffer).decode("utf-8")


def to_bgr(image: RgbaImage) -> np.ndarray:
    """RGBA 视图转为 OpenCV 使用的 BGR 数组"""
    return cv2.cvtColor(image.pixels, cv2.COLOR_RGBA2BGR)


def draw_boxes(
    img: np.ndarray,
    boxes: Sequence[BoundingBox],
    color: tuple = (0, 0, 255),
    thickness: int = 2,
) -> np.ndarray:
    """
    用矩形标记差异包围盒，并在左上方绘制序号

    Args:
        img: BGR 格式的图片
        boxes: 包围盒列表
        color: 标记颜色
        thickness: 线条粗细
    """
    result = img.copy()
    h, w = result.shape[:2]
    font = cv2.FONT_HERSHEY_SIMPLEX

    for i, box in enumerate(boxes):
        # 矩形右下角是包含的像素坐标
        x1, y1 = box.x, box.y
        x2 = min(w - 1, box.right - 1)
        y2 = min(h - 1, box.bottom - 1)
        cv2.rectangle(result, (x1, y1), (x2, y2), color, thickness)

        text = str(i + 1)
        text_y = y1 - 4 if y1 >= 14 else min(h - 2, y2 + 14)
        cv2.putText(result, text, (max(0, x1), text_y), font, 0.45, color, 1)

    return result


def generate_heatmap(image_a: RgbaImage, image_b: RgbaImage) -> np.ndarray:
    """根据逐像素距离生成差异热力图"""
    distances = (distance_map(image_a, image_b) * 255).astype(np.uint8)
    distances = cv2.normalize(distances, None, 0, 255, cv2.NORM_MINMAX)
    return cv2.applyColorMap(distances, cv2.COLORMAP_JET)


def render_marked(image_a: RgbaImage, image_b: RgbaImage, boxes: Sequence[BoundingBox]) -> dict:
    """
    生成标记后的拼接图片和热力图

    Returns:
        marked_image_base64: 左右拼接的标记图片
        heatmap_base64: 差异热力图
    """
    marked_a = draw_boxes(to_bgr(image_a), boxes, color=(0, 0, 255))
    marked_b = draw_boxes(to_bgr(image_b), boxes, color=(0, 255, 0))
    combined = np.hstack([marked_a, marked_b])

    return {
        "marked_image_base64": image_to_base64(combined),
        "heatmap_base64": image_to_base64(generate_heatmap(image_a, image_b)),
    }
