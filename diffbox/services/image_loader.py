"""
图片加载服务
将字节数据、本地文件或远程 URL 解码为 RGBA 图片视图
"""

import logging

import cv2
import numpy as np
import requests

from .. import config
from ..errors import ImageLoadError
from .bounding_box import RgbaImage

logger = logging.getLogger(__name__)


def to_rgba(img: np.ndarray) -> np.ndarray:
    """将 OpenCV 解码得到的灰度/BGR/BGRA 图片统一转换为 8 位 RGBA"""
    if img.dtype == np.uint16:
        img = (img >> 8).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = cv2.normalize(img, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)

    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    channels = img.shape[2]
    if channels == 1:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    if channels == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    if channels == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    raise ImageLoadError(f"不支持的通道数: {channels}")


def _check_size(img: np.ndarray, source: str) -> np.ndarray:
    """解码后的像素数超过 MAX_PIXELS 时拒绝"""
    height, width = img.shape[:2]
    if height * width > config.MAX_PIXELS:
        raise ImageLoadError(f"图片尺寸过大: {source} {width}x{height} 超过 {config.MAX_PIXELS} 像素")
    return img


def load_image_from_bytes(image_bytes: bytes) -> RgbaImage:
    """从字节数据加载图片"""
    nparr = np.frombuffer(image_bytes, np.uint8)
    img = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED) if nparr.size else None
    if img is None:
        raise ImageLoadError("无法解码图片数据")
    return RgbaImage(to_rgba(_check_size(img, "上传数据")))


def load_image_from_path(image_path: str) -> RgbaImage:
    """从文件路径加载图片"""
    img = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ImageLoadError(f"无法加载图片: {image_path}")
    return RgbaImage(to_rgba(_check_size(img, str(image_path))))


def fetch_image_bytes(url: str, timeout: float = config.FETCH_TIMEOUT) -> bytes:
    """下载远程图片，超过 MAX_DOWNLOAD_BYTES 时拒绝"""
    try:
        with requests.get(url, timeout=timeout, stream=True) as response:
            response.raise_for_status()
            chunks = []
            size = 0
            for chunk in response.iter_content(chunk_size=64 * 1024):
                size += len(chunk)
                if size > config.MAX_DOWNLOAD_BYTES:
                    raise ImageLoadError(f"图片过大: {url}")
                chunks.append(chunk)
    except requests.RequestException as e:
        logger.warning("fetch %s failed: %s", url, e)
        raise ImageLoadError(f"无法下载图片: {url}") from e
    return b"".join(chunks)


def load_image_from_url(url: str, timeout: float = config.FETCH_TIMEOUT) -> RgbaImage:
    """从远程 URL 加载图片"""
    return load_image_from_bytes(fetch_image_bytes(url, timeout=timeout))
