"""
业务服务模块
"""

from .bounding_box import (
    BoundingBox,
    DiffRequest,
    DiffResponse,
    RgbaImage,
    color_distance,
    compute_diff_bounding_boxes,
    consolidate_boxes,
    extract_regions,
    find_diff_boxes,
    merge_boxes,
)
from .image_loader import load_image_from_bytes, load_image_from_path, load_image_from_url

__all__ = [
    "BoundingBox",
    "DiffRequest",
    "DiffResponse",
    "RgbaImage",
    "color_distance",
    "compute_diff_bounding_boxes",
    "consolidate_boxes",
    "extract_regions",
    "find_diff_boxes",
    "merge_boxes",
    "load_image_from_bytes",
    "load_image_from_path",
    "load_image_from_url",
]
