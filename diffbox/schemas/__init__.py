"""
Pydantic 数据模型
"""

from .diff_boxes import (
    BoundingBoxItem,
    BoundingBoxResponse,
    HealthResponse,
    ImageSize,
    MarkedBoundingBoxResponse,
    UrlDiffRequest,
)

__all__ = [
    "BoundingBoxItem",
    "BoundingBoxResponse",
    "HealthResponse",
    "ImageSize",
    "MarkedBoundingBoxResponse",
    "UrlDiffRequest",
]
