"""
API 路由模块
"""

from .diff_boxes import router as diff_boxes_router

__all__ = ["diff_boxes_router"]
