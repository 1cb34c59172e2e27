"""
差异包围盒 API 请求/响应模型
"""

from typing import Optional

from pydantic import BaseModel, Field


class BoundingBoxItem(BaseModel):
    """单个差异包围盒"""

    index: int = Field(..., description="包围盒编号，按面积从大到小")
    x: int = Field(..., description="左上角 X 坐标")
    y: int = Field(..., description="左上角 Y 坐标")
    width: int = Field(..., ge=1, description="宽度")
    height: int = Field(..., ge=1, description="高度")
    diff_score: float = Field(..., ge=0, description="区域内差异像素的平均归一化距离")
    pixels: int = Field(..., ge=1, description="差异像素数")


class ImageSize(BaseModel):
    """图片尺寸信息"""

    width: int = Field(..., description="图片宽度")
    height: int = Field(..., description="图片高度")


class BoundingBoxResponse(BaseModel):
    """差异包围盒响应（仅元数据）"""

    box_count: int = Field(..., description="包围盒数量")
    boxes: list[BoundingBoxItem] = Field(default_factory=list, description="包围盒列表")
    image_size: ImageSize = Field(..., description="图片尺寸")


class MarkedBoundingBoxResponse(BoundingBoxResponse):
    """差异包围盒响应（包含 base64 图片）"""

    marked_image_base64: Optional[str] = Field(None, description="标记后的左右拼接图片（base64 编码）")
    heatmap_base64: Optional[str] = Field(None, description="差异热力图（base64 编码）")


class UrlDiffRequest(BaseModel):
    """通过图片 URL 发起的差异检测请求"""

    image_url_a: str = Field(..., min_length=1, description="图片 A 的 URL")
    image_url_b: str = Field(..., min_length=1, description="图片 B 的 URL")
    threshold: Optional[float] = Field(None, description="像素差异阈值，超出 [0, 1] 时截断")
    min_box_area: Optional[int] = Field(None, description="最小包围盒面积")
    min_cluster_pixels: Optional[int] = Field(None, description="最小连通像素数")


class HealthResponse(BaseModel):
    """健康检查响应"""

    status: str = Field(..., description="服务状态")
    version: str = Field(..., description="API 版本")
