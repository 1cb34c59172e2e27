"""
差异包围盒 API 路由

解码、检测和绘图都是耗时的同步计算，统一放到线程池中执行，避免阻塞事件循环。
"""

import asyncio
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from ..schemas.diff_boxes import (
    BoundingBoxItem,
    BoundingBoxResponse,
    ImageSize,
    MarkedBoundingBoxResponse,
    UrlDiffRequest,
)
from ..services.annotate import render_marked
from ..services.bounding_box import DiffResponse, RgbaImage, find_diff_boxes
from ..services.image_loader import load_image_from_bytes, load_image_from_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/diff", tags=["差异包围盒"])


def _to_payload(result: DiffResponse) -> dict:
    return {
        "box_count": len(result.boxes),
        "boxes": [BoundingBoxItem(index=i + 1, **box.to_dict()) for i, box in enumerate(result.boxes)],
        "image_size": ImageSize(width=result.image_width, height=result.image_height),
    }


def _detect(
    image_a: RgbaImage,
    image_b: RgbaImage,
    threshold: Optional[float],
    min_box_area: Optional[int],
    min_cluster_pixels: Optional[int],
    marked: bool = False,
) -> dict:
    """检测差异包围盒，marked 为 True 时附带标记图片和热力图"""
    result = find_diff_boxes(
        image_a,
        image_b,
        threshold=threshold,
        min_box_area=min_box_area,
        min_cluster_pixels=min_cluster_pixels,
    )
    payload = _to_payload(result)
    if marked:
        payload.update(render_marked(image_a, image_b, result.boxes))
    return payload


def _detect_bytes(
    bytes_a: bytes,
    bytes_b: bytes,
    threshold: Optional[float],
    min_box_area: Optional[int],
    min_cluster_pixels: Optional[int],
    marked: bool = False,
) -> dict:
    return _detect(
        load_image_from_bytes(bytes_a),
        load_image_from_bytes(bytes_b),
        threshold,
        min_box_area,
        min_cluster_pixels,
        marked,
    )


async def _read_upload(file: UploadFile) -> bytes:
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail=f"请上传有效的图片文件: {file.filename}")
    return await file.read()


@router.post(
    "/boxes",
    response_model=BoundingBoxResponse,
    summary="检测差异包围盒",
    description="上传两张尺寸相同的图片，返回差异区域的包围盒（按面积从大到小）",
)
async def detect_boxes(
    file_a: Annotated[UploadFile, File(description="图片 A")],
    file_b: Annotated[UploadFile, File(description="图片 B")],
    threshold: Annotated[Optional[float], Form(description="像素差异阈值 (0-1)")] = None,
    min_box_area: Annotated[Optional[int], Form(description="最小包围盒面积")] = None,
    min_cluster_pixels: Annotated[Optional[int], Form(description="最小连通像素数")] = None,
) -> BoundingBoxResponse:
    """检测差异包围盒，仅返回元数据"""
    bytes_a = await _read_upload(file_a)
    bytes_b = await _read_upload(file_b)
    loop = asyncio.get_running_loop()

    try:
        payload = await loop.run_in_executor(
            None, _detect_bytes, bytes_a, bytes_b, threshold, min_box_area, min_cluster_pixels
        )
        return BoundingBoxResponse(**payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("diff boxes failed")
        raise HTTPException(status_code=500, detail=f"处理图片时发生错误: {str(e)}")


@router.post(
    "/boxes/marked",
    response_model=MarkedBoundingBoxResponse,
    summary="检测差异包围盒并标记",
    description="上传两张尺寸相同的图片，返回包围盒以及标记后的图片和热力图（base64 编码）",
)
async def detect_boxes_marked(
    file_a: Annotated[UploadFile, File(description="图片 A")],
    file_b: Annotated[UploadFile, File(description="图片 B")],
    threshold: Annotated[Optional[float], Form(description="像素差异阈值 (0-1)")] = None,
    min_box_area: Annotated[Optional[int], Form(description="最小包围盒面积")] = None,
    min_cluster_pixels: Annotated[Optional[int], Form(description="最小连通像素数")] = None,
) -> MarkedBoundingBoxResponse:
    """检测差异包围盒并返回标记图片"""
    bytes_a = await _read_upload(file_a)
    bytes_b = await _read_upload(file_b)
    loop = asyncio.get_running_loop()

    try:
        payload = await loop.run_in_executor(
            None, _detect_bytes, bytes_a, bytes_b, threshold, min_box_area, min_cluster_pixels, True
        )
        return MarkedBoundingBoxResponse(**payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("diff boxes (marked) failed")
        raise HTTPException(status_code=500, detail=f"处理图片时发生错误: {str(e)}")


@router.post(
    "/boxes/url",
    response_model=BoundingBoxResponse,
    summary="通过 URL 检测差异包围盒",
    description="提供两张图片的 URL，服务端下载后检测差异包围盒",
)
async def detect_boxes_from_url(body: UrlDiffRequest) -> BoundingBoxResponse:
    """下载两张图片并检测差异包围盒"""
    loop = asyncio.get_running_loop()

    try:
        image_a, image_b = await asyncio.gather(
            loop.run_in_executor(None, load_image_from_url, body.image_url_a),
            loop.run_in_executor(None, load_image_from_url, body.image_url_b),
        )
        payload = await loop.run_in_executor(
            None, _detect, image_a, image_b, body.threshold, body.min_box_area, body.min_cluster_pixels
        )
        return BoundingBoxResponse(**payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("diff boxes (url) failed")
        raise HTTPException(status_code=500, detail=f"处理图片时发生错误: {str(e)}")
