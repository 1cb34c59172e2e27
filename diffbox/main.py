"""
FastAPI 应用入口
图片差异包围盒检测服务
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from diffbox import __version__, config
from diffbox.routers import diff_boxes_router
from diffbox.schemas import HealthResponse

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("图片差异包围盒检测服务启动 v%s", __version__)
    yield
    logger.info("服务关闭")


app = FastAPI(
    title="图片差异包围盒 API",
    description="""
## 功能说明

对两张尺寸相同的图片做逐像素比较，找出差异区域并返回最小的轴对齐包围盒。

### 检测流程

1. **像素差异**: 计算对应像素的加权 RGBA 欧氏距离（归一化到 0-1，alpha 权重减半）
2. **区域提取**: 超过阈值的像素按 4 邻域泛洪填充聚成连通区域，过滤过小的噪声区域
3. **区域合并**: 重叠或相接的包围盒合并，按面积从大到小返回

### 使用方式

- 上传两张图片文件，或提供两张图片的 URL
- 可选参数: `threshold`（默认 0.05）、`min_box_area`（默认 4）、`min_cluster_pixels`（默认 8）
- 两张图片尺寸不一致时返回 400
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS 中间件配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(diff_boxes_router)


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["系统"],
    summary="健康检查",
)
def health_check() -> HealthResponse:
    """检查服务健康状态"""
    return HealthResponse(status="healthy", version=__version__)


@app.get(
    "/",
    tags=["系统"],
    summary="API 根路径",
)
def root():
    """API 根路径，返回服务基本信息"""
    return {
        "name": "图片差异包围盒 API",
        "version": __version__,
        "docs": "/docs",
    }
