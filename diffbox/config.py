"""
服务配置

所有配置项均可通过 DIFFBOX_* 环境变量覆盖。
"""

import os


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


# 差异检测默认参数
DEFAULT_THRESHOLD = _env_float("DIFFBOX_DEFAULT_THRESHOLD", 0.05)
DEFAULT_MIN_BOX_AREA = _env_int("DIFFBOX_DEFAULT_MIN_BOX_AREA", 4)
DEFAULT_MIN_CLUSTER_PIXELS = _env_int("DIFFBOX_DEFAULT_MIN_CLUSTER_PIXELS", 8)

# 远程图片下载
FETCH_TIMEOUT = _env_float("DIFFBOX_FETCH_TIMEOUT", 15.0)
MAX_DOWNLOAD_BYTES = _env_int("DIFFBOX_MAX_DOWNLOAD_BYTES", 20 * 1024 * 1024)

# 解码后允许的最大像素数（宽 x 高），超出时拒绝处理
MAX_PIXELS = _env_int("DIFFBOX_MAX_PIXELS", 4096 * 4096)

# CORS 允许的来源，逗号分隔
CORS_ORIGINS = [o.strip() for o in os.environ.get("DIFFBOX_CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.environ.get("DIFFBOX_LOG_LEVEL", "INFO").upper()
