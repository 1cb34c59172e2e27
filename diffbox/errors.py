"""
差异检测相关的异常定义
"""

__all__ = ["DimensionMismatch", "ImageLoadError"]


class DimensionMismatch(ValueError):
    """两张图片尺寸不一致"""

    def __init__(self, size_a: tuple[int, int], size_b: tuple[int, int]):
        self.size_a = size_a
        self.size_b = size_b
        super().__init__(
            f"图片尺寸必须一致: {size_a[0]}x{size_a[1]} != {size_b[0]}x{size_b[1]}"
        )


class ImageLoadError(ValueError):
    """图片无法读取或解码"""

    pass
