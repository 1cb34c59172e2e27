"""
图片差异包围盒检测服务
"""

__version__ = "0.1.0"
