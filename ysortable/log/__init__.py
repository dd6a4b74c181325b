"""日志模块

使用示例:
    from ysortable.log import setup_logger, get_logger

    # 打开排序操作的调试日志
    setup_logger("ysortable", level="DEBUG")

    # 在模块中获取日志器
    logger = get_logger()
"""

from .logger import (
    LOG_FORMAT,
    MicrosecondFormatter,
    get_logger,
    setup_logger,
)

__all__ = [
    "LOG_FORMAT",
    "MicrosecondFormatter",
    "get_logger",
    "setup_logger",
]
