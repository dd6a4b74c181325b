"""
日志工具

库内模块通过 get_logger() 获取日志器，导入时不安装任何 handler。
需要查看排序的调试日志时，由使用者调用 setup_logger()。
"""

import inspect
import logging
import os
from datetime import datetime

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s"


class MicrosecondFormatter(logging.Formatter):
    """时间戳精确到微秒"""

    default_time_format = "%Y-%m-%d %H:%M:%S.%f"

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created).strftime(datefmt or self.default_time_format)


def _to_level(value) -> int:
    level = logging.getLevelName(str(value).upper())
    # 无法识别的级别名返回 "Level xxx" 字符串
    return level if isinstance(level, int) else logging.INFO


def setup_logger(
    name: str = None,
    level: str = "INFO",
    log_file: str = None,
    log_format: str = None,
    console: bool = True,
    propagate: bool = True,
) -> logging.Logger:
    """配置日志器的级别与输出

    重复调用会替换之前添加的 handler。

    Args:
        name: 日志器名称，默认为 root logger
        level: DEBUG / INFO / WARNING / ERROR / CRITICAL，无法识别时使用 INFO
        log_file: 日志文件路径，目录不存在时自动创建
        log_format: 日志格式，默认 LOG_FORMAT
        console: 是否输出到控制台
        propagate: 是否传播到父日志器

    使用示例:
        # 查看每次重排序影响的范围
        setup_logger("ysortable.orm.sortable", level="DEBUG")

        setup_logger("ysortable", log_file="logs/sortable.log", console=False)
    """
    target = logging.getLogger(name)
    target.setLevel(_to_level(level))
    target.propagate = propagate
    target.handlers.clear()

    handlers = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = MicrosecondFormatter(log_format or LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        target.addHandler(handler)
    return target


def get_logger(name: str = None) -> logging.Logger:
    """获取日志器

    - 不传名称时使用调用方模块的 __name__
    - 不含点号的简写加上 "ysortable." 前缀，如 "orm" -> "ysortable.orm"
    - 含点号的名称原样使用
    """
    if name is None:
        caller = inspect.currentframe().f_back
        name = caller.f_globals.get("__name__", "ysortable") if caller is not None else "ysortable"
    elif "." not in name and name != "ysortable":
        name = f"ysortable.{name}"
    return logging.getLogger(name)
