"""排序异常定义

异常层级:
    SortableError (基类)
    ├── NotFoundError        - 排序范围内找不到指定记录
    ├── StorageError         - 存储层读写失败
    ├── ConfigurationError   - 排序配置不合法
    └── CrossScopeError      - 跨排序范围的交换/移动

边界上的空操作（已在最前时上移、已在最后时下移）不是错误，不会抛出任何异常。
"""

from typing import Any, Optional


class SortableError(Exception):
    """排序错误基类

    Attributes:
        message: 错误消息
        code: 错误码，默认为异常类名
    """

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)

    def to_dict(self) -> dict:
        """转换为字典（用于API响应）"""
        return {
            "error": self.code,
            "message": self.message,
        }


class NotFoundError(SortableError):
    """记录不存在

    Attributes:
        entity_id: 查找的记录 ID
        scope: 查找时使用的排序范围
    """

    def __init__(self, entity_id: Any, scope: Any = None):
        self.entity_id = entity_id
        self.scope = scope
        if scope is None:
            message = f"记录 '{entity_id}' 不存在"
        else:
            message = f"记录 '{entity_id}' 不在排序范围 {scope} 中"
        super().__init__(message)


class StorageError(SortableError):
    """存储层错误

    包装底层存储（数据库连接、约束冲突、事务中断等）抛出的异常，
    原始异常保存在 original_error 与 __cause__ 中。不会自动重试。
    """

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        self.original_error = original_error
        if original_error is not None:
            message = f"{message}: {original_error}"
        super().__init__(message)

    def __repr__(self) -> str:
        return f"StorageError(message={self.message!r}, original_error={self.original_error!r})"


class ConfigurationError(SortableError):
    """排序配置错误

    在解析配置时立即抛出，而不是等到第一次使用。

    Attributes:
        field: 出错的配置项名称
    """

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        if field:
            message = f"排序配置项 '{field}' 不合法: {message}"
        super().__init__(message)


class CrossScopeError(SortableError):
    """跨排序范围操作

    两条记录分属不同分组（或不同模型）时不能交换或相对移动。

    Attributes:
        left: 第一条记录的排序范围
        right: 第二条记录的排序范围
    """

    def __init__(self, left: Any, right: Any):
        self.left = left
        self.right = right
        super().__init__(f"不能在不同排序范围之间操作: {left} != {right}")


__all__ = [
    "SortableError",
    "NotFoundError",
    "StorageError",
    "ConfigurationError",
    "CrossScopeError",
]
