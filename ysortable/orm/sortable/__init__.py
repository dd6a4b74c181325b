"""排序管理模块

提供通用的排序功能支持。

导出:
    - OrderColumn: 排序配置（字段名、创建时排序、分组字段）
    - SortScope: 排序范围
    - SortableStorage / SQLAlchemyStorage / MemoryStorage: 排序存储
    - Reindexer: 排序算法
    - SortFieldMixin: 排序字段 Mixin（提供 order_column 字段）
    - SortableMixin: 排序管理 Mixin（提供排序操作方法）
    - activate_sort_on_create_hook: 创建时自动分配排序号

使用示例:
    from ysortable.orm import CoreModel
    from ysortable.orm.sortable import SortFieldMixin, SortableMixin, activate_sort_on_create_hook

    activate_sort_on_create_hook()

    class Banner(CoreModel, SortFieldMixin, SortableMixin):
        title: Mapped[str] = mapped_column(String(100))

    banner = Banner.get(1)
    banner.move_order_up()    # 上移
    banner.move_order_down()  # 下移
    banner.move_to_start()    # 置顶
    banner.move_to_end()      # 置底
    banner.move_to(3)         # 移动到第3位

    # 批量重排序
    Banner.set_new_order([3, 1, 2])
"""

from .exceptions import (
    SortableError,
    NotFoundError,
    StorageError,
    ConfigurationError,
    CrossScopeError,
)
from .scope import SortScope
from .config import OrderColumn
from .storage import SortableStorage, SQLAlchemyStorage
from .memory import MemoryStorage
from .reindexer import Reindexer
from .sortable_fields import SortFieldMixin
from .sortable_mixin import (
    SortableMixin,
    activate_sort_on_create_hook,
    deactivate_sort_on_create_hook,
    is_sort_on_create_hook_active,
)

__all__ = [
    # 异常
    "SortableError",
    "NotFoundError",
    "StorageError",
    "ConfigurationError",
    "CrossScopeError",

    # 配置与范围
    "OrderColumn",
    "SortScope",

    # 存储
    "SortableStorage",
    "SQLAlchemyStorage",
    "MemoryStorage",

    # 算法
    "Reindexer",

    # Mixin
    "SortFieldMixin",
    "SortableMixin",
    "activate_sort_on_create_hook",
    "deactivate_sort_on_create_hook",
    "is_sort_on_create_hook_active",
]
