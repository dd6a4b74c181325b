"""
ysortable - 可排序模型扩展

为关系表中的记录维护连续的排序号（1..N），支持分组排序、
上移下移、交换、置顶置底、批量重排序
"""

from .version import __version__, __author__, __description__

# 导出配置
from .config import (
    AppSettings,
    SortableSettings,
    configure_sortable,
    get_sortable_settings,
    load_yaml_config,
)

# 导出日志
from .log import get_logger, setup_logger

# 导出ORM与排序
from .orm import (
    Base,
    CoreModel,
    db_manager,
    init_database,
    get_engine,
    db_session_scope,
    transaction_manager,
    SortableError,
    NotFoundError,
    StorageError,
    ConfigurationError,
    CrossScopeError,
    OrderColumn,
    SortScope,
    SortableStorage,
    SQLAlchemyStorage,
    MemoryStorage,
    Reindexer,
    SortFieldMixin,
    SortableMixin,
    activate_sort_on_create_hook,
    deactivate_sort_on_create_hook,
    is_sort_on_create_hook_active,
)

__all__ = [
    "__version__",
    "__author__",
    "__description__",

    # 配置
    "AppSettings",
    "SortableSettings",
    "configure_sortable",
    "get_sortable_settings",
    "load_yaml_config",

    # 日志
    "get_logger",
    "setup_logger",

    # ORM
    "Base",
    "CoreModel",
    "db_manager",
    "init_database",
    "get_engine",
    "db_session_scope",
    "transaction_manager",

    # 排序
    "SortableError",
    "NotFoundError",
    "StorageError",
    "ConfigurationError",
    "CrossScopeError",
    "OrderColumn",
    "SortScope",
    "SortableStorage",
    "SQLAlchemyStorage",
    "MemoryStorage",
    "Reindexer",
    "SortFieldMixin",
    "SortableMixin",
    "activate_sort_on_create_hook",
    "deactivate_sort_on_create_hook",
    "is_sort_on_create_hook_active",
]
