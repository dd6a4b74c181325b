"""ORM模块

提供排序库的 ORM 支持：
- CoreModel: 核心模型基类，包含ID、创建时间、CRUD
- 数据库会话管理
- 事务管理（加入外层事务、保存点、提交抑制）
- 排序扩展（SortFieldMixin / SortableMixin）

使用示例:
    from ysortable.orm import (
        CoreModel, SortFieldMixin, SortableMixin,
        init_database, activate_sort_on_create_hook,
    )

    init_database("sqlite:///./app.db")
    activate_sort_on_create_hook()

    class Banner(CoreModel, SortFieldMixin, SortableMixin):
        title: Mapped[str] = mapped_column(String(100))

    Banner(title="首页").save(commit=True)
    Banner.get(1).move_to_end()
"""

from .core_model import Base, CoreModel
from .db_session import (
    # 管理器单例
    db_manager,
    # 公开 API
    init_database,
    get_engine,
    db_session_scope,
    enable_sqlite_savepoints,
)

# 事务管理
from .transaction import (
    TransactionManager,
    transaction_manager,
    TransactionContext,
    TransactionState,
    TransactionError,
    TransactionNotActiveError,
    get_current_transaction,
)

# 排序扩展
from .sortable import (
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
    # 模型基类
    "Base",
    "CoreModel",

    # 数据库会话
    "db_manager",
    "init_database",
    "get_engine",
    "db_session_scope",
    "enable_sqlite_savepoints",

    # 事务管理
    "TransactionManager",
    "transaction_manager",
    "TransactionContext",
    "TransactionState",
    "TransactionError",
    "TransactionNotActiveError",
    "get_current_transaction",

    # 排序扩展
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
