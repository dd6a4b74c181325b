"""事务管理

排序操作通过 transaction_manager 加入调用方的事务，
并在保存点中执行，失败时只撤销排序本身的写入。

使用示例:
    from ysortable.orm import transaction_manager as tm

    with tm.transaction():
        banner.move_to_start()
        Banner.set_new_order(ids)
"""

from .exceptions import TransactionError, TransactionNotActiveError
from .context import TransactionState, TransactionContext
from .manager import (
    TransactionManager,
    transaction_manager,
    get_current_transaction,
)

__all__ = [
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionState",
    "TransactionContext",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",
]
