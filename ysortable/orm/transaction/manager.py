"""事务管理器

- transaction(): 当前已有活跃事务时加入，否则新建，最外层退出时提交或回滚
- savepoint(): 在 SAVEPOINT 中执行，失败只撤销保存点内的写入
- transactional(): transaction() 的装饰器形式

当前事务保存在 ContextVar 中，线程之间互不影响。
"""

from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from ysortable.log import get_logger

from .context import TransactionContext

logger = get_logger("ysortable.orm.transaction")

_current_transaction: ContextVar[Optional[TransactionContext]] = ContextVar(
    "_current_transaction", default=None
)


def get_current_transaction() -> Optional[TransactionContext]:
    """获取当前线程（或协程）的事务上下文"""
    return _current_transaction.get()


class TransactionManager:
    """事务管理器（单例）

    使用示例:
        from ysortable.orm import transaction_manager as tm

        with tm.transaction():
            banner.move_to_start()
            Banner.set_new_order(ids)
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def get_session(self) -> Session:
        from ..db_session import db_manager
        return db_manager.get_session()

    def is_in_transaction(self) -> bool:
        tx = get_current_transaction()
        return tx is not None and tx.is_active

    def should_suppress_commit(self) -> bool:
        """当前事务是否要求忽略模型方法里的 commit=True"""
        tx = get_current_transaction()
        return tx is not None and tx.should_suppress_commit()

    @contextmanager
    def transaction(
        self,
        session: Session = None,
        auto_commit: bool = True,
        suppress_commit: bool = True,
    ) -> Iterator[TransactionContext]:
        """开启或加入事务

        Args:
            session: 数据库会话，不传则使用全局 scoped_session
            auto_commit: 最外层退出时是否提交，False 时只 flush
            suppress_commit: 事务内是否忽略 save(commit=True) 的提交
        """
        current = get_current_transaction()
        if current is not None and current.is_active:
            current.nesting_level += 1
            try:
                yield current
            finally:
                current.nesting_level -= 1
            return

        tx = TransactionContext(
            session if session is not None else self.get_session(),
            auto_commit=auto_commit,
            suppress_commit=suppress_commit,
        )
        token = _current_transaction.set(tx)
        logger.debug("事务开始")
        try:
            yield tx
            tx.finish()
        except Exception:
            tx.rollback()
            raise
        finally:
            _current_transaction.reset(token)

    @contextmanager
    def savepoint(self, session: Session = None) -> Iterator[Session]:
        """在保存点中执行

        正常结束时释放保存点，异常时回滚到保存点再抛出，保存点之前的写入保留。
        进入时会先 flush session 中待写入的对象。
        """
        session = session if session is not None else self.get_session()
        with session.begin_nested():
            yield session

    def transactional(self, auto_commit: bool = True, suppress_commit: bool = True):
        """事务装饰器

        Example:
            @transaction_manager.transactional()
            def reorder(ids):
                Banner.set_new_order(ids)
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                with self.transaction(auto_commit=auto_commit, suppress_commit=suppress_commit):
                    return func(*args, **kwargs)
            return wrapper
        return decorator


transaction_manager = TransactionManager()
