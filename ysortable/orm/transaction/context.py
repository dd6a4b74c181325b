"""事务上下文

一次 transaction() 调用对应一个上下文。嵌套调用加入同一个上下文，
只有最外层退出时才结束事务。
"""

from enum import Enum

from sqlalchemy.orm import Session

from ysortable.log import get_logger

from .exceptions import TransactionNotActiveError

logger = get_logger("ysortable.orm.transaction")


class TransactionState(str, Enum):
    """事务状态"""

    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    # auto_commit=False 时正常结束：已 flush，提交留给调用方
    CLOSED = "closed"


class TransactionContext:
    """事务上下文

    Args:
        session: 数据库会话
        auto_commit: 最外层结束时是否提交，False 时只 flush
        suppress_commit: 事务内是否忽略模型 save(commit=True) 的提交
    """

    def __init__(self, session: Session, auto_commit: bool = True, suppress_commit: bool = True):
        self.session = session
        self.auto_commit = auto_commit
        self.suppress_commit = suppress_commit
        self.state = TransactionState.ACTIVE
        self.nesting_level = 1

    @property
    def is_active(self) -> bool:
        return self.state is TransactionState.ACTIVE

    def should_suppress_commit(self) -> bool:
        return self.is_active and self.suppress_commit

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        if not self.is_active:
            raise TransactionNotActiveError(f"无法提交，事务状态为 {self.state.value}")
        self.session.commit()
        self.state = TransactionState.COMMITTED
        logger.debug("事务已提交")

    def rollback(self) -> None:
        """回滚整个 session，已结束的事务调用时不做任何事"""
        if not self.is_active:
            return
        self.session.rollback()
        self.state = TransactionState.ROLLED_BACK
        logger.debug("事务已回滚")

    def finish(self) -> None:
        """最外层正常退出时调用"""
        if not self.is_active:
            return
        if self.auto_commit:
            self.commit()
        else:
            self.flush()
            self.state = TransactionState.CLOSED

    def __repr__(self) -> str:
        return f"<TransactionContext state={self.state.value} level={self.nesting_level}>"
