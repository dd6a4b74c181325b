"""排序存储

Reindexer 只通过 SortableStorage 接口读写排序号，不直接依赖 ORM。

包含:
- SortableStorage: 存储抽象基类
- SQLAlchemyStorage: 基于 SQLAlchemy session 的实现
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ysortable.log import get_logger

from ..transaction import transaction_manager
from .config import OrderColumn
from .exceptions import NotFoundError, StorageError
from .scope import SortScope

logger = get_logger("ysortable.orm.sortable")

T = TypeVar("T")


class SortableStorage(ABC):
    """排序存储抽象基类

    所有方法都以排序范围为第一个参数，范围之外的记录不可见。

    Attributes:
        config: 排序配置（排序字段名、分组字段）
    """

    config: OrderColumn

    def rank_of(self, entity: Any) -> Optional[int]:
        """读取实体的排序号"""
        return getattr(entity, self.config.rank_column, None)

    @staticmethod
    def id_of(entity: Any) -> Any:
        return entity.id

    def scope_of(self, entity: Any) -> SortScope:
        """根据实体的分组字段构建排序范围"""
        return SortScope.from_entity(entity, self.config.group_columns)

    @abstractmethod
    def find_by_id(self, scope: SortScope, entity_id: Any) -> Any:
        """按 ID 查找范围内的记录

        Raises:
            NotFoundError: 范围内不存在该记录
        """
        pass

    @abstractmethod
    def find_by_rank(self, scope: SortScope, rank: int) -> Optional[Any]:
        """按排序号查找范围内的记录，不存在返回 None"""
        pass

    @abstractmethod
    def max_rank(self, scope: SortScope) -> int:
        """范围内最大排序号，空范围返回 0"""
        pass

    @abstractmethod
    def min_rank(self, scope: SortScope) -> int:
        """范围内最小排序号，空范围返回 0"""
        pass

    @abstractmethod
    def update_rank(self, scope: SortScope, entity_id: Any, new_rank: int) -> None:
        """更新单条记录的排序号

        Raises:
            NotFoundError: 范围内不存在该记录
        """
        pass

    @abstractmethod
    def shift_ranks(self, scope: SortScope, low: int, high: int, delta: int) -> int:
        """把排序号在 [low, high] 闭区间内的记录整体平移 delta

        Returns:
            受影响的记录数
        """
        pass

    @abstractmethod
    def fetch_ordered_ids(self, scope: SortScope) -> List[Any]:
        """范围内所有记录 ID，按排序号升序"""
        pass

    @abstractmethod
    def all(self, scope: SortScope) -> List[Any]:
        """范围内所有记录，按排序号升序（未排序的记录在最后）"""
        pass

    @abstractmethod
    def run_in_transaction(self, fn: Callable[[], T]) -> T:
        """在一个事务中执行 fn，失败时整体回滚"""
        pass


class SQLAlchemyStorage(SortableStorage):
    """SQLAlchemy 排序存储

    通过模型的 query 所在 session（或全局 scoped_session）读写排序号。
    批量平移使用一条 UPDATE 语句完成，session 中已加载的对象会同步更新。

    Args:
        model: 映射模型类
        session: 指定 session，不传则使用 model.query 的 session
        auto_commit: 不在外层事务中时，排序成功后是否提交 session，默认不提交
        lock_rows: 读取时是否加 SELECT ... FOR UPDATE 行锁
        config: 排序配置，不传则从模型读取

    使用示例:
        storage = SQLAlchemyStorage(Banner, session=session)
        reindexer = Reindexer(storage)
        reindexer.move_to_start(banner)
        session.commit()
    """

    def __init__(
        self,
        model: Type,
        session: Session = None,
        auto_commit: bool = False,
        lock_rows: bool = False,
        config: OrderColumn = None,
    ):
        self.model = model
        self._session = session
        self.auto_commit = auto_commit
        self.lock_rows = lock_rows
        if config is None:
            sortable_config = getattr(model, "sortable_config", None)
            config = sortable_config() if sortable_config is not None else OrderColumn.resolve()
        self.config = config

    @property
    def session(self) -> Session:
        """获取当前 session

        优先使用构造时传入的 session，其次是模型 query 属性的 session，最后是全局 scoped_session
        """
        if self._session is not None:
            return self._session
        query = getattr(self.model, "query", None)
        if query is not None:
            return query.session
        from ..db_session import db_manager
        return db_manager.get_session()

    @property
    def rank_column(self):
        return getattr(self.model, self.config.rank_column)

    # ==================== 内部方法 ====================

    @contextmanager
    def _wrap_errors(self, action: str) -> Iterator[None]:
        """把 SQLAlchemy 异常包装为 StorageError"""
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"{self.model.__name__} {action}失败: {e}")
            raise StorageError(f"{self.model.__name__} {action}失败", original_error=e) from e

    def _scoped_query(self, scope: SortScope, lock: bool = False):
        """构建限定在排序范围内的查询"""
        query = self.session.query(self.model)
        for column_name, value in scope.groups:
            column = getattr(self.model, column_name)
            if value is None:
                query = query.filter(column.is_(None))
            else:
                query = query.filter(column == value)
        if lock and self.lock_rows:
            query = query.with_for_update()
        return query

    def _ordered(self, query):
        # NULL 排序号放在最后，各数据库行为一致
        return query.order_by(self.rank_column.is_(None), self.rank_column, self.model.id)

    # ==================== 读取 ====================

    def find_by_id(self, scope: SortScope, entity_id: Any) -> Any:
        with self._wrap_errors("查询记录"):
            entity = self._scoped_query(scope, lock=True).filter(self.model.id == entity_id).first()
        if entity is None:
            raise NotFoundError(entity_id, scope)
        return entity

    def find_by_rank(self, scope: SortScope, rank: int) -> Optional[Any]:
        with self._wrap_errors("按排序号查询"):
            return self._scoped_query(scope, lock=True).filter(self.rank_column == rank).first()

    def max_rank(self, scope: SortScope) -> int:
        with self._wrap_errors("查询最大排序号"):
            result = self._scoped_query(scope).with_entities(func.max(self.rank_column)).scalar()
        return result or 0

    def min_rank(self, scope: SortScope) -> int:
        with self._wrap_errors("查询最小排序号"):
            result = self._scoped_query(scope).with_entities(func.min(self.rank_column)).scalar()
        return result or 0

    def fetch_ordered_ids(self, scope: SortScope) -> List[Any]:
        with self._wrap_errors("查询排序列表"):
            rows = self._ordered(self._scoped_query(scope).with_entities(self.model.id)).all()
        return [row[0] for row in rows]

    def all(self, scope: SortScope) -> List[Any]:
        with self._wrap_errors("查询排序列表"):
            return self._ordered(self._scoped_query(scope, lock=True)).all()

    # ==================== 写入 ====================

    def update_rank(self, scope: SortScope, entity_id: Any, new_rank: int) -> None:
        with self._wrap_errors("更新排序号"):
            count = self._scoped_query(scope).filter(self.model.id == entity_id).update(
                {self.rank_column: new_rank}, synchronize_session="fetch"
            )
        if count == 0:
            raise NotFoundError(entity_id, scope)

    def shift_ranks(self, scope: SortScope, low: int, high: int, delta: int) -> int:
        if low > high or delta == 0:
            return 0
        with self._wrap_errors("平移排序号"):
            count = self._scoped_query(scope).filter(
                self.rank_column >= low,
                self.rank_column <= high,
            ).update({self.rank_column: self.rank_column + delta}, synchronize_session="fetch")
        logger.debug(f"{self.model.__name__} {scope} 排序号 [{low}, {high}] 平移 {delta:+d}，影响 {count} 条")
        return count

    def run_in_transaction(self, fn: Callable[[], T]) -> T:
        """在保存点中执行 fn

        失败时只回滚到保存点，session 中调用方之前的写入保留。
        成功时释放保存点；auto_commit=True 且不在外层事务或保存点中时提交 session，
        否则提交由调用方决定。
        """
        session = self.session
        joined = transaction_manager.is_in_transaction() or session.in_nested_transaction()
        with self._wrap_errors("排序事务"):
            try:
                with transaction_manager.savepoint(session):
                    result = fn()
            except Exception:
                self._expire_ranks(session)
                raise
            if self.auto_commit and not joined:
                session.commit()
        return result

    def _expire_ranks(self, session: Session) -> None:
        # 批量 UPDATE 已同步到内存对象，回滚保存点后需要重新加载排序号
        for obj in list(session.identity_map.values()):
            if isinstance(obj, self.model):
                session.expire(obj, [self.config.rank_column])


__all__ = [
    "SortableStorage",
    "SQLAlchemyStorage",
]
