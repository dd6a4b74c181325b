"""内存排序存储

把实体保存在内存字典中，适用于：
- 单元测试
- 不落库的临时列表排序（如导入预览）

特点：
- 线程安全（可重入锁）
- 事务通过排序号快照实现，失败时恢复快照
"""

import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from ysortable.log import get_logger

from .config import OrderColumn
from .exceptions import NotFoundError
from .scope import SortScope
from .storage import SortableStorage

logger = get_logger("ysortable.orm.sortable")

T = TypeVar("T")


class MemoryStorage(SortableStorage):
    """内存排序存储

    实体可以是任意带 ``id`` 属性的对象，排序号与分组字段通过属性读写。

    Args:
        config: 排序配置，不传则使用默认配置
        entities: 初始实体

    使用示例:
        storage = MemoryStorage(OrderColumn.resolve({"group_column_name": "category_id"}))
        storage.add(Item(id=1, category_id=1))
        Reindexer(storage).initialize_on_create(item)
    """

    def __init__(self, config: OrderColumn = None, entities: Iterable[Any] = ()):
        self.config = config or OrderColumn.resolve()
        self._entities: Dict[Any, Any] = {}
        self._lock = threading.RLock()
        self._next_id = 1
        for entity in entities:
            self.add(entity)

    # ==================== 实体管理 ====================

    def add(self, entity: Any) -> Any:
        """加入实体，id 为空时自动分配"""
        with self._lock:
            if getattr(entity, "id", None) is None:
                entity.id = self._next_id
            if isinstance(entity.id, int) and entity.id >= self._next_id:
                self._next_id = entity.id + 1
            self._entities[entity.id] = entity
        return entity

    def remove(self, entity_id: Any) -> Any:
        """移除实体（不调整其他排序号，需要时调用 Reindexer.close_gap）"""
        with self._lock:
            try:
                return self._entities.pop(entity_id)
            except KeyError:
                raise NotFoundError(entity_id) from None

    def clear(self) -> None:
        with self._lock:
            self._entities.clear()
            self._next_id = 1

    def __len__(self) -> int:
        return len(self._entities)

    def _in_scope(self, scope: SortScope) -> List[Any]:
        return [entity for entity in self._entities.values() if scope.matches(entity)]

    def _ranks(self, scope: SortScope) -> List[int]:
        return [rank for rank in (self.rank_of(e) for e in self._in_scope(scope)) if rank is not None]

    # ==================== 读取 ====================

    def find_by_id(self, scope: SortScope, entity_id: Any) -> Any:
        with self._lock:
            entity = self._entities.get(entity_id)
            if entity is None or not scope.matches(entity):
                raise NotFoundError(entity_id, scope)
            return entity

    def find_by_rank(self, scope: SortScope, rank: int) -> Optional[Any]:
        with self._lock:
            for entity in self._in_scope(scope):
                if self.rank_of(entity) == rank:
                    return entity
            return None

    def max_rank(self, scope: SortScope) -> int:
        with self._lock:
            return max(self._ranks(scope), default=0)

    def min_rank(self, scope: SortScope) -> int:
        with self._lock:
            return min(self._ranks(scope), default=0)

    def fetch_ordered_ids(self, scope: SortScope) -> List[Any]:
        return [self.id_of(entity) for entity in self.all(scope)]

    def all(self, scope: SortScope) -> List[Any]:
        with self._lock:
            return sorted(self._in_scope(scope), key=self._sort_key)

    def _sort_key(self, entity: Any):
        rank = self.rank_of(entity)
        return (rank is None, rank or 0, self.id_of(entity))

    # ==================== 写入 ====================

    def update_rank(self, scope: SortScope, entity_id: Any, new_rank: int) -> None:
        with self._lock:
            entity = self.find_by_id(scope, entity_id)
            setattr(entity, self.config.rank_column, new_rank)

    def shift_ranks(self, scope: SortScope, low: int, high: int, delta: int) -> int:
        if low > high or delta == 0:
            return 0
        count = 0
        with self._lock:
            for entity in self._in_scope(scope):
                rank = self.rank_of(entity)
                if rank is not None and low <= rank <= high:
                    setattr(entity, self.config.rank_column, rank + delta)
                    count += 1
        logger.debug(f"{scope} 排序号 [{low}, {high}] 平移 {delta:+d}，影响 {count} 条")
        return count

    def run_in_transaction(self, fn: Callable[[], T]) -> T:
        """在锁内执行 fn，异常时恢复执行前的排序号"""
        with self._lock:
            snapshot = {entity_id: self.rank_of(entity) for entity_id, entity in self._entities.items()}
            try:
                return fn()
            except Exception:
                for entity_id, rank in snapshot.items():
                    entity = self._entities.get(entity_id)
                    if entity is not None:
                        setattr(entity, self.config.rank_column, rank)
                logger.debug("内存排序事务失败，已恢复排序号快照")
                raise


__all__ = [
    "MemoryStorage",
]
