"""排序重排器

Reindexer 实现所有排序算法，只依赖 SortableStorage 接口。
每个修改多行的操作都在 storage.run_in_transaction 中执行，
操作完成后范围内的排序号仍是连续的 1..N。

使用示例:
    reindexer = Reindexer(SQLAlchemyStorage(Banner))

    reindexer.initialize_on_create(banner)        # 新记录放到最后
    reindexer.move_up(banner)                     # 上移一位
    reindexer.move_to_start(banner)               # 置顶
    reindexer.set_new_order(scope, [3, 1, 2])     # 拖拽排序后批量提交
"""

from typing import Any, Iterable, Iterator, Optional

from ysortable.log import get_logger

from .config import OrderColumn
from .exceptions import CrossScopeError
from .scope import SortScope
from .storage import SortableStorage

logger = get_logger("ysortable.orm.sortable")


class Reindexer:
    """排序重排器

    Args:
        storage: 排序存储
        config: 排序配置，不传则使用 storage.config
    """

    def __init__(self, storage: SortableStorage, config: OrderColumn = None):
        self.storage = storage
        self.config = config or storage.config

    # ==================== 辅助方法 ====================

    def scope_of(self, entity: Any) -> SortScope:
        """实体所在的排序范围"""
        return SortScope.from_entity(entity, self.config.group_columns)

    def _rank(self, entity: Any) -> Optional[int]:
        return getattr(entity, self.config.rank_column, None)

    def _check_scope(self, scope: SortScope) -> SortScope:
        """校验范围的分组字段与配置一致，返回按配置字段顺序排列的范围

        Raises:
            ValueError: 分组模型传入全局范围，或分组字段不匹配
        """
        if scope is None:
            raise ValueError("必须指定排序范围")
        filters = scope.as_filters()
        if set(filters) != set(self.config.group_columns) or len(filters) != len(scope.groups):
            raise ValueError(
                f"排序范围 {scope} 与分组字段 {list(self.config.group_columns)} 不匹配"
            )
        return SortScope(tuple((column, filters[column]) for column in self.config.group_columns))

    def _check_same_scope(self, a: Any, b: Any) -> SortScope:
        left, right = self.scope_of(a), self.scope_of(b)
        if type(a) is not type(b) or left != right:
            raise CrossScopeError(left, right)
        return left

    # ==================== 查询 ====================

    def highest_rank(self, scope: SortScope) -> int:
        """范围内最大排序号，空范围返回 0"""
        return self.storage.max_rank(self._check_scope(scope))

    def lowest_rank(self, scope: SortScope) -> int:
        """范围内最小排序号，空范围返回 0"""
        return self.storage.min_rank(self._check_scope(scope))

    def ordered_sequence(self, scope: SortScope) -> Iterator[Any]:
        """按排序号升序逐个返回范围内的记录，每次调用重新查询"""
        yield from self.storage.all(self._check_scope(scope))

    def previous(self, entity: Any) -> Optional[Any]:
        """前一条记录（排序号 - 1），没有返回 None"""
        rank = self._rank(entity)
        if rank is None or rank <= 1:
            return None
        return self.storage.find_by_rank(self.scope_of(entity), rank - 1)

    def next(self, entity: Any) -> Optional[Any]:
        """后一条记录（排序号 + 1），没有返回 None"""
        rank = self._rank(entity)
        if rank is None:
            return None
        return self.storage.find_by_rank(self.scope_of(entity), rank + 1)

    # ==================== 创建 ====================

    def initialize_on_create(self, entity: Any) -> Any:
        """为新记录分配排序号（放到范围末尾）

        配置关闭了创建时排序，或记录已有排序号时不做任何修改。
        """
        if not self.config.should_sort_when_creating():
            return entity
        if self._rank(entity) is not None:
            return entity
        scope = self.scope_of(entity)
        rank = self.storage.max_rank(scope) + 1
        setattr(entity, self.config.rank_column, rank)
        logger.debug(f"{type(entity).__name__} {scope} 新记录排序号: {rank}")
        return entity

    # ==================== 批量排序 ====================

    def set_new_order(self, scope: SortScope, ids: Iterable[Any], start_rank: int = 1) -> int:
        """按 ids 顺序重新分配排序号 start_rank, start_rank + 1, ...

        - 范围内不存在的 id 被跳过，不占用排序号
        - 范围内未出现在 ids 中的记录保持原排序号
        - 重复的 id 只取第一次出现

        Args:
            scope: 排序范围
            ids: 期望顺序的 ID 列表
            start_rank: 起始排序号，必须 >= 1

        Returns:
            排序号实际发生变化的记录数

        Raises:
            ValueError: start_rank 小于 1，或范围与分组字段不匹配
        """
        scope = self._check_scope(scope)
        if start_rank < 1:
            raise ValueError(f"start_rank 必须 >= 1，实际为 {start_rank}")
        ids = list(ids)
        if not ids:
            return 0

        def apply() -> int:
            entities = {self.storage.id_of(entity): entity for entity in self.storage.all(scope)}
            seen = set()
            skipped = []
            changed = 0
            rank = start_rank
            for entity_id in ids:
                if entity_id in seen:
                    continue
                seen.add(entity_id)
                entity = entities.get(entity_id)
                if entity is None:
                    skipped.append(entity_id)
                    continue
                if self._rank(entity) != rank:
                    self.storage.update_rank(scope, entity_id, rank)
                    changed += 1
                rank += 1
            if skipped:
                logger.warning(f"{scope} 中不存在的记录已跳过: {skipped}")
            logger.debug(f"{scope} 批量排序完成，变化 {changed} 条")
            return changed

        return self.storage.run_in_transaction(apply)

    def normalize(self, scope: SortScope) -> int:
        """按当前顺序重新编号为 1..N（消除删除后留下的间隙）

        Returns:
            排序号实际发生变化的记录数
        """
        scope = self._check_scope(scope)

        def apply() -> int:
            changed = 0
            for rank, entity in enumerate(self.storage.all(scope), 1):
                if self._rank(entity) != rank:
                    self.storage.update_rank(scope, self.storage.id_of(entity), rank)
                    changed += 1
            return changed

        return self.storage.run_in_transaction(apply)

    def close_gap(self, entity: Any) -> int:
        """记录删除后，把其后的记录排序号各减 1"""
        rank = self._rank(entity)
        if rank is None:
            return 0
        scope = self.scope_of(entity)

        def apply() -> int:
            return self.storage.shift_ranks(scope, rank + 1, self.storage.max_rank(scope), -1)

        return self.storage.run_in_transaction(apply)

    # ==================== 单条移动 ====================

    def move_up(self, entity: Any) -> Any:
        """与前一条记录交换，已在最前时不做修改"""
        scope = self.scope_of(entity)
        entity_id = self.storage.id_of(entity)

        def apply() -> Any:
            current = self.storage.find_by_id(scope, entity_id)
            neighbour = self.previous(current)
            if neighbour is None:
                return current
            self._swap(scope, current, neighbour)
            return self.storage.find_by_id(scope, entity_id)

        return self.storage.run_in_transaction(apply)

    def move_down(self, entity: Any) -> Any:
        """与后一条记录交换，已在最后时不做修改"""
        scope = self.scope_of(entity)
        entity_id = self.storage.id_of(entity)

        def apply() -> Any:
            current = self.storage.find_by_id(scope, entity_id)
            neighbour = self.next(current)
            if neighbour is None:
                return current
            self._swap(scope, current, neighbour)
            return self.storage.find_by_id(scope, entity_id)

        return self.storage.run_in_transaction(apply)

    def swap_order(self, a: Any, b: Any) -> None:
        """交换两条记录的排序号，其他记录不变

        Raises:
            CrossScopeError: 两条记录不在同一排序范围
        """
        scope = self._check_same_scope(a, b)
        a_id, b_id = self.storage.id_of(a), self.storage.id_of(b)
        if a_id == b_id:
            return

        def apply() -> None:
            self._swap(
                scope,
                self.storage.find_by_id(scope, a_id),
                self.storage.find_by_id(scope, b_id),
            )

        self.storage.run_in_transaction(apply)

    def swap_order_with_model(self, entity: Any, other: Any) -> None:
        """同 swap_order"""
        self.swap_order(entity, other)

    def _swap(self, scope: SortScope, a: Any, b: Any) -> None:
        a_rank, b_rank = self._rank(a), self._rank(b)
        a_id, b_id = self.storage.id_of(a), self.storage.id_of(b)
        self.storage.update_rank(scope, a_id, b_rank)
        self.storage.update_rank(scope, b_id, a_rank)
        logger.debug(f"{scope} 交换排序号: {a_id}({a_rank}) <-> {b_id}({b_rank})")

    def move_to(self, entity: Any, position: int) -> Any:
        """移动到指定位置（1 开始），位置超出范围时取最近的边界

        只平移原位置与目标位置之间的记录。
        没有排序号的记录按插入处理：目标位置及其后的记录后移一位。
        """
        scope = self.scope_of(entity)
        entity_id = self.storage.id_of(entity)

        def apply() -> Any:
            current = self.storage.find_by_id(scope, entity_id)
            old = self._rank(current)
            count = self.storage.max_rank(scope)

            if old is None:
                target = max(1, min(position, count + 1))
                self.storage.shift_ranks(scope, target, count, 1)
            else:
                target = max(1, min(position, count))
                if target == old:
                    return current
                if target < old:
                    self.storage.shift_ranks(scope, target, old - 1, 1)
                else:
                    self.storage.shift_ranks(scope, old + 1, target, -1)

            self.storage.update_rank(scope, entity_id, target)
            logger.debug(f"{scope} 记录 {entity_id} 排序号 {old} -> {target}")
            return self.storage.find_by_id(scope, entity_id)

        return self.storage.run_in_transaction(apply)

    def move_to_start(self, entity: Any) -> Any:
        """置顶：原位置之前的记录各后移一位，已在最前时不做修改"""
        return self.move_to(entity, 1)

    def move_to_end(self, entity: Any) -> Any:
        """置底：原位置之后的记录各前移一位，已在最后时不做修改

        没有排序号的记录追加到末尾（排序号 N + 1）。
        """
        scope = self.scope_of(entity)
        entity_id = self.storage.id_of(entity)

        def apply() -> Any:
            current = self.storage.find_by_id(scope, entity_id)
            last = self.storage.max_rank(scope)
            if self._rank(current) is None:
                last += 1
            return self.move_to(current, last)

        return self.storage.run_in_transaction(apply)

    def move_before(self, entity: Any, other: Any) -> Any:
        """移动到 other 之前

        Raises:
            CrossScopeError: 两条记录不在同一排序范围
        """
        scope = self._check_same_scope(entity, other)
        if self.storage.id_of(entity) == self.storage.id_of(other):
            return entity

        def apply() -> Any:
            current = self.storage.find_by_id(scope, self.storage.id_of(entity))
            anchor = self._rank(self.storage.find_by_id(scope, self.storage.id_of(other)))
            rank = self._rank(current)
            if anchor is None:
                return current
            target = anchor - 1 if rank is not None and rank < anchor else anchor
            return self.move_to(current, target)

        return self.storage.run_in_transaction(apply)

    def move_after(self, entity: Any, other: Any) -> Any:
        """移动到 other 之后

        Raises:
            CrossScopeError: 两条记录不在同一排序范围
        """
        scope = self._check_same_scope(entity, other)
        if self.storage.id_of(entity) == self.storage.id_of(other):
            return entity

        def apply() -> Any:
            current = self.storage.find_by_id(scope, self.storage.id_of(entity))
            anchor = self._rank(self.storage.find_by_id(scope, self.storage.id_of(other)))
            rank = self._rank(current)
            if anchor is None:
                return current
            target = anchor if rank is not None and rank < anchor else anchor + 1
            return self.move_to(current, target)

        return self.storage.run_in_transaction(apply)


__all__ = [
    "Reindexer",
]
