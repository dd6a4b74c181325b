"""Reindexer 测试

使用 MemoryStorage 测试排序算法本身：
1. 创建时分配排序号
2. 上移、下移、交换、置顶、置底、移动到指定位置
3. 批量重排序的策略（未知 id、遗漏 id、重复 id、起始排序号）
4. 连续性：任意操作序列后排序号仍为 1..N
5. 存储失败时的回滚与异常传播
"""

import random
from dataclasses import dataclass
from typing import Optional

import pytest

from ysortable.orm.sortable import (
    CrossScopeError,
    MemoryStorage,
    NotFoundError,
    OrderColumn,
    Reindexer,
    SortScope,
    StorageError,
)


@dataclass
class Item:
    id: Optional[int] = None
    name: str = ""
    category_id: Optional[int] = None
    order_column: Optional[int] = None


GLOBAL = SortScope.global_scope()
CATEGORY_1 = SortScope((("category_id", 1),))
CATEGORY_2 = SortScope((("category_id", 2),))


def make_reindexer(count: int = 0, config: OrderColumn = None):
    storage = MemoryStorage(config)
    reindexer = Reindexer(storage)
    for i in range(1, count + 1):
        reindexer.initialize_on_create(storage.add(Item(name=str(i))))
    return reindexer


def ranks(reindexer, scope=GLOBAL):
    return {item.id: item.order_column for item in reindexer.ordered_sequence(scope)}


def assert_contiguous(reindexer, scope=GLOBAL):
    values = sorted(item.order_column for item in reindexer.ordered_sequence(scope))
    assert values == list(range(1, len(values) + 1))


class FailingStorage(MemoryStorage):
    """平移排序号时失败的存储"""

    def shift_ranks(self, scope, low, high, delta):
        super().shift_ranks(scope, low, high, delta)
        raise StorageError("连接中断", original_error=ConnectionError("reset"))


class TestInitializeOnCreate:

    def test_assigns_consecutive_ranks(self):
        reindexer = make_reindexer(5)
        assert list(ranks(reindexer).values()) == [1, 2, 3, 4, 5]

    def test_highest_rank_of_empty_scope_is_zero(self):
        reindexer = make_reindexer()
        assert reindexer.highest_rank(GLOBAL) == 0
        assert reindexer.lowest_rank(GLOBAL) == 0

    def test_highest_and_lowest_rank(self):
        reindexer = make_reindexer(4)
        assert reindexer.highest_rank(GLOBAL) == 4
        assert reindexer.lowest_rank(GLOBAL) == 1

    def test_disabled_sort_when_creating(self):
        reindexer = make_reindexer(config=OrderColumn.resolve({"sort_when_creating": False}))
        item = reindexer.initialize_on_create(reindexer.storage.add(Item(name="a")))
        assert item.order_column is None

    def test_existing_rank_is_not_overwritten(self):
        reindexer = make_reindexer(3)
        item = reindexer.initialize_on_create(Item(name="x", order_column=2))
        assert item.order_column == 2

    def test_ranks_are_per_scope(self):
        reindexer = make_reindexer(config=OrderColumn.resolve({"group_column_name": "category_id"}))
        for category_id in (1, 2, 1, 1, 2):
            reindexer.initialize_on_create(reindexer.storage.add(Item(category_id=category_id)))

        assert reindexer.highest_rank(CATEGORY_1) == 3
        assert reindexer.highest_rank(CATEGORY_2) == 2
        assert reindexer.scope_of(Item(category_id=2)) == CATEGORY_2


class TestMoves:

    def test_move_up_swaps_with_previous(self):
        reindexer = make_reindexer(5)
        item = reindexer.storage.find_by_id(GLOBAL, 4)

        moved = reindexer.move_up(item)

        assert moved.order_column == 3
        assert reindexer.storage.find_by_id(GLOBAL, 3).order_column == 4

    def test_move_up_at_start_is_noop(self):
        reindexer = make_reindexer(5)
        first = reindexer.storage.find_by_id(GLOBAL, 1)
        before = ranks(reindexer)

        assert reindexer.move_up(first) is first
        assert ranks(reindexer) == before

    def test_move_down_at_end_is_noop_and_idempotent(self):
        reindexer = make_reindexer(5)
        last = reindexer.storage.find_by_id(GLOBAL, 5)
        before = ranks(reindexer)

        reindexer.move_down(last)
        reindexer.move_down(last)

        assert ranks(reindexer) == before

    def test_move_missing_entity_raises(self):
        reindexer = make_reindexer(3)
        with pytest.raises(NotFoundError) as exc_info:
            reindexer.move_up(Item(id=99, order_column=2))

        assert exc_info.value.entity_id == 99
        assert exc_info.value.scope == GLOBAL

    def test_swap_round_trip(self):
        reindexer = make_reindexer(6)
        a = reindexer.storage.find_by_id(GLOBAL, 2)
        b = reindexer.storage.find_by_id(GLOBAL, 5)
        before = ranks(reindexer)

        reindexer.swap_order(a, b)
        assert (a.order_column, b.order_column) == (5, 2)

        reindexer.swap_order_with_model(a, b)
        assert ranks(reindexer) == before

    def test_swap_with_itself_is_noop(self):
        reindexer = make_reindexer(3)
        item = reindexer.storage.find_by_id(GLOBAL, 2)

        reindexer.swap_order(item, item)

        assert item.order_column == 2

    def test_swap_across_scopes_raises(self):
        reindexer = make_reindexer(config=OrderColumn.resolve({"group_column_name": "category_id"}))
        a = reindexer.initialize_on_create(reindexer.storage.add(Item(category_id=1)))
        b = reindexer.initialize_on_create(reindexer.storage.add(Item(category_id=2)))

        with pytest.raises(CrossScopeError) as exc_info:
            reindexer.swap_order(a, b)

        assert exc_info.value.left == CATEGORY_1
        assert exc_info.value.right == CATEGORY_2

    def test_move_to_start_shifts_only_prefix(self):
        reindexer = make_reindexer(20)

        moved = reindexer.move_to_start(reindexer.storage.find_by_id(GLOBAL, 3))

        assert moved.order_column == 1
        result = ranks(reindexer)
        assert result[1] == 2
        assert result[2] == 3
        assert all(result[i] == i for i in range(4, 21))

    def test_move_to_end_shifts_only_suffix(self):
        reindexer = make_reindexer(20)

        moved = reindexer.move_to_end(reindexer.storage.find_by_id(GLOBAL, 3))

        assert moved.order_column == 20
        result = ranks(reindexer)
        assert result[1] == 1
        assert result[2] == 2
        assert all(result[i] == i - 1 for i in range(4, 21))

    def test_move_to_start_when_first_is_noop(self):
        reindexer = make_reindexer(3)
        before = ranks(reindexer)

        reindexer.move_to_start(reindexer.storage.find_by_id(GLOBAL, 1))

        assert ranks(reindexer) == before

    def test_move_to_inserts_unranked_entity(self):
        reindexer = make_reindexer(3)
        item = reindexer.storage.add(Item(name="new"))

        reindexer.move_to(item, 2)

        assert [i.name for i in reindexer.ordered_sequence(GLOBAL)] == ["1", "new", "2", "3"]
        assert_contiguous(reindexer)

    def test_move_to_end_appends_unranked_entity(self):
        reindexer = make_reindexer(3)
        item = reindexer.storage.add(Item(name="new"))

        moved = reindexer.move_to_end(item)

        assert moved.order_column == 4
        assert [i.name for i in reindexer.ordered_sequence(GLOBAL)] == ["1", "2", "3", "new"]
        assert_contiguous(reindexer)

    def test_previous_and_next(self):
        reindexer = make_reindexer(3)
        middle = reindexer.storage.find_by_id(GLOBAL, 2)

        assert reindexer.previous(middle).id == 1
        assert reindexer.next(middle).id == 3
        assert reindexer.previous(reindexer.storage.find_by_id(GLOBAL, 1)) is None


class TestSetNewOrder:

    def test_shuffled_permutation(self):
        reindexer = make_reindexer(20)
        new_order = list(range(1, 21))
        random.Random(7).shuffle(new_order)

        reindexer.set_new_order(GLOBAL, new_order)

        assert reindexer.storage.fetch_ordered_ids(GLOBAL) == new_order

    def test_omitted_ids_keep_their_rank(self):
        reindexer = make_reindexer(5)

        changed = reindexer.set_new_order(GLOBAL, [3, 1])

        assert changed == 2
        assert ranks(reindexer) == {3: 1, 1: 2, 2: 2, 4: 4, 5: 5}

    def test_unknown_ids_do_not_consume_ranks(self):
        reindexer = make_reindexer(3)

        reindexer.set_new_order(GLOBAL, [42, 3, 43, 2, 1])

        assert reindexer.storage.fetch_ordered_ids(GLOBAL) == [3, 2, 1]

    def test_ids_of_other_scope_are_skipped(self):
        reindexer = make_reindexer(config=OrderColumn.resolve({"group_column_name": "category_id"}))
        for category_id in (1, 1, 2):
            reindexer.initialize_on_create(reindexer.storage.add(Item(category_id=category_id)))

        reindexer.set_new_order(CATEGORY_1, [3, 2, 1])

        assert ranks(reindexer, CATEGORY_1) == {2: 1, 1: 2}
        assert ranks(reindexer, CATEGORY_2) == {3: 1}

    def test_duplicate_ids_first_occurrence_wins(self):
        reindexer = make_reindexer(3)

        reindexer.set_new_order(GLOBAL, [2, 3, 2, 1])

        assert reindexer.storage.fetch_ordered_ids(GLOBAL) == [2, 3, 1]
        assert_contiguous(reindexer)

    def test_start_rank(self):
        reindexer = make_reindexer(4)

        reindexer.set_new_order(GLOBAL, [4, 3], start_rank=3)

        assert reindexer.storage.fetch_ordered_ids(GLOBAL) == [1, 2, 4, 3]

    def test_empty_ids(self):
        reindexer = make_reindexer(3)
        assert reindexer.set_new_order(GLOBAL, []) == 0

    def test_start_rank_below_one_raises(self):
        reindexer = make_reindexer(3)
        with pytest.raises(ValueError):
            reindexer.set_new_order(GLOBAL, [1], start_rank=0)


class TestContiguity:

    def test_random_operations_keep_ranks_contiguous(self):
        reindexer = make_reindexer(12)
        rng = random.Random(12)
        operations = [
            lambda item: reindexer.move_up(item),
            lambda item: reindexer.move_down(item),
            lambda item: reindexer.move_to_start(item),
            lambda item: reindexer.move_to_end(item),
            lambda item: reindexer.move_to(item, rng.randint(-3, 15)),
            lambda item: reindexer.move_before(item, reindexer.storage.find_by_id(GLOBAL, rng.randint(1, 12))),
            lambda item: reindexer.move_after(item, reindexer.storage.find_by_id(GLOBAL, rng.randint(1, 12))),
            lambda item: reindexer.swap_order(item, reindexer.storage.find_by_id(GLOBAL, rng.randint(1, 12))),
        ]

        for _ in range(200):
            item = reindexer.storage.find_by_id(GLOBAL, rng.randint(1, 12))
            rng.choice(operations)(item)
            assert_contiguous(reindexer)

    def test_normalize_after_remove(self):
        reindexer = make_reindexer(6)
        reindexer.storage.remove(2)
        reindexer.storage.remove(5)

        assert reindexer.normalize(GLOBAL) == 3
        assert reindexer.storage.fetch_ordered_ids(GLOBAL) == [1, 3, 4, 6]
        assert_contiguous(reindexer)

    def test_close_gap(self):
        reindexer = make_reindexer(5)
        removed = reindexer.storage.remove(2)

        assert reindexer.close_gap(removed) == 3
        assert_contiguous(reindexer)


class TestStorageFailure:

    def test_storage_error_propagates_and_ranks_are_restored(self):
        storage = FailingStorage()
        reindexer = Reindexer(storage)
        for i in range(5):
            reindexer.initialize_on_create(storage.add(Item(name=str(i))))
        before = ranks(reindexer)

        with pytest.raises(StorageError) as exc_info:
            reindexer.move_to_start(storage.find_by_id(GLOBAL, 4))

        assert isinstance(exc_info.value.original_error, ConnectionError)
        assert ranks(reindexer) == before

    def test_boundary_noop_does_not_touch_storage(self):
        storage = FailingStorage()
        reindexer = Reindexer(storage)
        for i in range(3):
            reindexer.initialize_on_create(storage.add(Item(name=str(i))))

        reindexer.move_to_start(storage.find_by_id(GLOBAL, 1))
        reindexer.move_to_end(storage.find_by_id(GLOBAL, 3))

        assert_contiguous(reindexer)


class TestScopeValidation:
    """分组模型必须按分组操作"""

    @pytest.fixture
    def grouped(self):
        reindexer = make_reindexer(config=OrderColumn.resolve({"group_column_name": "category_id"}))
        for category_id in (1, 1, 2, 2):
            reindexer.initialize_on_create(reindexer.storage.add(Item(category_id=category_id)))
        return reindexer

    def test_normalize_requires_group_scope(self, grouped):
        with pytest.raises(ValueError):
            grouped.normalize(GLOBAL)

        assert list(ranks(grouped, CATEGORY_2).values()) == [1, 2]

    def test_set_new_order_requires_group_scope(self, grouped):
        with pytest.raises(ValueError):
            grouped.set_new_order(GLOBAL, [4, 3, 2, 1])

        assert ranks(grouped, CATEGORY_1) == {1: 1, 2: 2}

    def test_queries_require_group_scope(self, grouped):
        with pytest.raises(ValueError):
            grouped.highest_rank(GLOBAL)
        with pytest.raises(ValueError):
            grouped.lowest_rank(SortScope.of({"shop_id": 1}))
        with pytest.raises(ValueError):
            list(grouped.ordered_sequence(GLOBAL))

    def test_group_scope_on_ungrouped_model_raises(self):
        reindexer = make_reindexer(2)

        with pytest.raises(ValueError):
            reindexer.normalize(CATEGORY_1)

    def test_normalize_per_group(self, grouped):
        grouped.storage.remove(1)

        assert grouped.normalize(CATEGORY_1) == 1
        assert ranks(grouped, CATEGORY_1) == {2: 1}
        assert ranks(grouped, CATEGORY_2) == {3: 1, 4: 2}
