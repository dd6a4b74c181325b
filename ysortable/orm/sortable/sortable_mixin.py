"""排序管理 Mixin

提供通用的排序操作方法，支持简单列表排序和分组排序。

使用示例:
    from ysortable.orm import CoreModel
    from ysortable.orm.sortable import SortFieldMixin, SortableMixin

    # 简单列表排序（无分组）
    class Banner(CoreModel, SortFieldMixin, SortableMixin):
        title: Mapped[str] = mapped_column(String(100))

    banner = Banner.get(1)
    banner.move_order_up()      # 上移一位
    banner.move_order_down()    # 下移一位
    banner.move_to_start()      # 置顶
    banner.move_to_end()        # 置底

    # 分组排序（同一分类内排序）
    class Product(CoreModel, SortFieldMixin, SortableMixin):
        __sortable__ = {"group_column_name": "category_id"}

        category_id: Mapped[int] = mapped_column(Integer)

    product = Product.get(1)
    product.move_order_up()  # 在同一分类内上移
"""

from collections import OrderedDict
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, object_session

from ysortable.log import get_logger

from .config import OrderColumn
from .reindexer import Reindexer
from .scope import SortScope
from .storage import SQLAlchemyStorage

logger = get_logger("ysortable.orm.sortable")


class SortableMixin:
    """排序管理 Mixin

    为模型提供排序操作能力。配置在类定义时解析，配置错误会在导入模型时抛出 ConfigurationError。

    字段要求（使用者需定义或使用 SortFieldMixin）:
        - order_column: int  排序号（字段名可通过配置修改）

    可配置属性:
        __sortable__: 排序配置映射
            - order_column_name: 排序字段名，默认 "order_column"
            - sort_when_creating: 创建时是否自动排序，默认 True
            - group_column_name: 分组字段，str 或 list，默认 None（不分组）

    使用示例:
        class Product(CoreModel, SortFieldMixin, SortableMixin):
            __sortable__ = {"group_column_name": ["shop_id", "category_id"]}

        # 批量重排序（前端拖拽后）
        Product.set_new_order([3, 1, 2], group_filters={"shop_id": 1, "category_id": 2})
    """

    __sortable__: ClassVar[Optional[Mapping[str, Any]]] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._sortable_config = OrderColumn.resolve(getattr(cls, "__sortable__", None))

    # ==================== 配置与存储 ====================

    @classmethod
    def sortable_config(cls) -> OrderColumn:
        """获取本模型的排序配置"""
        config = cls.__dict__.get("_sortable_config")
        if config is None:
            config = OrderColumn.resolve(getattr(cls, "__sortable__", None))
            cls._sortable_config = config
        return config

    @classmethod
    def sortable_storage(cls, session: Session = None) -> SQLAlchemyStorage:
        """获取本模型的排序存储"""
        return SQLAlchemyStorage(cls, session=session, config=cls.sortable_config())

    @classmethod
    def _cls_reindexer(cls, session: Session = None) -> Reindexer:
        return Reindexer(cls.sortable_storage(session))

    def _reindexer(self) -> Reindexer:
        # 优先使用对象所在的 session
        return self._cls_reindexer(object_session(self))

    @classmethod
    def _scope_from_filters(cls, group_filters: Optional[Mapping[str, Any]]) -> Optional[SortScope]:
        """把分组过滤条件转为排序范围，None 表示未指定"""
        if group_filters is None:
            return None
        config = cls.sortable_config()
        unknown = [key for key in group_filters if key not in config.group_columns]
        if unknown:
            raise ValueError(f"{cls.__name__} 没有分组字段: {unknown}")
        missing = [column for column in config.group_columns if column not in group_filters]
        if missing:
            raise ValueError(f"{cls.__name__} 缺少分组条件: {missing}")
        return SortScope(tuple((column, group_filters[column]) for column in config.group_columns))

    # ==================== 实例方法 ====================

    def sort_scope(self) -> SortScope:
        """当前记录所在的排序范围"""
        return SortScope.from_entity(self, self.sortable_config().group_columns)

    def should_sort_when_creating(self) -> bool:
        return self.sortable_config().should_sort_when_creating()

    def get_highest_order_number(self) -> int:
        """当前排序范围内的最大排序号，空范围返回 0"""
        return self._reindexer().highest_rank(self.sort_scope())

    def init_sort_order(self):
        """为新记录分配排序号（放到末尾）

        已有排序号或配置关闭了创建时排序时不做修改。
        启用 activate_sort_on_create_hook() 后无需手动调用。

        Example:
            banner = Banner(title="新轮播图")
            banner.init_sort_order().save(commit=True)
        """
        return self._reindexer().initialize_on_create(self)

    def move_order_up(self):
        """上移一位（已在最前时不做修改）"""
        return self._reindexer().move_up(self)

    def move_order_down(self):
        """下移一位（已在最后时不做修改）"""
        return self._reindexer().move_down(self)

    def move_to_start(self):
        """置顶"""
        return self._reindexer().move_to_start(self)

    def move_to_end(self):
        """置底"""
        return self._reindexer().move_to_end(self)

    def move_to(self, position: int):
        """移动到指定位置（1 开始）

        Example:
            banner.move_to(3)  # 移动到第3位
        """
        return self._reindexer().move_to(self, position)

    def move_before(self, other: "SortableMixin"):
        return self._reindexer().move_before(self, other)

    def move_after(self, other: "SortableMixin"):
        return self._reindexer().move_after(self, other)

    def swap_order_with_model(self, other: "SortableMixin") -> None:
        """与另一条同组记录交换排序号

        Raises:
            CrossScopeError: 不在同一排序范围
        """
        self._reindexer().swap_order(self, other)

    def get_previous(self) -> Optional["SortableMixin"]:
        return self._reindexer().previous(self)

    def get_next(self) -> Optional["SortableMixin"]:
        return self._reindexer().next(self)

    # ==================== 类方法 ====================

    @classmethod
    def set_new_order(
        cls,
        ids: Iterable[Any],
        start_rank: int = 1,
        group_filters: Mapping[str, Any] = None,
    ) -> int:
        """批量重排序

        根据传入的 ID 顺序重新设置排序号，适用于前端拖拽排序后提交新顺序的场景。
        分组模型未传 group_filters 时，使用列表中第一条存在的记录所在的分组。

        Args:
            ids: ID 列表，按期望的顺序排列
            start_rank: 起始排序号
            group_filters: 分组条件

        Returns:
            排序号发生变化的记录数

        Example:
            count = Banner.set_new_order([3, 1, 2])
            Banner.set_new_order([12, 11], start_rank=11)
        """
        ids = list(ids)
        reindexer = cls._cls_reindexer()
        scope = cls._scope_from_filters(group_filters)
        if scope is None and cls.sortable_config().is_grouped:
            for entity_id in ids:
                entity = reindexer.storage.session.get(cls, entity_id)
                if entity is not None:
                    scope = reindexer.scope_of(entity)
                    break
            else:
                logger.warning(f"{cls.__name__} 批量排序的记录都不存在，无法确定分组: {ids}")
                return 0
        return reindexer.set_new_order(scope or SortScope.global_scope(), ids, start_rank)

    @classmethod
    def swap_order(cls, a: "SortableMixin", b: "SortableMixin") -> None:
        """交换两条记录的排序号"""
        cls._cls_reindexer(object_session(a)).swap_order(a, b)

    @classmethod
    def ordered(cls, group_filters: Mapping[str, Any] = None):
        """按排序号升序的查询

        不传分组条件时返回全部记录，分组模型先按分组字段排序。

        Example:
            Banner.ordered().all()
            Product.ordered({"category_id": 1}).limit(10).all()
        """
        return cls._ordered_query(group_filters, desc=False)

    @classmethod
    def get_sorted(cls, group_filters: Mapping[str, Any] = None, desc: bool = False) -> List["SortableMixin"]:
        """获取排序后的记录列表

        Args:
            group_filters: 分组过滤条件
            desc: 是否降序
        """
        return cls._ordered_query(group_filters, desc=desc).all()

    @classmethod
    def _ordered_query(cls, group_filters: Optional[Mapping[str, Any]], desc: bool):
        config = cls.sortable_config()
        rank_column = getattr(cls, config.rank_column)
        query = cls.query
        scope = cls._scope_from_filters(group_filters)
        if scope is None:
            query = query.order_by(*[getattr(cls, column) for column in config.group_columns])
        else:
            for column_name, value in scope.groups:
                column = getattr(cls, column_name)
                if value is None:
                    query = query.filter(column.is_(None))
                else:
                    query = query.filter(column == value)
        if desc:
            return query.order_by(rank_column.desc(), cls.id.desc())
        return query.order_by(rank_column.is_(None), rank_column, cls.id)

    @classmethod
    def normalize_sort_order(cls, group_filters: Mapping[str, Any] = None) -> int:
        """规范化排序号

        消除序号间隙，从 1 开始重新连续编号。分组模型不传分组条件时逐组处理。

        Returns:
            更新的记录数

        Example:
            # 删除一些记录后，排序号可能不连续: 1, 3, 7, 10
            Banner.normalize_sort_order()
            # 规范化后变成: 1, 2, 3, 4
        """
        reindexer = cls._cls_reindexer()
        scope = cls._scope_from_filters(group_filters)
        if scope is not None:
            return reindexer.normalize(scope)

        config = cls.sortable_config()
        if not config.is_grouped:
            return reindexer.normalize(SortScope.global_scope())

        group_columns = [getattr(cls, column) for column in config.group_columns]
        rows = reindexer.storage.session.query(*group_columns).distinct().all()
        return sum(
            reindexer.normalize(SortScope(tuple(zip(config.group_columns, row))))
            for row in rows
        )


# ==================== 创建时排序钩子 ====================

def _assign_ranks_before_flush(session: Session, flush_context, instances) -> None:
    """为待插入且没有排序号的记录分配排序号

    同一范围内的多条新记录按加入 session 的顺序依次编号。
    """
    pending = [obj for obj in session.new if isinstance(obj, SortableMixin)]
    if not pending:
        return

    groups: Dict[Tuple[type, SortScope], List[SortableMixin]] = OrderedDict()
    for obj in sorted(pending, key=lambda o: inspect(o).insert_order):
        config = obj.sortable_config()
        if not config.should_sort_when_creating():
            continue
        if getattr(obj, config.rank_column, None) is not None:
            continue
        groups.setdefault((type(obj), obj.sort_scope()), []).append(obj)

    with session.no_autoflush:
        for (model, scope), objects in groups.items():
            storage = model.sortable_storage(session)
            rank = storage.max_rank(scope)
            for obj in objects:
                rank += 1
                setattr(obj, storage.config.rank_column, rank)
            logger.debug(f"{model.__name__} {scope} 新记录分配排序号 {rank - len(objects) + 1}..{rank}")


def activate_sort_on_create_hook() -> None:
    """启用创建时自动排序（对所有 Session 生效，重复调用无副作用）

    Example:
        activate_sort_on_create_hook()

        Banner(title="a").save(commit=True)   # order_column = 1
        Banner(title="b").save(commit=True)   # order_column = 2
    """
    if not event.contains(Session, "before_flush", _assign_ranks_before_flush):
        event.listen(Session, "before_flush", _assign_ranks_before_flush)
        logger.debug("创建时排序钩子已启用")


def deactivate_sort_on_create_hook() -> None:
    """关闭创建时自动排序"""
    if event.contains(Session, "before_flush", _assign_ranks_before_flush):
        event.remove(Session, "before_flush", _assign_ranks_before_flush)
        logger.debug("创建时排序钩子已关闭")


def is_sort_on_create_hook_active() -> bool:
    return event.contains(Session, "before_flush", _assign_ranks_before_flush)


__all__ = [
    "SortableMixin",
    "activate_sort_on_create_hook",
    "deactivate_sort_on_create_hook",
    "is_sort_on_create_hook_active",
]
