"""排序范围

排序范围是排序号互相比较、必须构成连续序列 1..N 的记录集合。
不分组时整张表是一个范围；分组时分组字段取值相同的记录构成一个范围。
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Tuple


@dataclass(frozen=True)
class SortScope:
    """排序范围（不可变、可哈希）

    Attributes:
        groups: 分组条件 ((字段名, 值), ...)，按配置中的分组字段顺序排列。
                空元组表示全局范围。值为 None 时按 IS NULL 匹配。

    使用示例:
        SortScope.global_scope()                    # 全表排序
        SortScope.of({"category_id": 1})            # 分类 1 内排序
        SortScope.of({"category_id": None})         # 未分类记录
    """

    groups: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def global_scope(cls) -> "SortScope":
        """全局范围（不分组）"""
        return cls(())

    @classmethod
    def of(cls, group_filters: Mapping[str, Any] = None) -> "SortScope":
        """根据分组条件字典创建范围"""
        if not group_filters:
            return cls.global_scope()
        return cls(tuple(group_filters.items()))

    @classmethod
    def from_entity(cls, entity: Any, group_columns: Iterable[str]) -> "SortScope":
        """根据实体的分组字段值创建范围"""
        return cls(tuple((column, getattr(entity, column, None)) for column in group_columns))

    @property
    def is_global(self) -> bool:
        return not self.groups

    def as_filters(self) -> Dict[str, Any]:
        """转为分组条件字典"""
        return dict(self.groups)

    def matches(self, entity: Any) -> bool:
        """判断实体是否属于此范围"""
        return all(getattr(entity, column, None) == value for column, value in self.groups)

    def __str__(self) -> str:
        if self.is_global:
            return "<global>"
        return "<" + ", ".join(f"{column}={value!r}" for column, value in self.groups) + ">"


__all__ = ["SortScope"]
