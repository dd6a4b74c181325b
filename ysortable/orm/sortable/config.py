"""排序配置

OrderColumn 描述一个模型的排序约定：排序字段名、创建时是否自动排序、分组字段。
配置在模型类定义时解析一次，之后不可变。

配置映射（模型的 ``__sortable__`` 属性）:
    {
        "order_column_name": "order_column",   # 排序字段名
        "sort_when_creating": True,            # 创建时是否自动分配排序号
        "group_column_name": None,             # 分组字段，str 或 list
    }

未提供的键依次回退到进程级 SortableSettings 和内置默认值。
"""

from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator, model_validator

from ysortable.config import SortableSettings, get_sortable_settings

from .exceptions import ConfigurationError

# 配置映射允许的键
CONFIG_KEYS = ("order_column_name", "sort_when_creating", "group_column_name")


def _check_column_name(value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("字段名不能为空")
    value = value.strip()
    if not value.isidentifier():
        raise ValueError(f"'{value}' 不是合法的字段名")
    return value


class OrderColumn(BaseModel):
    """排序配置（不可变）

    Attributes:
        order_column_name: 排序字段名
        sort_when_creating: 创建时是否自动分配排序号，None 视为 True
        group_columns: 分组字段元组，空元组表示全表排序

    使用示例:
        config = OrderColumn.resolve({"group_column_name": "category_id"})
        config.rank_column             # "order_column"
        config.group_columns           # ("category_id",)
        config.should_sort_when_creating()
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    order_column_name: str = Field(default="order_column", description="排序字段名")
    sort_when_creating: Optional[StrictBool] = Field(default=True, description="创建时是否自动排序")
    group_columns: Tuple[str, ...] = Field(default=(), description="分组字段")

    @field_validator("order_column_name")
    @classmethod
    def validate_order_column_name(cls, v: str) -> str:
        return _check_column_name(v)

    @field_validator("group_columns")
    @classmethod
    def validate_group_columns(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        columns = tuple(_check_column_name(column) for column in v)
        if len(set(columns)) != len(columns):
            raise ValueError(f"分组字段重复: {list(columns)}")
        return columns

    @model_validator(mode="after")
    def validate_group_not_rank(self) -> "OrderColumn":
        if self.order_column_name in self.group_columns:
            raise ValueError(f"分组字段不能与排序字段 '{self.order_column_name}' 相同")
        return self

    # ==================== 解析 ====================

    @classmethod
    def resolve(
        cls,
        mapping: Optional[Mapping[str, Any]] = None,
        defaults: Optional[SortableSettings] = None,
    ) -> "OrderColumn":
        """从配置映射解析排序配置

        Args:
            mapping: 配置映射，None 表示全部使用默认值
            defaults: 默认配置，不传则使用进程级 SortableSettings

        Returns:
            OrderColumn 实例

        Raises:
            ConfigurationError: 配置映射包含未知键或取值不合法
        """
        if mapping is None:
            mapping = {}
        if not isinstance(mapping, Mapping):
            raise ConfigurationError(f"配置必须是映射类型，实际为 {type(mapping).__name__}")

        unknown = [key for key in mapping if key not in CONFIG_KEYS]
        if unknown:
            raise ConfigurationError(f"未知的配置项，可用配置项: {', '.join(CONFIG_KEYS)}", field=str(unknown[0]))

        if defaults is None:
            defaults = get_sortable_settings()

        order_column_name = mapping.get("order_column_name")
        if order_column_name is None:
            order_column_name = defaults.order_column_name

        if "sort_when_creating" in mapping:
            sort_when_creating = mapping["sort_when_creating"]
        else:
            sort_when_creating = defaults.sort_when_creating

        if "group_column_name" in mapping:
            group_column_name = mapping["group_column_name"]
        else:
            group_column_name = defaults.group_column_name

        try:
            return cls(
                order_column_name=order_column_name,
                sort_when_creating=sort_when_creating,
                group_columns=cls._normalize_group(group_column_name),
            )
        except ValidationError as e:
            error = e.errors()[0]
            field = str(error["loc"][0]) if error.get("loc") else None
            if field == "group_columns":
                field = "group_column_name"
            raise ConfigurationError(error["msg"], field=field) from e

    @staticmethod
    def _normalize_group(value: Union[str, List[str], Tuple[str, ...], None]) -> Tuple[Any, ...]:
        """把分组配置统一为元组"""
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        if isinstance(value, (list, tuple)):
            if not value:
                raise ConfigurationError("分组字段列表不能为空", field="group_column_name")
            return tuple(value)
        raise ConfigurationError(
            f"必须是字符串或字符串列表，实际为 {type(value).__name__}",
            field="group_column_name",
        )

    # ==================== 访问器 ====================

    def should_sort_when_creating(self) -> bool:
        """创建记录时是否自动分配排序号（未设置时为 True）"""
        if self.sort_when_creating is None:
            return True
        return self.sort_when_creating

    def rank_column_name(self) -> str:
        return self.order_column_name

    def group_column_name(self) -> Union[str, List[str], None]:
        """分组字段，保持配置时的形式（单字段为 str，多字段为 list）"""
        if not self.group_columns:
            return None
        if len(self.group_columns) == 1:
            return self.group_columns[0]
        return list(self.group_columns)

    @property
    def rank_column(self) -> str:
        return self.order_column_name

    @property
    def is_grouped(self) -> bool:
        return bool(self.group_columns)


__all__ = [
    "OrderColumn",
    "CONFIG_KEYS",
]
