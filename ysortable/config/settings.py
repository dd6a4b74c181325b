"""
配置模块
提供排序库的默认配置，业务项目可以继承并覆盖
"""

from typing import List, Optional, Union

from pydantic import Field
from pydantic_settings import BaseSettings


class SortableSettings(BaseSettings):
    """排序默认配置

    作为所有排序模型的全局默认值。模型上的 ``__sortable__`` 映射优先级更高。

    使用示例:
        from ysortable.config import SortableSettings

        sortable_config = SortableSettings(
            order_column_name="position",
            sort_when_creating=True,
        )

    环境变量:
        YSORT_SORTABLE_ORDER_COLUMN_NAME=position
        YSORT_SORTABLE_SORT_WHEN_CREATING=false
    """
    order_column_name: str = Field(default="order_column", description="排序字段名")
    sort_when_creating: bool = Field(default=True, description="创建记录时是否自动分配排序号")
    group_column_name: Optional[Union[str, List[str]]] = Field(
        default=None,
        description="分组字段名，None 表示全表统一排序"
    )

    class Config:
        env_prefix = "YSORT_SORTABLE_"


class AppSettings(BaseSettings):
    """应用基础配置

    将排序配置放在 sortable 节点下，业务项目继承后只需添加项目特有的配置项。
    YAML 中本库不认识的节点（如业务项目自己的 database）会被忽略。

    配置优先级（从高到低）:
        环境变量 > YAML 配置文件 > 代码中的默认值

    内置子配置及环境变量前缀:
        - sortable:  SortableSettings   (YSORT_SORTABLE_)

    YAML 配置示例 (config/settings.yaml):
        sortable:
          order_column_name: "position"
          sort_when_creating: true
    """
    sortable: SortableSettings = SortableSettings()

    class Config:
        extra = "ignore"


# 进程级排序默认配置
_sortable_settings: Optional[SortableSettings] = None


def configure_sortable(settings: Optional[SortableSettings] = None, **kwargs) -> SortableSettings:
    """安装进程级排序默认配置

    必须在定义排序模型之前调用，模型在类定义时解析配置。

    Args:
        settings: 配置对象，不传则使用 kwargs 创建
        **kwargs: SortableSettings 字段

    Returns:
        生效的配置对象
    """
    global _sortable_settings
    _sortable_settings = settings if settings is not None else SortableSettings(**kwargs)
    return _sortable_settings


def get_sortable_settings() -> SortableSettings:
    """获取进程级排序默认配置（未配置时按环境变量和默认值创建）"""
    global _sortable_settings
    if _sortable_settings is None:
        _sortable_settings = SortableSettings()
    return _sortable_settings


def reset_sortable_settings() -> None:
    """清除进程级排序默认配置（主要用于测试）"""
    global _sortable_settings
    _sortable_settings = None
