"""配置模块

提供配置管理功能：
- SortableSettings: 排序默认配置（字段名、创建时排序、分组字段）
- AppSettings: 聚合配置，支持 YAML + 环境变量
- ConfigLoader: YAML 配置加载器

快速开始:
    from ysortable.config import AppSettings, load_yaml_config, configure_sortable

    settings = load_yaml_config("config/settings.yaml", AppSettings)
    configure_sortable(settings.sortable)

配置优先级: 环境变量 > YAML 文件 > 默认值
"""

from .settings import (
    AppSettings,
    SortableSettings,
    configure_sortable,
    get_sortable_settings,
    reset_sortable_settings,
)

from .loader import (
    ConfigLoader,
    load_yaml_config,
    load_sortable_config,
)

__all__ = [
    # Settings Classes
    "AppSettings",
    "SortableSettings",
    "configure_sortable",
    "get_sortable_settings",
    "reset_sortable_settings",

    # Config Loader
    "ConfigLoader",
    "load_yaml_config",
    "load_sortable_config",
]
