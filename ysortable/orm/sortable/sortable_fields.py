"""排序字段定义

提供标准的排序字段定义 Mixin，简化模型定义。

使用示例:
    from ysortable.orm import CoreModel
    from ysortable.orm.sortable import SortFieldMixin, SortableMixin

    class Banner(CoreModel, SortFieldMixin, SortableMixin):
        title: Mapped[str] = mapped_column(String(100))
        # order_column 字段由 SortFieldMixin 自动提供
"""

from typing import Optional

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column


class SortFieldMixin:
    """排序字段 Mixin

    提供默认名称的 order_column 字段。
    使用其他字段名时（``__sortable__ = {"order_column_name": "position"}``）需要自行定义字段。

    字段说明:
        - order_column: 排序号，从 1 开始连续编号，值越小越靠前；
          为空表示尚未参与排序
    """

    order_column: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        index=True,
        comment="排序号"
    )


__all__ = [
    "SortFieldMixin",
]
