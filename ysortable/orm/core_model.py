"""
ORM基础模型

提供主键、自动表名以及常用的CRUD操作
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, Query, Session, declarative_base, declared_attr, mapped_column

if TYPE_CHECKING:
    from typing_extensions import Self

from ysortable.log import get_logger

from .utils import to_snake_case

logger = get_logger()

# 声明基类
Base = declarative_base()


class CoreModel(Base):
    """ORM基础模型类

    提供功能：
    - 自增整数主键
    - 自动表名生成（驼峰转下划线）
    - 常用CRUD操作方法（save / delete / get / get_all / refresh）
    - 事务上下文中的提交抑制

    使用示例:
        from ysortable.orm import CoreModel, init_database

        init_database("sqlite:///./test.db")

        class HomeBanner(CoreModel):
            title: Mapped[str] = mapped_column(String(100))

        banner = HomeBanner(title="首页")
        banner.save(commit=True)
    """
    __abstract__ = True

    # 允许非 Mapped[] 的类型注解（如 _session）
    __allow_unmapped__ = True

    # 注意：query 属性由 init_database() 或测试夹具通过 scoped_session.query_property() 设置
    if TYPE_CHECKING:
        query: ClassVar[Query[Self]]

    _session: Session = None

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """驼峰命名转下划线"""
        name = cls.__name__
        if '_' in name:
            raise ValueError(f'{name}字符中包含下划线，无法转换')
        return to_snake_case(name)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        comment="创建时间"
    )

    def __repr__(self):
        return f"<{self.__class__.__name__} id={self.id}>"

    @property
    def session(self) -> Session:
        """获取当前session

        优先从 query 属性获取 session，如果不可用则从全局 scoped_session 获取
        """
        if self._session is None:
            query = getattr(self.__class__, "query", None)
            if query is not None:
                self._session = query.session
            else:
                from .db_session import db_manager
                self._session = db_manager.get_session()
        return self._session

    # ==================== CRUD 操作方法 ====================

    def save(self, commit: bool = False) -> Self:
        """保存对象（自动判断新增或更新）

        Args:
            commit: 是否立即提交，默认False
                   - 无事务时：执行 session.commit()
                   - 有事务时：commit 被抑制，但会自动 flush

        Returns:
            self: 返回自身，支持链式调用
        """
        self.session.add(self)
        self.__is_commit(commit)
        return self

    @classmethod
    def save_all(cls, objects: list, commit: bool = False) -> list:
        """批量保存对象（新增或更新），按列表顺序加入 session"""
        if not objects:
            return objects
        cls.query.session.add_all(objects)
        cls.__cls_commit(commit)
        return objects

    def delete(self, commit: bool = False):
        """删除对象"""
        self.session.delete(self)
        self.__is_commit(commit)

    def refresh(self, attribute_names: list = None) -> Self:
        """从数据库重新加载对象状态

        Args:
            attribute_names: 可选，指定要刷新的属性列表

        Returns:
            self: 返回自身，支持链式调用
        """
        if attribute_names:
            self.session.refresh(self, attribute_names)
        else:
            self.session.refresh(self)
        return self

    @classmethod
    def get(cls, id: int) -> Optional[Self]:
        """根据ID获取对象，不存在返回None"""
        return cls.query.filter_by(id=id).first()

    @classmethod
    def get_all(cls) -> List[Self]:
        """获取所有记录（按主键升序）"""
        return cls.query.order_by(cls.id).all()

    # ==================== 提交控制 ====================

    def __is_commit(self, commit=False):
        """实例方法：根据参数决定是否提交

        当在事务上下文中且启用了提交抑制时，commit=True 会被忽略，
        但会自动执行 flush 以获取自动生成的字段。
        """
        if commit:
            if self._cls_should_suppress_commit():
                self.session.flush()
                return
            self.session.commit()

    @classmethod
    def __cls_commit(cls, commit=False):
        """类方法：根据参数决定是否提交"""
        if commit:
            if cls._cls_should_suppress_commit():
                cls.query.session.flush()
                return
            cls.query.session.commit()

    @classmethod
    def _cls_should_suppress_commit(cls) -> bool:
        """检查是否应该抑制提交"""
        from .transaction import get_current_transaction
        tx = get_current_transaction()
        if tx is not None and tx.should_suppress_commit():
            logger.debug("commit=True 被事务上下文抑制")
            return True
        return False
