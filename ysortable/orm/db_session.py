"""
数据库会话

排序存储和模型在没有显式传入 session 时，从这里取当前作用域的 session。

公开 API:
- db_manager: 数据库管理器单例
- init_database(): 创建引擎与 scoped_session
- get_engine(): 获取数据库引擎
- db_session_scope(): 上下文管理器，结束时提交或回滚并移除 session
- enable_sqlite_savepoints(): 让 pysqlite 引擎正确支持 SAVEPOINT
"""

from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ysortable.log import get_logger

_logger = get_logger("ysortable.orm.session")

__all__ = [
    'db_manager',
    'init_database',
    'get_engine',
    'db_session_scope',
    'enable_sqlite_savepoints',
]


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """让 SQLite 引擎由 SQLAlchemy 自己发出 BEGIN

    pysqlite 驱动默认延迟 BEGIN，释放最外层 SAVEPOINT 时会直接提交，
    排序操作的保存点因此无法被外层回滚。关闭驱动的事务管理后由 begin 事件发出 BEGIN。
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


class DatabaseManager:
    """数据库管理器（单例）

    使用示例:
        from ysortable.orm import db_manager

        db_manager.init("sqlite:///./app.db")
        session = db_manager.get_session()
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._engine = None
            cls._instance._session_scope = None
        return cls._instance

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._engine

    @property
    def session_scope(self) -> scoped_session:
        if self._session_scope is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._session_scope

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None and self._session_scope is not None

    def init(
        self,
        database_url: str,
        echo: bool = False,
        scopefunc: Callable = None,
        auto_setup_query: bool = True,
    ):
        """初始化数据库连接

        Args:
            database_url: 数据库连接URL
            echo: 是否输出SQL语句
            scopefunc: session 作用域函数，默认按线程隔离
            auto_setup_query: 是否设置 CoreModel.query 属性

        Returns:
            tuple: (engine, session_scope)
        """
        if not database_url:
            raise ValueError("database_url 是必需的")

        if database_url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # 内存数据库只能共用一个连接
                kwargs["poolclass"] = StaticPool
            self._engine = enable_sqlite_savepoints(create_engine(database_url, echo=echo, **kwargs))
        else:
            self._engine = create_engine(database_url, echo=echo, pool_pre_ping=True)
        _logger.info(f"数据库引擎创建成功: {self._engine.url!r}")

        self._session_scope = scoped_session(
            sessionmaker(autocommit=False, autoflush=True, bind=self._engine),
            scopefunc=scopefunc,
        )

        if auto_setup_query:
            from .core_model import CoreModel
            CoreModel.query = self._session_scope.query_property()

        return self._engine, self._session_scope

    def get_session(self) -> Session:
        """获取当前作用域的 session"""
        return self.session_scope()

    def remove_session(self) -> None:
        """关闭并移除当前作用域的 session，未初始化时不做任何事"""
        if self._session_scope is not None:
            self._session_scope.remove()

    def dispose(self):
        """释放引擎与 session（主要用于测试）"""
        self.remove_session()
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_scope = None


db_manager = DatabaseManager()


def init_database(database_url: str, **kwargs):
    """初始化数据库连接，参数同 DatabaseManager.init"""
    return db_manager.init(database_url, **kwargs)


def get_engine() -> Engine:
    return db_manager.engine


@contextmanager
def db_session_scope(auto_commit: bool = True) -> Generator[Session, None, None]:
    """session 上下文管理器

    成功时提交（auto_commit=True），异常时回滚，最后移除 session。

    使用示例:
        with db_session_scope():
            Banner.get(1).move_to_end()
    """
    session = db_manager.get_session()
    try:
        yield session
        if auto_commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        db_manager.remove_session()
