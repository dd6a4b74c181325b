"""数据库会话管理测试

测试 DatabaseManager 单例的初始化、db_session_scope 的提交/回滚，
以及 SQLite 引擎上保存点的回滚。
"""

import pytest
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from ysortable.orm import (
    Base,
    CoreModel,
    SortFieldMixin,
    SortableMixin,
    activate_sort_on_create_hook,
    db_manager,
    db_session_scope,
    get_engine,
    init_database,
)
from ysortable.orm.db_session import DatabaseManager
from ysortable.orm.utils import to_snake_case


class DbBanner(CoreModel, SortFieldMixin, SortableMixin):
    """会话测试轮播图"""
    __tablename__ = "test_db_banner"
    __table_args__ = {"extend_existing": True}

    title: Mapped[str] = mapped_column(String(100))


def banner_ranks():
    return {b.title: b.order_column for b in DbBanner.query.all()}


@pytest.fixture
def clean_manager():
    db_manager.dispose()
    yield db_manager
    db_manager.dispose()


class TestDatabaseManager:

    def test_singleton(self):
        assert DatabaseManager() is db_manager

    def test_uninitialized(self, clean_manager):
        assert clean_manager.is_initialized is False

        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            clean_manager.get_session()

    def test_url_is_required(self, clean_manager):
        with pytest.raises(ValueError):
            init_database("")

    def test_init_memory_database(self, clean_manager):
        engine, session_scope = init_database("sqlite:///:memory:")

        assert clean_manager.is_initialized is True
        assert get_engine() is engine
        assert isinstance(engine.pool, StaticPool)
        assert clean_manager.get_session() is session_scope()

    def test_remove_session_is_idempotent(self, clean_manager):
        clean_manager.remove_session()

        init_database("sqlite:///:memory:")
        first = clean_manager.get_session()
        clean_manager.remove_session()
        clean_manager.remove_session()

        assert clean_manager.get_session() is not first


class TestSessionScope:
    """通过 init_database 建立的会话上使用排序模型"""

    @pytest.fixture(autouse=True)
    def database(self, clean_manager):
        init_database("sqlite:///:memory:")
        Base.metadata.create_all(bind=get_engine())
        activate_sort_on_create_hook()
        yield

    def create_banners(self):
        with db_session_scope() as session:
            session.add_all([DbBanner(title=t) for t in "abc"])

    def test_commit_on_success(self):
        self.create_banners()

        assert [b.title for b in DbBanner.get_sorted()] == ["a", "b", "c"]
        assert banner_ranks() == {"a": 1, "b": 2, "c": 3}

    def test_reorder_inside_scope(self):
        self.create_banners()

        with db_session_scope():
            DbBanner.query.filter_by(title="a").first().move_to_end()

        assert banner_ranks() == {"b": 1, "c": 2, "a": 3}

    def test_rollback_on_error(self):
        self.create_banners()

        with pytest.raises(ValueError):
            with db_session_scope():
                DbBanner.query.filter_by(title="a").first().move_to_end()
                raise ValueError("放弃")

        assert banner_ranks() == {"a": 1, "b": 2, "c": 3}

    def test_outer_rollback_undoes_savepoint(self):
        self.create_banners()
        session = db_manager.get_session()

        session.query(DbBanner).filter_by(title="c").first().move_to_start()
        assert banner_ranks() == {"c": 1, "a": 2, "b": 3}
        session.rollback()

        assert banner_ranks() == {"a": 1, "b": 2, "c": 3}

    def test_uncommitted_work_is_discarded_on_remove(self):
        db_manager.get_session().add(DbBanner(title="a"))

        db_manager.remove_session()

        assert DbBanner.query.count() == 0


class TestSnakeCase:

    @pytest.mark.parametrize("name, expected", [
        ("HomeBanner", "home_banner"),
        ("APIMenuItem", "api_menu_item"),
        ("Banner", "banner"),
    ])
    def test_to_snake_case(self, name, expected):
        assert to_snake_case(name) == expected

    def test_tablename_from_class_name(self):
        class SortedTag(CoreModel):
            name: Mapped[str] = mapped_column(String(50))

        assert SortedTag.__tablename__ == "sorted_tag"
