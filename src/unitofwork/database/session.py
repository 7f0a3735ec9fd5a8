import logging
from typing import Any, Callable, Iterator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
)

from unitofwork.config.settings import Settings
from unitofwork.exceptions.base import ReadOnlySessionError, SessionFactoryNotFoundError
from unitofwork.unit_of_work.descriptor import UnitOfWork, FlushMode

logger = logging.getLogger(__name__)

# Keys stored in `session.info` by ManagedSessionFactory.open()
INFO_SESSION_FACTORY = "session_factory"
INFO_READ_ONLY = "read_only"
INFO_CACHE_MODE = "cache_mode"
INFO_LAZY_LOADING = "lazy_loading_enabled"


def _engine_kwargs(settings: Settings) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "echo": settings.SQLALCHEMY_ECHO,
        "pool_pre_ping": settings.DATABASE_POOL_PRE_PING,
    }
    # SQLite pools (StaticPool / SingletonThreadPool for :memory:) reject sizing arguments
    if not settings.is_sqlite:
        kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
        kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    return kwargs


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores FOREIGN KEY clauses unless enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the AsyncEngine described by `settings`.
    """
    url = settings.database_url
    engine = create_async_engine(url, **_engine_kwargs(settings))

    if make_url(url).get_backend_name() == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    logger.debug(
        "db.engine.created",
        extra={"backend": engine.dialect.name, "echo": settings.SQLALCHEMY_ECHO},
    )
    return engine


@event.listens_for(Session, "before_flush")
def _reject_writes_in_read_only_sessions(session: Session, flush_context, instances) -> None:
    # Only sessions opened for a read-only unit of work carry the flag
    if not session.info.get(INFO_READ_ONLY):
        return
    if session.new or session.dirty or session.deleted:
        raise ReadOnlySessionError(session.info.get(INFO_SESSION_FACTORY))


class ManagedSessionFactory:
    """
    Storage-session provider for one database.

    Wraps an `async_sessionmaker` and opens sessions configured for a given unit of
    work (read-only flag, flush and cache mode, lazy-loading policy). The factory
    holds no per-request state; every call to open() returns a brand-new session.
    """

    def __init__(
        self,
        name: str,
        maker: Callable[[], AsyncSession],
        *,
        engine: AsyncEngine | None = None,
        lazy_loading_enabled: bool = True,
    ):
        self.name = name
        self.maker = maker
        self.engine = engine
        self.lazy_loading_enabled = lazy_loading_enabled

    def open(self, unit_of_work: UnitOfWork | None = None) -> AsyncSession:
        unit_of_work = unit_of_work or UnitOfWork(value=self.name)
        session = self.maker()

        session.info[INFO_SESSION_FACTORY] = self.name
        session.info[INFO_READ_ONLY] = unit_of_work.read_only
        session.info[INFO_CACHE_MODE] = unit_of_work.cache_mode
        session.info[INFO_LAZY_LOADING] = self.lazy_loading_enabled
        session.autoflush = unit_of_work.flush_mode is FlushMode.AUTO

        return session

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()

    def __repr__(self) -> str:
        return f"<ManagedSessionFactory(name={self.name!r}, lazy_loading_enabled={self.lazy_loading_enabled!r})>"


def build_session_factory(
    settings: Settings,
    engine: AsyncEngine | None = None,
    *,
    name: str | None = None,
    lazy_loading_enabled: bool | None = None,
) -> ManagedSessionFactory:
    """
    Build a ManagedSessionFactory from settings.

    `expire_on_commit=False` keeps loaded attributes readable after the unit of work
    has committed, because responses are serialized once the session is closed.
    """
    engine = engine or build_engine(settings)
    maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    if lazy_loading_enabled is None:
        lazy_loading_enabled = settings.LAZY_LOADING_ENABLED

    return ManagedSessionFactory(
        name or settings.SESSION_FACTORY_NAME,
        maker,
        engine=engine,
        lazy_loading_enabled=lazy_loading_enabled,
    )


class SessionFactoryRegistry:
    """
    Named session factories, one per database.
    """

    def __init__(self):
        self._factories: dict[str, ManagedSessionFactory] = {}

    def register(self, factory: ManagedSessionFactory) -> ManagedSessionFactory:
        if factory.name in self._factories:
            raise ValueError(f"Session factory {factory.name!r} is already registered")
        self._factories[factory.name] = factory
        logger.info("db.session_factory.registered", extra={"session_factory": factory.name})
        return factory

    def get(self, name: str) -> ManagedSessionFactory:
        try:
            return self._factories[name]
        except KeyError:
            raise SessionFactoryNotFoundError(name) from None

    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __iter__(self) -> Iterator[ManagedSessionFactory]:
        return iter(list(self._factories.values()))

    async def dispose_all(self) -> None:
        for factory in self:
            try:
                await factory.dispose()
            except Exception:
                logger.exception("Failed to dispose engine", extra={"session_factory": factory.name})
