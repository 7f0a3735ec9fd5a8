"""
Base data-access object bound to the ambient unit of work.

A DAO never opens, commits or closes sessions. It asks the context for the session
bound by the enclosing UnitOfWorkScope, so the same DAO instance can be shared by
all requests while every request works against its own session.

Related entities are never loaded implicitly on attribute access (async sessions
cannot do that). Instead `get()` decides up front, from the session's lazy-loading
policy, whether relationships are fetched with a follow-up SELECT ... IN query or
left empty; `initialize()` is the explicit follow-up fetch for anything else.
"""

import logging
from typing import Any, Generic, Sequence, Type, TypeVar

from sqlalchemy import Select, and_, inspect as sa_inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import raiseload, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from unitofwork.database.base import Base
from unitofwork.database.context import current_session
from unitofwork.database.session import INFO_CACHE_MODE, INFO_LAZY_LOADING
from unitofwork.exceptions.base import UnitOfWorkError
from unitofwork.unit_of_work.descriptor import CacheMode, DEFAULT_SESSION_FACTORY

# Type variable for the model class
ModelType = TypeVar("ModelType", bound=Base)

logger = logging.getLogger(__name__)


class BaseDAO(Generic[ModelType]):
    """
    Generic DAO for one mapped model.

    Type Parameters:
        ModelType: The SQLAlchemy model class this DAO manages.
    """

    def __init__(self, model: Type[ModelType], session_factory: str = DEFAULT_SESSION_FACTORY):
        """
        Args:
            model: the mapped class itself (e.g. Dog, not Dog()).
            session_factory: name of the factory whose bound session this DAO uses.
        """
        self.model = model
        self.session_factory = session_factory

    def current_session(self) -> AsyncSession:
        return current_session(self.session_factory)

    # =================================================================================================================
    # Loading options
    # =================================================================================================================

    def _lazy_loading(self, session: AsyncSession) -> bool:
        return session.info.get(INFO_LAZY_LOADING, True)

    def _relationship_options(self, session: AsyncSession) -> list:
        strategy = selectinload if self._lazy_loading(session) else raiseload
        return [strategy(getattr(self.model, rel.key)) for rel in sa_inspect(self.model).relationships]

    def _empty_unloaded_relationships(self, entity: ModelType) -> None:
        # unloaded relationships become committed empty values, so they serialize
        # as null (or []) instead of raising once the session is gone
        state = sa_inspect(entity)
        for rel in state.mapper.relationships:
            if rel.key in state.unloaded:
                set_committed_value(entity, rel.key, [] if rel.uselist else None)

    def _prepare(self, statement: Select, session: AsyncSession) -> Select:
        if session.info.get(INFO_CACHE_MODE) is CacheMode.REFRESH:
            statement = statement.execution_options(populate_existing=True)
        return statement

    # =================================================================================================================
    # Queries
    # =================================================================================================================

    async def get(self, id: Any) -> ModelType | None:
        """
        Load one entity by primary key, or None.

        Relationships follow the session factory's lazy-loading policy:
          - enabled: fetched with a follow-up SELECT ... IN, so they serialize fully
          - disabled: not fetched at all, so they serialize as null
        """
        session = self.current_session()
        options = self._relationship_options(session)
        populate_existing = session.info.get(INFO_CACHE_MODE) is CacheMode.REFRESH

        entity = await session.get(self.model, id, options=options, populate_existing=populate_existing)
        if entity is not None and not self._lazy_loading(session):
            self._empty_unloaded_relationships(entity)

        logger.debug(
            "dao.get",
            extra={"model": self.model.__name__, "found": entity is not None},
        )
        return entity

    async def list(self, statement: Select | None = None) -> Sequence[ModelType]:
        session = self.current_session()
        statement = statement if statement is not None else select(self.model)
        result = await session.execute(self._prepare(statement, session))
        return result.scalars().all()

    async def unique_result(self, statement: Select) -> ModelType | None:
        """
        Return the single entity matched by `statement`, or None.

        Raises:
            sqlalchemy.exc.MultipleResultsFound: if more than one row matches.
        """
        session = self.current_session()
        result = await session.execute(self._prepare(statement, session))
        return result.scalars().one_or_none()

    # =================================================================================================================
    # Writes
    # =================================================================================================================

    async def persist(self, entity: ModelType) -> ModelType:
        """
        Add `entity` to the current unit of work.

        With FlushMode.AUTO the INSERT/UPDATE is sent immediately, so constraint
        violations surface here; with FlushMode.COMMIT they surface when the
        unit of work commits.
        """
        session = self.current_session()
        session.add(entity)
        if session.autoflush:
            await session.flush()

        logger.debug("dao.persist", extra={"model": self.model.__name__, "flushed": session.autoflush})
        return entity

    async def initialize(self, entity: ModelType, *attribute_names: str) -> ModelType:
        """
        Explicitly fetch unloaded relationships of `entity`.

        With no attribute names every relationship of the model is fetched,
        including ones get() left empty. Column attributes, and any unflushed
        changes to them, are left untouched.

        Raises:
            UnitOfWorkError: if `entity` is not persistent in the current session.
        """
        mapper = sa_inspect(self.model)
        names = list(attribute_names) or [rel.key for rel in mapper.relationships]
        if not names:
            return entity

        session = self.current_session()
        state = sa_inspect(entity)
        if not state.persistent or entity not in session:
            raise UnitOfWorkError(
                f"Only persistent {self.model.__name__} instances can be initialized",
                session_factory=self.session_factory,
            )

        # refresh() would re-apply the options the entity was loaded with (raiseload),
        # so expire the attributes and reload them with an explicit strategy instead
        session.expire(entity, names)
        identity = state.identity
        statement = (
            select(self.model)
            .where(and_(*(column == value for column, value in zip(mapper.primary_key, identity))))
            .options(*(selectinload(getattr(self.model, name)) for name in names))
        )
        await session.execute(statement)

        logger.debug("dao.initialize", extra={"model": self.model.__name__, "attributes": names})
        return entity
