r"""
Per-request SQLAlchemy units of work for FastAPI.

Everything an application needs is importable from here:

    from unitofwork import SessionBundle, UnitOfWork, BaseDAO, current_session
"""

from .unit_of_work.descriptor import UnitOfWork, FlushMode, CacheMode, DEFAULT_SESSION_FACTORY
from .database.base import Base
from .database.context import current_session, has_bound_session
from .database.session import (
    ManagedSessionFactory,
    SessionFactoryRegistry,
    build_engine,
    build_session_factory,
)
from .unit_of_work.scope import UnitOfWorkScope, unit_of_work
from .repositories.base_dao import BaseDAO
from .api.schemas import ErrorMessage
from .api.error_handlers import constraint_violation_handler, register_exception_handlers
from .exceptions.mapper import constraint_violation_to_error_message
from .exceptions.base import (
    UnitOfWorkError,
    SessionNotBoundError,
    SessionFactoryNotFoundError,
    ReadOnlySessionError,
)
from .bundle import SessionBundle

__all__ = [
    "UnitOfWork",
    "FlushMode",
    "CacheMode",
    "DEFAULT_SESSION_FACTORY",
    "Base",
    "current_session",
    "has_bound_session",
    "ManagedSessionFactory",
    "SessionFactoryRegistry",
    "build_engine",
    "build_session_factory",
    "UnitOfWorkScope",
    "unit_of_work",
    "BaseDAO",
    "ErrorMessage",
    "constraint_violation_handler",
    "register_exception_handlers",
    "constraint_violation_to_error_message",
    "UnitOfWorkError",
    "SessionNotBoundError",
    "SessionFactoryNotFoundError",
    "ReadOnlySessionError",
    "SessionBundle",
]
