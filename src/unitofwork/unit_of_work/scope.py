"""
Session-scope manager.

Wraps one unit of work (usually one request handler invocation) in an
open -> {commit | rollback} -> close cycle over a single AsyncSession:

    async with UnitOfWorkScope(factory, UnitOfWork(transactional=True)) as session:
        session.add(entity)
    # committed here; rolled back instead if the block raised

The scope never swallows a failure. It only guarantees that cleanup (rollback,
unbind, close) runs on every exit path, including task cancellation, before the
original exception continues upward to the HTTP error handlers.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from unitofwork.database.context import bind_session, unbind_session, has_bound_session, current_session
from unitofwork.database.session import ManagedSessionFactory, SessionFactoryRegistry
from .descriptor import UnitOfWork

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWorkScope:
    """
    Async context manager owning exactly one session for its lifetime.

    If the current context already has a session bound for the same factory
    (a unit-of-work-aware service called from a unit-of-work handler), the scope
    joins that session instead of opening a second one, and leaves commit/close
    to the outer scope.
    """

    def __init__(self, factory: ManagedSessionFactory, unit_of_work: UnitOfWork | None = None):
        self.factory = factory
        self.unit_of_work = unit_of_work or UnitOfWork(value=factory.name)
        self.session: AsyncSession | None = None
        self._token = None
        self._owner = False
        self._started = 0.0

    async def __aenter__(self) -> AsyncSession:
        if has_bound_session(self.factory.name):
            self.session = current_session(self.factory.name)
            logger.debug("uow.join", extra={"session_factory": self.factory.name})
            return self.session

        # acquisition failures propagate as-is; nothing to clean up yet
        self.session = self.factory.open(self.unit_of_work)
        self._owner = True
        self._token = bind_session(self.factory.name, self.session)
        self._started = time.perf_counter()

        logger.debug(
            "uow.open",
            extra={
                "session_factory": self.factory.name,
                "read_only": self.unit_of_work.read_only,
                "transactional": self.unit_of_work.transactional,
            },
        )
        return self.session

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if not self._owner:
            return False

        try:
            if exc is None:
                await self._on_success()
            else:
                await self._rollback(exc)
        finally:
            await self._close()

        # never suppress: the original failure keeps propagating
        return False

    async def _on_success(self) -> None:
        if not self.unit_of_work.commits:
            return
        try:
            await self.session.commit()
        except BaseException as exc:
            # commit-time failures (e.g. deferred constraint violations) still roll back
            await self._rollback(exc)
            raise
        logger.debug("uow.commit", extra={"session_factory": self.factory.name})

    async def _rollback(self, exc: BaseException) -> None:
        if not self.unit_of_work.rolls_back:
            return
        try:
            await self.session.rollback()
        except Exception:
            # log and move on; the original failure is what the caller must see
            logger.exception("Failed to rollback session", extra={"session_factory": self.factory.name})
            return
        logger.info(
            "uow.rollback",
            extra={"session_factory": self.factory.name, "error_type": type(exc).__name__},
        )

    async def _close(self) -> None:
        try:
            await self.session.close()
        except Exception:
            logger.exception("Failed to close session", extra={"session_factory": self.factory.name})
        finally:
            unbind_session(self._token)
            self._token = None
            self._owner = False
            duration_ms = int((time.perf_counter() - self._started) * 1000)
            logger.debug("uow.close", extra={"session_factory": self.factory.name, "duration_ms": duration_ms})


def unit_of_work(
    descriptor: UnitOfWork | None = None,
    *,
    registry: SessionFactoryRegistry,
    **options: Any,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorate an async callable so each call runs inside its own UnitOfWorkScope.

    Works for FastAPI path operations and for plain service methods alike.
    `functools.wraps` keeps `__wrapped__`, so FastAPI still sees the original
    signature when resolving parameters.

    Usage:
        @router.put("/dogs/{name}")
        @unit_of_work(UnitOfWork(transactional=True), registry=registry)
        async def create(name: str, dog: DogIn): ...

        # keyword shortcut
        @unit_of_work(read_only=True, registry=registry)
        async def find(name: str): ...

    The commit happens before the wrapped call returns, so a constraint violation
    raised at commit time reaches the exception handlers instead of being lost
    after the response was sent.
    """
    if descriptor is None:
        descriptor = UnitOfWork(**options)
    elif options:
        raise TypeError("Pass either a UnitOfWork descriptor or keyword options, not both")

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            # resolved per call so factories registered after decoration are found
            factory = registry.get(descriptor.value)
            async with UnitOfWorkScope(factory, descriptor):
                return await func(*args, **kwargs)

        wrapper.__unit_of_work__ = descriptor
        return wrapper

    return decorator
