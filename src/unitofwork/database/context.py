"""
Ambient session binding.

A unit of work binds its session here so nested data-access code (DAOs, services)
can find it without the session being threaded through every call.

We use one `contextvars.ContextVar` holding an immutable mapping of
session-factory name -> session. ContextVars are isolated per asyncio task, so two
concurrent requests never observe each other's session, and `reset(token)`
restores exactly the previous binding even when scopes nest.
"""

import contextvars
from types import MappingProxyType
from typing import Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from unitofwork.exceptions.base import SessionNotBoundError
from unitofwork.unit_of_work.descriptor import DEFAULT_SESSION_FACTORY

_EMPTY: Mapping[str, AsyncSession] = MappingProxyType({})

_bound_sessions_ctx: contextvars.ContextVar[Mapping[str, AsyncSession]] = contextvars.ContextVar(
    "bound_sessions", default=_EMPTY
)


def bind_session(name: str, session: AsyncSession) -> contextvars.Token:
    """
    Bind `session` under `name` in the current context.

    Returns:
        token: pass it to unbind_session() to restore the previous binding.
    """
    current = dict(_bound_sessions_ctx.get())
    current[name] = session
    return _bound_sessions_ctx.set(MappingProxyType(current))


def unbind_session(token: contextvars.Token) -> None:
    _bound_sessions_ctx.reset(token)


def has_bound_session(name: str = DEFAULT_SESSION_FACTORY) -> bool:
    return name in _bound_sessions_ctx.get()


def current_session(name: str = DEFAULT_SESSION_FACTORY) -> AsyncSession:
    """
    Return the session bound for `name`.

    Raises:
        SessionNotBoundError: when called outside of a unit of work.
    """
    try:
        return _bound_sessions_ctx.get()[name]
    except KeyError:
        raise SessionNotBoundError(name) from None


def bound_session_names() -> list[str]:
    return sorted(_bound_sessions_ctx.get())
