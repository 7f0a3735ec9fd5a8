"""
Exceptions raised by the unit-of-work layer itself.

Persistence failures coming from the database (IntegrityError, OperationalError, ...)
are never wrapped: the scope manager re-raises them unchanged so the HTTP layer can
decide how to present them. The classes below only cover misuse of the session
machinery.
"""


class UnitOfWorkError(Exception):
    """
    Base exception for session-scope errors.

    - message: human-friendly message
    - session_factory: optional name of the session factory involved
    """

    def __init__(self, message: str, *, session_factory: str | None = None):
        super().__init__(message)
        self.message = message
        self.session_factory = session_factory

    def __str__(self) -> str:
        if self.session_factory:
            return f"{self.message} (session factory: {self.session_factory})"
        return self.message


class SessionNotBoundError(UnitOfWorkError):
    """Raised when data access runs outside of any unit of work."""

    def __init__(self, session_factory: str):
        super().__init__("No session is bound to the current context", session_factory=session_factory)


class SessionFactoryNotFoundError(UnitOfWorkError):
    def __init__(self, session_factory: str):
        super().__init__("Unknown session factory", session_factory=session_factory)


class ReadOnlySessionError(UnitOfWorkError):
    """Raised when a read-only unit of work tries to flush pending changes."""

    def __init__(self, session_factory: str | None = None):
        super().__init__("Cannot write in a read-only unit of work", session_factory=session_factory)


__all__ = [
    "UnitOfWorkError",
    "SessionNotBoundError",
    "SessionFactoryNotFoundError",
    "ReadOnlySessionError",
]
