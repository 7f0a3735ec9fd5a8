
# unitofwork/
# │
# ├── exceptions/
# │   ├── __init__.py
# │   ├── base.py                    # Session-scope errors (SessionNotBoundError, ReadOnlySessionError, ...)
# │   ├── integrity_classifier.py    # Classify IntegrityError into a ConstraintKind (logging only)
# │   └── mapper.py                  # Map a constraint violation to a 400 ErrorMessage

from .base import (
    UnitOfWorkError,
    SessionNotBoundError,
    SessionFactoryNotFoundError,
    ReadOnlySessionError,
)

__all__ = [
    "UnitOfWorkError",
    "SessionNotBoundError",
    "SessionFactoryNotFoundError",
    "ReadOnlySessionError",
]
