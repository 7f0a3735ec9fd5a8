from dataclasses import dataclass
from enum import Enum

DEFAULT_SESSION_FACTORY = "default"


class FlushMode(str, Enum):
    # flush pending changes before queries (SQLAlchemy autoflush)
    AUTO = "auto"
    # only flush when the unit of work commits
    COMMIT = "commit"


class CacheMode(str, Enum):
    # reuse objects already present in the identity map
    NORMAL = "normal"
    # overwrite identity-map objects with freshly loaded rows (populate_existing)
    REFRESH = "refresh"


@dataclass(frozen=True)
class UnitOfWork:
    """
    Per-handler unit-of-work configuration.

    Attributes:
        value: name of the session factory the handler works against.
        read_only: queries only; the session is never committed and flushing
            pending changes raises ReadOnlySessionError.
        transactional: commit on normal return, roll back on failure. When False
            the session is simply closed and pending changes are discarded.
        cache_mode: identity-map behaviour for DAO queries.
        flush_mode: when pending changes are sent to the database.
    """
    value: str = DEFAULT_SESSION_FACTORY
    read_only: bool = False
    transactional: bool = True
    cache_mode: CacheMode = CacheMode.NORMAL
    flush_mode: FlushMode = FlushMode.AUTO

    @property
    def commits(self) -> bool:
        return self.transactional and not self.read_only

    @property
    def rolls_back(self) -> bool:
        return self.transactional
