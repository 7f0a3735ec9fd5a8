import logging
from dataclasses import dataclass
from enum import Enum
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)

# =================================================================================================================
# Constraint kinds
# =================================================================================================================


class ConstraintKind(str, Enum):
    UNIQUE = "unique"
    NOT_NULL = "not_null"
    FOREIGN_KEY = "foreign_key"
    CHECK = "check"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ConstraintViolation:
    """
    What exactly failed in the database.

    Used for logs and metrics only; the client-facing body is built from the
    driver message by the mapper.
    """
    kind: ConstraintKind
    constraint_name: str | None = None
    detail: str = ""


# =================================================================================================================
# Postgres error code mapping
# =================================================================================================================

# https://www.postgresql.org/docs/current/errcodes-appendix.html
class PostgresErrorCodes(str, Enum):
    UNIQUE_VIOLATION = "23505"
    NOT_NULL_VIOLATION = "23502"
    FOREIGN_KEY_VIOLATION = "23503"
    CHECK_VIOLATION = "23514"


PGCODE_KIND_MAP = {
    PostgresErrorCodes.UNIQUE_VIOLATION: ConstraintKind.UNIQUE,
    PostgresErrorCodes.NOT_NULL_VIOLATION: ConstraintKind.NOT_NULL,
    PostgresErrorCodes.FOREIGN_KEY_VIOLATION: ConstraintKind.FOREIGN_KEY,
    PostgresErrorCodes.CHECK_VIOLATION: ConstraintKind.CHECK,
}


# =================================================================================================================
# Classifiers
# =================================================================================================================

def _match_any(msg: str, keywords: list[str]) -> bool:
    return any(keyword in msg for keyword in keywords)


def _sqlstate(orig) -> str | None:
    # psycopg exposes `pgcode`/`sqlstate`, asyncpg (through the SQLAlchemy adapter) `sqlstate`
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _classify_from_postgres_diag(orig) -> tuple[ConstraintKind | None, str | None]:
    """
    Classify a Postgres integrity error based on SQLSTATE and diagnostics.
    """
    pgcode = _sqlstate(orig)
    if not pgcode:
        return None, None

    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) if diag else None
    if constraint_name is None:
        constraint_name = getattr(orig, "constraint_name", None)

    kind = PGCODE_KIND_MAP.get(pgcode)
    if kind is not None:
        logger.debug("Postgres integrity diagnostic", extra={"pgcode": pgcode, "constraint_name": constraint_name})
        return kind, constraint_name

    logger.warning(
        "Unknown Postgres integrity error code encountered",
        extra={"pgcode": pgcode, "constraint_name": constraint_name},
    )
    return ConstraintKind.UNKNOWN, constraint_name


def _classify_from_generic_message(msg: str) -> ConstraintKind:
    """
    Classify an integrity error from its message (SQLite, MySQL, HSQLDB, ...).
    """
    normalized = msg.lower()

    if _match_any(normalized, ["unique constraint", "unique failed", "unique violation", "duplicate"]):
        return ConstraintKind.UNIQUE

    if _match_any(normalized, ["not null constraint", "not null", "null value in column"]):
        return ConstraintKind.NOT_NULL

    if _match_any(normalized, ["foreign key constraint", "foreign key", "is not present in table"]):
        return ConstraintKind.FOREIGN_KEY

    if _match_any(normalized, ["check constraint", "check failed"]):
        return ConstraintKind.CHECK

    logger.warning("Unknown integrity error message encountered", extra={"message_snippet": (msg or "")[:200]})
    return ConstraintKind.UNKNOWN


def classify_integrity_error(exc: IntegrityError) -> ConstraintViolation:
    """
    Heuristically classify a SQLAlchemy IntegrityError.

    Postgres SQLSTATE codes win when present; otherwise the driver message is
    matched against known phrases.
    """
    orig = exc.orig
    detail = str(orig) if orig is not None else ""

    kind, constraint_name = _classify_from_postgres_diag(orig)
    if kind is None:
        kind = _classify_from_generic_message(detail)

    return ConstraintViolation(kind=kind, constraint_name=constraint_name, detail=detail)
