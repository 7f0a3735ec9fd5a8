import logging

from sqlalchemy.exc import IntegrityError

from unitofwork.api.schemas import ErrorMessage
from .integrity_classifier import classify_integrity_error

logger = logging.getLogger(__name__)

BAD_REQUEST = 400


def constraint_violation_detail(exc: IntegrityError) -> str:
    """
    Return the storage-layer message for a constraint violation.

    Uses the driver exception (`exc.orig`) rather than `str(exc)`, which would
    also carry the SQL statement and bound parameters. Only the first line is
    kept: Postgres appends a DETAIL line with the offending key values.
    """
    orig = exc.orig
    raw = str(orig) if orig is not None else ""
    lines = [line.strip() for line in raw.splitlines() if line.strip()]
    if lines:
        return lines[0]
    return "constraint violation"


def constraint_violation_to_error_message(exc: IntegrityError) -> ErrorMessage:
    """
    Map a constraint violation to a 400 ErrorMessage.

    Pure: no I/O, never raises, and equivalent failures produce equal messages.
    """
    return ErrorMessage(code=BAD_REQUEST, message=constraint_violation_detail(exc))


def log_constraint_violation(exc: IntegrityError, **context) -> None:
    violation = classify_integrity_error(exc)
    # INFO: constraint violations are client-caused, not server faults
    logger.info(
        "mapper.constraint_violation",
        extra={
            "kind": violation.kind.value,
            "constraint": violation.constraint_name,
            **context,
        },
    )
    # The raw driver message may contain row values; keep it at DEBUG only
    logger.debug("mapper.constraint_violation_raw", extra={"raw": violation.detail})
