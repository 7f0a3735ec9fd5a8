# src/unitofwork/api/error_handlers.py
"""
FastAPI exception handlers for persistence failures.

Only constraint violations (IntegrityError) are translated here: they are
client-caused and become 400 Bad Request with an ErrorMessage body. Every other
failure is left to FastAPI's default handling (500), and no handler here ever
exposes a traceback or SQL statement.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from unitofwork.exceptions.mapper import constraint_violation_to_error_message, log_constraint_violation

logger = logging.getLogger(__name__)


async def constraint_violation_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """
    400 Bad Request for constraint violations.
    Payload: {"code": 400, "message": "<driver message naming the constraint/table>"}
    """
    log_constraint_violation(exc, method=request.method, path=request.url.path)
    error = constraint_violation_to_error_message(exc)
    return JSONResponse(status_code=error.code, content=error.to_payload())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IntegrityError, constraint_violation_handler)
