"""Exception handlers translating query failures into JSON errors."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

logger = logging.getLogger(__name__)


def _error_message(exc: SQLAlchemyError) -> str:
    # DBAPI errors carry the driver message; avoid echoing the SQL statement.
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig).strip()
    return str(exc)


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Fail only the current request; other dashboard calls are unaffected."""

    message = _error_message(exc)
    logger.error("%s %s failed: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=500, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
