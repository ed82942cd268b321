import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.search.models import FilterValidationError

logger = logging.getLogger(__name__)


def invalid_filters(errors: list[FilterValidationError]) -> HTTPException:
    """400 response listing every filter problem, shared by search and saved searches."""
    return HTTPException(
        status_code=400,
        detail={
            "error": "Invalid filters",
            "validation_errors": [error.model_dump() for error in errors],
        },
    )


async def _duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    logger.warning("Duplicate key on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": "Conflicting record already exists"})


async def _database_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


def register_exception_handlers(app: FastAPI) -> None:
    # DuplicateKeyError subclasses PyMongoError; Starlette picks the most specific handler.
    app.add_exception_handler(DuplicateKeyError, _duplicate_key_handler)
    app.add_exception_handler(PyMongoError, _database_error_handler)
