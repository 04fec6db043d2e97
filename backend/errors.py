import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from .guard import StoreUnavailable, describe_store

logger = logging.getLogger(__name__)


def is_store_timeout(exc: PyMongoError) -> bool:
    if isinstance(exc, ConnectionFailure):
        return True
    message = str(exc).lower()
    return "timed out" in message or "timeout" in message


def _unavailable(diagnostic: dict, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"error": "Service unavailable", "message": message, "diagnostic": diagnostic},
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreUnavailable)
    async def store_unavailable(request: Request, exc: StoreUnavailable):
        logger.error("Rejected %s %s: database unavailable (%s)",
                     request.method, request.url.path, exc.diagnostic)
        return _unavailable(exc.diagnostic, exc.message)

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key(request: Request, exc: DuplicateKeyError):
        details = exc.details or {}
        fields = list((details.get("keyPattern") or details.get("keyValue") or {}).keys())
        return JSONResponse(
            status_code=400,
            content={
                "error": "Duplicate Entry",
                "message": "This record already exists",
                "field": fields[0] if fields else None,
            },
        )

    @app.exception_handler(PyMongoError)
    async def store_error(request: Request, exc: PyMongoError):
        if is_store_timeout(exc):
            logger.error("Database timeout during %s %s: %s", request.method, request.url.path, exc)
            return _unavailable(
                describe_store(request.app.state.supervisor),
                "Database connection timeout. Please try again later.",
            )
        return await unexpected_error(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        message = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', [])[1:]) or 'body'}: {err.get('msg')}" for err in errors
        )
        return JSONResponse(status_code=400, content={"error": "Bad Request", "message": message, "details": errors})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        settings = request.app.state.settings
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": str(exc) if settings.is_development else "Something went wrong!",
            },
        )
