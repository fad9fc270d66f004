"""FastAPI entrypoint for transaction HTTP endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response

from backend.errors import TransactionError
from backend.factory import get_transaction_service
from shared import config as _config
from shared.config import DEFAULT_PAGE_SIZE
from shared.models import (
    ErrorCode,
    ErrorResponse,
    TransactionCreatePayload,
    TransactionPayload,
    TransactionRecord,
)


logger = logging.getLogger(__name__)
logging.getLogger("backend").setLevel(_config.log_level())


_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DUPLICATE_RECORD: 409,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INTERNAL: 500,
    ErrorCode.UNAVAILABLE: 503,
}


def _error_response(
    code: ErrorCode, message: str, details: list[dict[str, object]] | None = None
) -> JSONResponse:
    body = ErrorResponse(code=code, message=message, details=details)
    return JSONResponse(
        status_code=_STATUS_BY_CODE[code],
        content=jsonable_encoder(body, exclude_none=True),
    )


def _field_name(loc: tuple[object, ...] | list[object]) -> str:
    parts = list(loc)
    if parts and parts[0] == "body":
        # JSON decode errors carry the byte offset right after "body".
        parts = parts[1:]
        while parts and isinstance(parts[0], int):
            parts = parts[1:]
    elif parts and parts[0] in ("query", "path"):
        parts = parts[1:]
    return ".".join(str(part) for part in parts) or "body"


def _format_validation_errors(errors: list[dict[str, object]]) -> tuple[str, list[dict[str, object]]]:
    """Collapse every field violation into one message plus a detail list."""

    details: list[dict[str, object]] = []
    for error in errors:
        details.append(
            {
                "field": _field_name(error.get("loc", ())),
                "message": str(error.get("msg", "invalid value")),
            }
        )
    message = "Validation failed: " + "".join(
        f"{detail['field']} - {detail['message']};" for detail in details
    )
    return message, details


app = FastAPI(title="Transactions API")

ALLOW_ORIGINS = _config.cors_allow_origins()


@app.middleware("http")
async def log_http_requests(request: Request, call_next):
    """Log incoming requests, HTTP status codes and unexpected errors."""

    logger.info("http_request_received method=%s path=%s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "http_request_failed method=%s path=%s",
            request.method,
            request.url.path,
        )
        raise

    logger.info(
        "http_response_sent method=%s path=%s status_code=%s",
        request.method,
        request.url.path,
        response.status_code,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("cors_allow_origins=%s", ALLOW_ORIGINS)


@app.exception_handler(TransactionError)
async def handle_transaction_error(request: Request, exc: TransactionError) -> JSONResponse:
    """Map backend error kinds onto their HTTP status codes."""

    if exc.code is ErrorCode.INTERNAL:
        logger.error(
            "transaction_backend_error method=%s path=%s message=%s",
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
        return _error_response(exc.code, f"Internal server error: {exc.message}")
    return _error_response(exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    message, details = _format_validation_errors(list(exc.errors()))
    logger.warning("request_validation_failed path=%s message=%s", request.url.path, message)
    return _error_response(ErrorCode.INVALID_REQUEST, message, details)


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for unhandled exceptions."""

    logger.exception(
        "unhandled_exception method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
        exc_info=exc,
    )
    return _error_response(ErrorCode.INTERNAL, f"Internal server error: {exc}")


@app.get("/health")
def health() -> dict[str, str]:
    """Healthcheck endpoint."""

    return {"status": "ok"}


@app.post("/transactions", response_model=TransactionRecord)
def create_transaction(payload: TransactionCreatePayload) -> TransactionRecord:
    return get_transaction_service().create_transaction(payload)


@app.get("/transactions/{transaction_id}", response_model=TransactionRecord)
def get_transaction(transaction_id: UUID) -> TransactionRecord:
    return get_transaction_service().get_transaction(transaction_id)


@app.get("/transactions", response_model=list[TransactionRecord])
def list_transactions(page: int = 0, size: int = DEFAULT_PAGE_SIZE) -> list[TransactionRecord]:
    return get_transaction_service().list_transactions(page, size)


@app.put("/transactions/{transaction_id}", response_model=TransactionRecord)
def update_transaction(transaction_id: UUID, payload: TransactionPayload) -> TransactionRecord:
    return get_transaction_service().update_transaction(transaction_id, payload)


@app.delete("/transactions/{transaction_id}")
def delete_transaction(transaction_id: UUID) -> Response:
    get_transaction_service().delete_transaction(transaction_id)
    return Response(status_code=200)
