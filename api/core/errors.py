"""
Error taxonomy and the FastAPI handlers that turn it into JSON responses.

Every error response has the shape `{"message": str, "errors"?: [...]}`.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str
    type: str = "invalid"


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_body(self) -> dict[str, Any]:
        return {"message": self.message}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Validation error"

    def __init__(self, errors: list[FieldError], message: str | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors)

    def to_body(self) -> dict[str, Any]:
        return {"message": self.message, "errors": [asdict(e) for e in self.errors]}


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class SyncError(RuntimeError):
    """
    Mirror write failure. Raised and caught inside `mirror/` only.
    """


def _field_path(loc: tuple[Any, ...] | list[Any]) -> str:
    # Drop the "body"/"query" prefix FastAPI adds.
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def field_errors_from_pydantic(errors: list[dict[str, Any]]) -> list[FieldError]:
    return [
        FieldError(
            field=_field_path(err.get("loc") or ()),
            message=str(err.get("msg") or "Invalid value."),
            type=str(err.get("type") or "invalid"),
        )
        for err in errors
    ]


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, AuthError):
        # The reason stays in the log; clients only see the generic message.
        logger.debug("auth_rejected path=%s reason=%s", request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"message": AuthError.message})
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError(field_errors_from_pydantic(list(exc.errors())))
    return JSONResponse(status_code=error.status_code, content=error.to_body())


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unexpected_error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
