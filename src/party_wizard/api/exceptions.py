"""HTTP error responses for the wizard API.

Wizard exceptions are mapped to status codes here, so route handlers simply
let them propagate:

- ``ProtocolError`` -> 400
- ``APIError`` -> its own status code
- ``NotFoundError`` -> 404
- ``ValidationError`` -> 422
- any other ``PartyWizardError`` -> 500

Every error body has the shape ``{"error", "message", "detail", "timestamp"}``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from ..exceptions import NotFoundError, PartyWizardError, ProtocolError, ValidationError

logger = logging.getLogger(__name__)

_STATUS_CODES: tuple[tuple[type[PartyWizardError], int], ...] = (
    (ProtocolError, 400),
    (NotFoundError, 404),
    (ValidationError, 422),
)


class APIError(PartyWizardError):
    """Error raised by the HTTP layer itself.

    Attributes:
        status_code: HTTP status code
        error_code: Machine-readable error code
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        detail: dict[str, Any] | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message, context=detail)
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__

    @property
    def detail(self) -> dict[str, Any]:
        return self.context

    def to_dict(self) -> dict[str, Any]:
        return _error_body(self.error_code, str(self), self.context)


class MissingUserError(APIError):
    """The request did not identify the user."""

    def __init__(self) -> None:
        super().__init__("X-User-Id header is required", status_code=401)


def status_for(exc: PartyWizardError) -> int:
    if isinstance(exc, APIError):
        return exc.status_code
    for error_type, status in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status
    return 500


def _error_body(error: str, message: str, detail: dict[str, Any]) -> dict[str, Any]:
    return {
        "error": error,
        "message": message,
        "detail": detail,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def wizard_error_handler(request: Request, exc: PartyWizardError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("Request to %s failed: %s", request.url.path, exc, exc_info=exc)
    else:
        logger.info("Rejected request to %s: %s", request.url.path, exc)

    if isinstance(exc, APIError):
        content = exc.to_dict()
    else:
        content = _error_body(type(exc).__name__, str(exc), exc.context)
    return JSONResponse(status_code=status, content=content)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("HTTPException", str(exc.detail), {}),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Hide unexpected errors behind a generic message; the full error is logged."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content=_error_body(
            "InternalServerError",
            "An unexpected error occurred",
            {"exception_type": type(exc).__name__},
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PartyWizardError, wizard_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)
