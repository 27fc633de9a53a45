"""Error taxonomy and the JSON error envelope.

Every failure leaves the API as ``{"ok": false, "error": "...", "stage": "..."}``
plus optional diagnostic fields. Nothing here is fatal to the process.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

RESPONSE_BODY_TRUNCATE = 2000


class WatchboardError(Exception):
    """Base class for errors serialized into the ok:false envelope."""

    status_code: int = 500
    stage: str = "exception"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": False, "stage": self.stage, "error": self.message}
        body.update(self.details)
        return body


class ConfigError(WatchboardError):
    """Required secret or env value is missing."""

    status_code = 500
    stage = "config"


class UpstreamTransportError(WatchboardError):
    """Upstream answered non-2xx or with a body that is not JSON."""

    status_code = 502
    stage = "fetch"

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None, body: str = ""):
        super().__init__(
            message,
            {"status": status, "url": url, "body": (body or "")[:RESPONSE_BODY_TRUNCATE]},
        )
        self.status = status
        self.url = url


class UpstreamApiError(WatchboardError):
    """HTTP 200 whose header carries a non-success result code."""

    status_code = 502
    stage = "api-header"

    def __init__(self, result_code: str, result_msg: Optional[str] = None, url: Optional[str] = None):
        super().__init__(
            f"Upstream result code {result_code}: {result_msg or 'unknown error'}",
            {"apiHeader": {"resultCode": result_code, "resultMsg": result_msg}, "url": url},
        )
        self.result_code = result_code
        self.result_msg = result_msg


class RangeTooLargeError(UpstreamApiError):
    """Result code 07 (입력범위값 초과): retry with a narrower window."""


class StorageError(WatchboardError):
    """Database write or read failed."""

    status_code = 500
    stage = "upsert"

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, {"hint": hint})
        self.hint = hint


class InputValidationError(WatchboardError):
    status_code = 400
    stage = "validation"


class NotFoundError(WatchboardError):
    status_code = 404
    stage = "lookup"


def register_error_handlers(app: FastAPI) -> None:
    """Register exception handlers that emit the ok:false envelope."""

    @app.exception_handler(WatchboardError)
    async def watchboard_error_handler(request: Request, exc: WatchboardError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s failed at stage=%s: %s", request.url.path, exc.stage, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = []
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("query", "body"))
            messages.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
        return JSONResponse(
            status_code=400,
            content={"ok": False, "stage": "validation", "error": "; ".join(messages) or "Invalid request"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if isinstance(exc.detail, dict):
            content = {"ok": False, **exc.detail}
        else:
            content = {"ok": False, "error": str(exc.detail)}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"ok": False, "stage": "exception", "error": str(exc) or type(exc).__name__},
        )
