"""Error rendering for the HTTP API.

Every failure uses the same envelope as successful responses:
``{"success": false, "message": ..., "code": ...}`` plus ``errors`` for field
problems and ``details`` where the error carries them. Processor messages
are only shown to admins.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from marketplace.exceptions import ExternalPaymentError, MarketplaceError
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def _envelope(message: str, code: str, **extra) -> dict:
    body = {"success": False, "message": message, "code": code}
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


def _caller_is_admin(request: Request) -> bool:
    principal = getattr(request.state, "principal", None)
    return bool(principal and principal.is_admin)


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    extra = {"details": exc.details}
    if isinstance(exc, ExternalPaymentError) and _caller_is_admin(request):
        extra["processor_message"] = exc.processor_message
    return JSONResponse(status_code=exc.status_code, content=_envelope(exc.message, exc.code, **extra))


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=_envelope("Validation failed", "validation_failed", errors=exc.messages),
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body") or "body"
        errors.setdefault(field, []).append(error["msg"])
    return JSONResponse(
        status_code=400,
        content=_envelope("Validation failed", "validation_failed", errors=errors),
    )


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content=_envelope("Not found", "not_found"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(status_code=500, content=_envelope("Server error", "internal_error"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
