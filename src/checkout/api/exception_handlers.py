"""Map checkout failures onto HTTP responses.

Every failure answers ``{code, message, reasonCode?, reasonCodes?}``. Request
bodies that fail schema validation answer 400 ``VALIDATION_ERROR`` and the
offending values are never echoed back, since they may be card data.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from checkout.errors import CheckoutError, InternalError

logger = structlog.get_logger(__name__)


def _describe(errors: list[dict]) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    if isinstance(exc, InternalError):
        logger.error("Internal error returned to client", path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"code": "VALIDATION_ERROR", "message": _describe(exc.errors())},
    )


def register_checkout_exception_handlers(app: FastAPI) -> None:
    """Install Protean's domain exception handlers plus the checkout ones."""
    register_exception_handlers(app)
    app.add_exception_handler(CheckoutError, checkout_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
