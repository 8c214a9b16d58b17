"""HTTP mapping for commerce errors.

Registered after Protean's own handlers so the commerce-specific
subclasses take precedence.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError

from commerce.errors import InsufficientStock, InvalidWebhookSignature, ProviderError, Unauthorized

logger = structlog.get_logger(__name__)


def _messages(exc: Exception):
    return getattr(exc, "messages", None) or {"_entity": [str(exc)]}


async def insufficient_stock_handler(request: Request, exc: InsufficientStock) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": _messages(exc),
            "available": exc.available,
            "requested": exc.requested,
            "product_id": exc.product_id,
            "variant_id": exc.variant_id,
        },
    )


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": _messages(exc)})


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


async def invalid_operation_handler(request: Request, exc: InvalidOperationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": str(exc)})


async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    logger.warning("Unauthorized request", path=request.url.path, reason=exc.message)
    return JSONResponse(status_code=403, content={"error": exc.message})


async def webhook_signature_handler(request: Request, exc: InvalidWebhookSignature) -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": "Invalid webhook signature"})


async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    logger.error("Payment provider error", provider=exc.provider, reason=exc.reason)
    return JSONResponse(status_code=502, content={"error": f"Payment provider unavailable: {exc.provider}"})


def register_commerce_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InsufficientStock, insufficient_stock_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(InvalidOperationError, invalid_operation_handler)
    app.add_exception_handler(Unauthorized, unauthorized_handler)
    app.add_exception_handler(InvalidWebhookSignature, webhook_signature_handler)
    app.add_exception_handler(ProviderError, provider_error_handler)
