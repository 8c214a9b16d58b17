"""Marketplace commerce FastAPI application.

Web server that processes commands synchronously via HTTP. Every request
runs inside the commerce domain context, with the actor and request path
bound to the log context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from domain.toml.
from commerce.domain import commerce  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from commerce.utils.logging import request_context

commerce.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Marketplace Commerce API",
    description="Carts, orders, payments and review votes for a multi-vendor marketplace",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the commerce domain context and bind request details to the log context."""
    with request_context(
        path=request.url.path,
        method=request.method,
        actor_id=request.headers.get("x-actor-id"),
        actor_role=request.headers.get("x-actor-role"),
    ):
        with commerce.domain_context():
            return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from commerce.api import (  # noqa: E402
    cart_router,
    catalog_router,
    order_router,
    payment_router,
    register_commerce_exception_handlers,
    review_router,
)

app.include_router(catalog_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(payment_router)
app.include_router(review_router)

register_exception_handlers(app)
register_commerce_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": commerce.name}})
