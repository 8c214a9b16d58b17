import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.integrations.fastapi import register_exception_handlers

from commerce.api import (
    cart_router,
    catalog_router,
    order_router,
    payment_router,
    register_commerce_exception_handlers,
    review_router,
)

VENDOR = {"X-Actor-Id": "vendor-001", "X-Actor-Role": "Vendor"}


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(catalog_router)
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(review_router)
    register_exception_handlers(app)
    register_commerce_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def product(client):
    response = client.post(
        "/products",
        json={
            "product_id": "prod-001",
            "vendor_id": "vendor-001",
            "name": "Wireless Headphones",
            "sku": "TWB001",
            "price": 299.99,
            "stock_quantity": 10,
            "weight_kg": 0.4,
        },
        headers=VENDOR,
    )
    assert response.status_code == 201
    return response.json()["product_id"]
