"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the commerce API's request
schemas (field names, lengths, positive quantities and prices).
"""

import random
import uuid

from faker import Faker

fake = Faker()


def unique_id(prefix: str) -> str:
    """Generate ids like 'cust-lt-a1b2c3d4'."""
    return f"{prefix}-lt-{uuid.uuid4().hex[:8]}"


def actor_headers(actor_id: str, role: str = "Customer") -> dict:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


def address_data() -> dict:
    return {
        "street": fake.street_address()[:255],
        "city": fake.city()[:100],
        "state": fake.state_abbr(),
        "postal_code": fake.zipcode()[:20],
        "country": "US",
    }


def valid_sku(prefix: str = "LT") -> str:
    """SKUs like 'LT-1A2B3C4D', within the 100-char limit."""
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def product_data(vendor_id: str | None = None, stock_quantity: int | None = None, with_variant: bool = False) -> dict:
    """RegisterProductRequest payload for the catalog mirror."""
    sku = valid_sku("PROD")
    payload = {
        "product_id": unique_id("prod"),
        "vendor_id": vendor_id or unique_id("vendor"),
        "name": f"{fake.word().capitalize()} {fake.word().capitalize()}"[:255],
        "sku": sku,
        "price": round(random.uniform(5.0, 500.0), 2),
        "stock_quantity": stock_quantity if stock_quantity is not None else random.randint(50, 500),
        "weight_kg": round(random.uniform(0.1, 5.0), 2),
    }
    if with_variant:
        payload["variants"] = [
            {
                "name": "Color",
                "value": fake.color_name(),
                "sku": f"{sku}-V1",
                "price_adjustment": round(random.uniform(0, 20), 2),
            }
        ]
    return payload


def cart_line_data(product_id: str, quantity: int | None = None) -> dict:
    return {"product_id": product_id, "quantity": quantity or random.randint(1, 3)}


def order_data(customer_id: str, items: list[dict] | None = None) -> dict:
    """CreateOrderRequest payload; without items the order is built from the cart."""
    payload = {"customer_id": customer_id, "shipping_address": address_data()}
    if items:
        payload["items"] = items
    return payload


def payment_data(order_id: str, provider: str = "mock") -> dict:
    payload = {"order_id": order_id, "provider": provider, "method": "card"}
    if provider == "stripe":
        payload["card_token"] = f"tok_{uuid.uuid4().hex[:12]}"
    elif provider == "paypal":
        payload["paypal_payment_id"] = f"PAYID-{uuid.uuid4().hex[:16].upper()}"
    return payload


def cancel_reason() -> str:
    return random.choice(["Ordered by mistake", "Found a better price", "Delivery too slow", "Changed my mind"])
