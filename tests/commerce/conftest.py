import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from commerce.gateway import reset_providers
from commerce.notification import reset_dispatcher


@pytest.fixture(scope="session")
def commerce_bed():
    from commerce.domain import commerce

    bed = DomainFixture(commerce)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(commerce_bed):
    with commerce_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()

    reset_providers()
    reset_dispatcher()


# ---------------------------------------------------------------------------
# Builders shared by application, integration and BDD tests
# ---------------------------------------------------------------------------
ADDRESS = {
    "street": "123 Main St",
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "country": "US",
}


@pytest.fixture()
def address():
    return dict(ADDRESS)


@pytest.fixture()
def make_product():
    from commerce.stock.sync import RegisterProduct

    def _make(
        product_id="prod-001",
        vendor_id="vendor-001",
        name="Wireless Headphones",
        sku="TWB001",
        price=299.99,
        stock_quantity=10,
        track_quantity=True,
        weight_kg=None,
        variants=None,
    ):
        return current_domain.process(
            RegisterProduct(
                product_id=product_id,
                vendor_id=vendor_id,
                name=name,
                sku=sku,
                price=price,
                stock_quantity=stock_quantity,
                track_quantity=track_quantity,
                weight_kg=weight_kg,
                variants=json.dumps(variants or []),
            ),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def add_to_cart():
    from commerce.cart.management import AddToCart

    def _add(owner_id, product_id, quantity=1, variant_id=None):
        return current_domain.process(
            AddToCart(
                owner_id=owner_id,
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                actor_id=owner_id,
            ),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def place_order(address):
    from commerce.order.creation import CreateOrder

    def _place(customer_id="cust-001", items=None, cart_line_ids=None):
        return current_domain.process(
            CreateOrder(
                customer_id=customer_id,
                shipping_address=json.dumps(address),
                items=json.dumps(items) if items else None,
                cart_line_ids=json.dumps(cart_line_ids) if cart_line_ids else None,
                actor_id=customer_id,
            ),
            asynchronous=False,
        )

    return _place


@pytest.fixture()
def pay_order():
    from commerce.order.order import Order
    from commerce.payment.processing import ProcessPayment

    def _pay(order_id, provider="mock", **details):
        order = current_domain.repository_for(Order).get(order_id)
        return current_domain.process(
            ProcessPayment(
                order_id=order_id,
                provider=provider,
                actor_id=str(order.customer_id),
                **details,
            ),
            asynchronous=False,
        )

    return _pay


@pytest.fixture()
def mock_provider():
    from commerce.gateway import get_provider

    return get_provider("mock")


@pytest.fixture()
def notifications():
    from commerce.notification import get_dispatcher

    return get_dispatcher()
