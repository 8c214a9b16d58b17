"""Checkout load test scenarios.

CheckoutJourney walks one customer from an empty cart to a paid order.
CartMergeJourney exercises the guest sign-in merge. ContendedStockUser
has every user race for the same small stock pool, which is where the
order Unit of Work has to hold the line: 409s are expected, oversells
are not.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, constant_pacing, task

from loadtests.data_generators import (
    actor_headers,
    cancel_reason,
    cart_line_data,
    order_data,
    payment_data,
    product_data,
    unique_id,
)
from loadtests.helpers.response import extract_error_detail, is_stock_conflict
from loadtests.helpers.state import CheckoutState, MergeState


class CheckoutJourney(SequentialTaskSet):
    """Register products -> Add to cart -> Summary -> Order -> Pay -> (sometimes) Cancel."""

    def on_start(self):
        self.state = CheckoutState(customer_id=unique_id("cust"), vendor_id=unique_id("vendor"))
        self.headers = actor_headers(self.state.customer_id)

    @task
    def register_products(self):
        for _ in range(2):
            with self.client.post(
                "/products",
                json=product_data(vendor_id=self.state.vendor_id, with_variant=random.random() < 0.3),
                headers=actor_headers(self.state.vendor_id, role="Vendor"),
                catch_response=True,
                name="POST /products",
            ) as resp:
                if resp.status_code == 201:
                    self.state.product_ids.append(resp.json()["product_id"])
                else:
                    resp.failure(f"Register product failed: {resp.status_code} - {extract_error_detail(resp)}")
                    self.interrupt()

    @task
    def fill_cart(self):
        for product_id in self.state.product_ids:
            with self.client.post(
                f"/carts/{self.state.customer_id}/lines",
                json=cart_line_data(product_id),
                headers=self.headers,
                catch_response=True,
                name="POST /carts/{owner}/lines",
            ) as resp:
                if resp.status_code == 201:
                    self.state.line_ids = [line["line_id"] for line in resp.json()["lines"]]
                else:
                    resp.failure(f"Add to cart failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def review_cart(self):
        self.client.get(
            f"/carts/{self.state.customer_id}/summary",
            params={"shipping_method": random.choice(["standard", "express"])},
            headers=self.headers,
            name="GET /carts/{owner}/summary",
        )
        self.client.get(
            f"/carts/{self.state.customer_id}/validation",
            headers=self.headers,
            name="GET /carts/{owner}/validation",
        )

    @task
    def place_order(self):
        with self.client.post(
            "/orders",
            json=order_data(self.state.customer_id),
            headers=self.headers,
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                self.state.order_id = resp.json()["order_id"]
            else:
                resp.failure(f"Create order failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def pay(self):
        provider = random.choice(["mock", "mock", "stripe", "paypal"])
        with self.client.post(
            "/payments",
            json=payment_data(self.state.order_id, provider=provider),
            headers=self.headers,
            catch_response=True,
            name="POST /payments",
        ) as resp:
            if resp.status_code == 201:
                self.state.payment_id = resp.json()["payment_id"]
            else:
                resp.failure(f"Payment failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def follow_order(self):
        with self.client.get(
            f"/orders/{self.state.order_id}",
            headers=self.headers,
            catch_response=True,
            name="GET /orders/{id}",
        ) as resp:
            if resp.status_code == 200:
                self.state.current_status = resp.json()["status"]
            else:
                resp.failure(f"Get order failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def maybe_cancel(self):
        if random.random() > 0.2:
            return
        with self.client.post(
            f"/orders/{self.state.order_id}/cancel",
            json={"reason": cancel_reason()},
            headers=self.headers,
            catch_response=True,
            name="POST /orders/{id}/cancel",
        ) as resp:
            if resp.status_code == 200:
                self.state.current_status = "Cancelled"
            else:
                resp.failure(f"Cancel failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class CartMergeJourney(SequentialTaskSet):
    """Guest adds to cart -> Signs in -> Guest cart merged into the account cart."""

    def on_start(self):
        self.state = MergeState(guest_id=unique_id("guest"), customer_id=unique_id("cust"))

    @task
    def register_product(self):
        vendor_id = unique_id("vendor")
        with self.client.post(
            "/products",
            json=product_data(vendor_id=vendor_id),
            headers=actor_headers(vendor_id, role="Vendor"),
            catch_response=True,
            name="POST /products",
        ) as resp:
            if resp.status_code == 201:
                self.state.product_id = resp.json()["product_id"]
            else:
                resp.failure(f"Register product failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def guest_adds(self):
        self.client.post(
            f"/carts/{self.state.guest_id}/lines",
            json=cart_line_data(self.state.product_id),
            headers=actor_headers(self.state.guest_id),
            name="POST /carts/{owner}/lines",
        )

    @task
    def merge_on_sign_in(self):
        with self.client.post(
            f"/carts/{self.state.customer_id}/merge",
            json={"from_owner_id": self.state.guest_id},
            headers=actor_headers(self.state.customer_id),
            catch_response=True,
            name="POST /carts/{owner}/merge",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Merge failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class CheckoutUser(HttpUser):
    """Locust user simulating marketplace shoppers.

    Weighted distribution:
    - 80% Checkout journey
    - 20% Guest cart merge
    """

    wait_time = between(0.5, 2.0)
    tasks = {CheckoutJourney: 4, CartMergeJourney: 1}


class ContendedStockUser(HttpUser):
    """Every user orders from one product with little stock.

    Run with many users; once the pool is gone the API must answer 409 and
    the product must never show negative stock.
    """

    wait_time = constant_pacing(0.1)
    product_id = "prod-lt-contended"
    initial_stock = 100
    _registered = False

    def on_start(self):
        # Registering again would reset the mirror's stock, so only the first user does it.
        if not ContendedStockUser._registered:
            ContendedStockUser._registered = True
            payload = product_data(vendor_id="vendor-lt-contended", stock_quantity=self.initial_stock)
            payload["product_id"] = self.product_id
            self.client.post(
                "/products",
                json=payload,
                headers=actor_headers(payload["vendor_id"], role="Vendor"),
                name="[SETUP] POST /products",
            )
        self.customer_id = unique_id("cust")

    @task
    def buy_one(self):
        with self.client.post(
            "/orders",
            json=order_data(self.customer_id, items=[{"product_id": self.product_id, "quantity": 1}]),
            headers=actor_headers(self.customer_id),
            catch_response=True,
            name="[CONTENDED] POST /orders",
        ) as resp:
            if resp.status_code == 201 or is_stock_conflict(resp):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code} - {extract_error_detail(resp)}")
