"""FastAPI routes for the commerce core.

Thin adapters that translate HTTP requests into domain commands and
queries. The caller's identity arrives in the X-Actor-Id and X-Actor-Role
headers, set by the upstream authentication layer.
"""

import json
from datetime import datetime

from fastapi import APIRouter, Depends, Header, Request
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.access import Actor, Role
from commerce.api.schemas import (
    AddToCartRequest,
    CancelOrderRequest,
    CartCountResponse,
    CartResponse,
    CartSummaryResponse,
    CartValidationResponse,
    ChangedResponse,
    CreateOrderRequest,
    HelpfulStatusResponse,
    HelpfulVoteRequest,
    ListingStatusRequest,
    MergeCartsRequest,
    OrderIdResponse,
    OrderPageResponse,
    OrderResponse,
    OrderStatsResponse,
    PaymentHistoryResponse,
    PaymentIdResponse,
    PaymentResponse,
    ProcessPaymentRequest,
    ProductIdResponse,
    RefundRequest,
    RegisterProductRequest,
    RegisterReviewRequest,
    RemoveCartLinesRequest,
    RestockRequest,
    ReviewIdResponse,
    StatusResponse,
    TrackingResponse,
    UpdateCartLineRequest,
    UpdateOrderStatusRequest,
    UpdatePriceRequest,
    UpdateTrackingRequest,
    ValidationResultResponse,
    VariantIdResponse,
    VariantSchema,
    WebhookResponse,
)
from commerce.cart.management import AddToCart, ClearCart, RemoveCartLine, RemoveCartLines, UpdateCartLine
from commerce.cart.merging import MergeCarts
from commerce.cart.queries import CartSnapshot, cart_snapshot, cart_summary, item_count, validate_cart
from commerce.order.cancellation import CancelOrder
from commerce.order.creation import CreateOrder
from commerce.order.order import Order
from commerce.order.queries import OrderSearch, load_order, order_stats, order_tracking, search_orders
from commerce.order.status import UpdateOrderStatus, UpdateOrderTracking
from commerce.payment.payment import Payment
from commerce.payment.processing import ProcessPayment
from commerce.payment.queries import load_payment, payment_for_order, payment_history
from commerce.payment.refund import RefundPayment
from commerce.payment.validation import ValidatePayment
from commerce.payment.webhook import HandleProviderWebhook
from commerce.review.helpfulness import MarkReviewHelpful, RegisterReview, is_helpful_by_user
from commerce.stock.sync import (
    AddProductVariant,
    ChangeListingStatus,
    RegisterProduct,
    RestockProduct,
    UpdateProductPrice,
)


def current_actor(
    x_actor_id: str = Header(),
    x_actor_role: str = Header(default=Role.CUSTOMER.value),
) -> Actor:
    return Actor(actor_id=x_actor_id, role=x_actor_role)


def _actor_fields(actor: Actor) -> dict:
    return {"actor_id": actor.actor_id, "actor_role": actor.role}


def _cart_response(snapshot: CartSnapshot) -> CartResponse:
    return CartResponse.model_validate(snapshot.to_dict())


def _order_response(order: Order) -> OrderResponse:
    address = order.shipping_address
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        status=order.status,
        total_amount=order.total_amount,
        currency=order.currency,
        items=[
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "vendor_id": str(item.vendor_id),
                "product_name": item.product_name,
                "sku": item.sku,
                "variant_description": item.variant_description,
                "unit_price": item.unit_price,
                "quantity": item.quantity,
                "total_price": item.total_price,
            }
            for item in order.items
        ],
        shipping_address=address.to_dict() if address is not None else None,
        tracking_number=order.tracking_number,
        cancellation_reason=order.cancellation_reason,
        created_at=order.created_at,
    )


def _payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=str(payment.id),
        order_id=str(payment.order_id),
        customer_id=str(payment.customer_id),
        provider=payment.provider,
        transaction_id=payment.transaction_id,
        external_transaction_id=payment.external_transaction_id,
        amount=payment.amount,
        currency=payment.currency,
        status=payment.status,
        refunded_amount=payment.refunded_amount or 0.0,
        failure_reason=payment.failure_reason,
        refunds=[
            {
                "amount": refund.amount,
                "status": refund.status,
                "reason": refund.reason,
                "external_refund_id": refund.external_refund_id,
                "failure_reason": refund.failure_reason,
            }
            for refund in payment.refunds
        ],
    )


def _require_customer_or_privileged(actor: Actor, customer_id) -> None:
    actor.require(actor.actor_id == str(customer_id), "You can only view your own records")


# ---------------------------------------------------------------------------
# Catalog Router
# ---------------------------------------------------------------------------
catalog_router = APIRouter(prefix="/products", tags=["products"])


@catalog_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest, actor: Actor = Depends(current_actor)) -> ProductIdResponse:
    """Mirror a product listing. Only its vendor or an admin may register it."""
    command = RegisterProduct(
        product_id=body.product_id,
        vendor_id=body.vendor_id,
        name=body.name,
        sku=body.sku,
        price=body.price,
        stock_quantity=body.stock_quantity,
        track_quantity=body.track_quantity,
        weight_kg=body.weight_kg,
        variants=json.dumps([v.model_dump() for v in body.variants]),
        **_actor_fields(actor),
    )
    product_id = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=product_id)


@catalog_router.post("/{product_id}/variants", status_code=201, response_model=VariantIdResponse)
async def add_product_variant(
    product_id: str, body: VariantSchema, actor: Actor = Depends(current_actor)
) -> VariantIdResponse:
    command = AddProductVariant(product_id=product_id, **body.model_dump(), **_actor_fields(actor))
    variant_id = current_domain.process(command, asynchronous=False)
    return VariantIdResponse(variant_id=variant_id)


@catalog_router.put("/{product_id}/price", response_model=StatusResponse)
async def update_product_price(
    product_id: str, body: UpdatePriceRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = UpdateProductPrice(product_id=product_id, price=body.price, **_actor_fields(actor))
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@catalog_router.post("/{product_id}/restock", response_model=StatusResponse)
async def restock_product(
    product_id: str, body: RestockRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = RestockProduct(
        product_id=product_id, variant_id=body.variant_id, quantity=body.quantity, **_actor_fields(actor)
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@catalog_router.put("/{product_id}/status", response_model=StatusResponse)
async def change_listing_status(
    product_id: str, body: ListingStatusRequest, actor: Actor = Depends(current_actor)
) -> StatusResponse:
    command = ChangeListingStatus(
        product_id=product_id, variant_id=body.variant_id, status=body.status, **_actor_fields(actor)
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/{owner_id}", response_model=CartResponse)
async def get_cart(owner_id: str, actor: Actor = Depends(current_actor)) -> CartResponse:
    _require_customer_or_privileged(actor, owner_id)
    return _cart_response(cart_snapshot(owner_id))


@cart_router.get("/{owner_id}/count", response_model=CartCountResponse)
async def get_cart_count(owner_id: str, actor: Actor = Depends(current_actor)) -> CartCountResponse:
    _require_customer_or_privileged(actor, owner_id)
    return CartCountResponse(item_count=item_count(owner_id))


@cart_router.get("/{owner_id}/validation", response_model=CartValidationResponse)
async def get_cart_validation(owner_id: str, actor: Actor = Depends(current_actor)) -> CartValidationResponse:
    _require_customer_or_privileged(actor, owner_id)
    report = validate_cart(owner_id)
    return CartValidationResponse(
        is_valid=report.is_valid,
        lines=[check.__dict__ for check in report.lines],
        messages=report.messages,
    )


@cart_router.get("/{owner_id}/summary", response_model=CartSummaryResponse)
async def get_cart_summary(
    owner_id: str,
    shipping_method: str | None = None,
    actor: Actor = Depends(current_actor),
) -> CartSummaryResponse:
    _require_customer_or_privileged(actor, owner_id)
    summary = cart_summary(owner_id, shipping_method=shipping_method)
    return CartSummaryResponse(
        subtotal=summary.subtotal,
        estimated_shipping=summary.estimated_shipping,
        estimated_tax=summary.estimated_tax,
        estimated_total=summary.estimated_total,
        item_count=summary.item_count,
        has_out_of_stock=summary.has_out_of_stock,
        messages=summary.messages,
    )


@cart_router.post("/{owner_id}/lines", status_code=201, response_model=CartResponse)
async def add_cart_line(owner_id: str, body: AddToCartRequest, actor: Actor = Depends(current_actor)) -> CartResponse:
    command = AddToCart(
        owner_id=owner_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
        **_actor_fields(actor),
    )
    return _cart_response(current_domain.process(command, asynchronous=False))


@cart_router.put("/{owner_id}/lines/{line_id}", response_model=CartResponse)
async def update_cart_line(
    owner_id: str,
    line_id: str,
    body: UpdateCartLineRequest,
    actor: Actor = Depends(current_actor),
) -> CartResponse:
    command = UpdateCartLine(
        owner_id=owner_id,
        line_id=line_id,
        quantity=body.quantity,
        variant_id=body.variant_id,
        **_actor_fields(actor),
    )
    return _cart_response(current_domain.process(command, asynchronous=False))


@cart_router.delete("/{owner_id}/lines/{line_id}", response_model=ChangedResponse)
async def remove_cart_line(owner_id: str, line_id: str, actor: Actor = Depends(current_actor)) -> ChangedResponse:
    command = RemoveCartLine(owner_id=owner_id, line_id=line_id, **_actor_fields(actor))
    return ChangedResponse(changed=current_domain.process(command, asynchronous=False))


@cart_router.post("/{owner_id}/lines/remove", response_model=ChangedResponse)
async def remove_cart_lines(
    owner_id: str,
    body: RemoveCartLinesRequest,
    actor: Actor = Depends(current_actor),
) -> ChangedResponse:
    command = RemoveCartLines(owner_id=owner_id, line_ids=json.dumps(body.line_ids), **_actor_fields(actor))
    return ChangedResponse(changed=current_domain.process(command, asynchronous=False))


@cart_router.delete("/{owner_id}", response_model=ChangedResponse)
async def clear_cart(owner_id: str, actor: Actor = Depends(current_actor)) -> ChangedResponse:
    command = ClearCart(owner_id=owner_id, **_actor_fields(actor))
    return ChangedResponse(changed=current_domain.process(command, asynchronous=False))


@cart_router.post("/{owner_id}/merge", response_model=StatusResponse)
async def merge_carts(owner_id: str, body: MergeCartsRequest, actor: Actor = Depends(current_actor)) -> StatusResponse:
    """Fold a guest cart into the signed-in owner's cart."""
    command = MergeCarts(from_owner_id=body.from_owner_id, to_owner_id=owner_id, **_actor_fields(actor))
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="merged")


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def create_order(body: CreateOrderRequest, actor: Actor = Depends(current_actor)) -> OrderIdResponse:
    """Place an order from explicit lines, or from the customer's cart when none are given."""
    command = CreateOrder(
        customer_id=body.customer_id,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        billing_address=json.dumps(body.billing_address.model_dump()) if body.billing_address else None,
        items=json.dumps([line.model_dump() for line in body.items]) if body.items else None,
        cart_line_ids=json.dumps(body.cart_line_ids) if body.cart_line_ids else None,
        notes=body.notes,
        currency=body.currency,
        **_actor_fields(actor),
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=order_id)


@order_router.get("", response_model=OrderPageResponse)
async def list_orders(
    order_number: str | None = None,
    status: str | None = None,
    customer_id: str | None = None,
    vendor_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    min_amount: float | None = None,
    max_amount: float | None = None,
    sort_by: str = "date",
    descending: bool = True,
    page: int = 1,
    page_size: int = 20,
    actor: Actor = Depends(current_actor),
) -> OrderPageResponse:
    """Search orders. Customers see their own orders and vendors see orders with their lines."""
    if actor.role == Role.CUSTOMER.value:
        customer_id = actor.actor_id
    elif actor.role == Role.VENDOR.value:
        vendor_id = actor.actor_id

    result = search_orders(
        OrderSearch(
            order_number=order_number,
            status=status,
            customer_id=customer_id,
            vendor_id=vendor_id,
            date_from=date_from,
            date_to=date_to,
            min_amount=min_amount,
            max_amount=max_amount,
            sort_by=sort_by,
            descending=descending,
            page=max(page, 1),
            page_size=min(max(page_size, 1), 100),
        )
    )
    return OrderPageResponse(
        orders=[_order_response(order) for order in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@order_router.get("/stats", response_model=OrderStatsResponse)
async def get_order_stats(
    vendor_id: str | None = None,
    days: int = 30,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    actor: Actor = Depends(current_actor),
) -> OrderStatsResponse:
    if actor.role == Role.VENDOR.value:
        vendor_id = actor.actor_id
    else:
        actor.require_privileged("Only vendors and administrators can view order statistics")
    stats = order_stats(vendor_id=vendor_id, days=min(max(days, 1), 365), date_from=date_from, date_to=date_to)
    return OrderStatsResponse(
        total_orders=stats.total_orders,
        status_counts=stats.status_counts,
        total_revenue=stats.total_revenue,
        average_order_value=stats.average_order_value,
        daily=[{"day": d.day, "orders": d.orders, "revenue": d.revenue} for d in stats.daily],
    )


def _visible_order(order_id: str, actor: Actor) -> Order:
    order = load_order(order_id)
    if order is None:
        raise ObjectNotFoundError(f"Order with id {order_id} does not exist")
    is_vendor = actor.role == Role.VENDOR.value and actor.actor_id in order.vendor_ids
    actor.require(actor.actor_id == str(order.customer_id) or is_vendor, "You cannot view this order")
    return order


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return _order_response(_visible_order(order_id, actor))


@order_router.get("/{order_id}/tracking", response_model=TrackingResponse)
async def get_order_tracking(order_id: str, actor: Actor = Depends(current_actor)) -> TrackingResponse:
    _visible_order(order_id, actor)
    return TrackingResponse(
        order_id=order_id,
        events=[
            {
                "status": event.status,
                "occurred_at": event.occurred_at,
                "note": event.note,
                "location": event.location,
                "tracking_number": event.tracking_number,
                "actor_id": str(event.actor_id) if event.actor_id else None,
                "actor_role": event.actor_role,
            }
            for event in order_tracking(order_id)
        ],
    )


@order_router.put("/{order_id}/status", response_model=StatusResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    actor: Actor = Depends(current_actor),
) -> StatusResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        note=body.note,
        location=body.location,
        **_actor_fields(actor),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status=body.status)


@order_router.put("/{order_id}/tracking", response_model=StatusResponse)
async def update_order_tracking(
    order_id: str,
    body: UpdateTrackingRequest,
    actor: Actor = Depends(current_actor),
) -> StatusResponse:
    command = UpdateOrderTracking(
        order_id=order_id,
        tracking_number=body.tracking_number,
        location=body.location,
        note=body.note,
        **_actor_fields(actor),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest, actor: Actor = Depends(current_actor)) -> StatusResponse:
    command = CancelOrder(order_id=order_id, reason=body.reason, **_actor_fields(actor))
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cancelled")


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("", status_code=201, response_model=PaymentIdResponse)
async def process_payment(body: ProcessPaymentRequest, actor: Actor = Depends(current_actor)) -> PaymentIdResponse:
    """Charge the order total through the chosen provider."""
    command = ProcessPayment(
        order_id=body.order_id,
        provider=body.provider,
        method=body.method,
        currency=body.currency,
        card_token=body.card_token,
        paypal_payment_id=body.paypal_payment_id,
        **_actor_fields(actor),
    )
    payment_id = current_domain.process(command, asynchronous=False)
    return PaymentIdResponse(payment_id=payment_id)


@payment_router.post("/webhooks/{provider}", response_model=WebhookResponse)
async def receive_webhook(
    provider: str,
    request: Request,
    x_provider_signature: str = Header(default=""),
) -> WebhookResponse:
    """Ingest a provider callback. The raw body is what the signature covers."""
    payload = (await request.body()).decode("utf-8")
    command = HandleProviderWebhook(provider=provider, raw_payload=payload, signature=x_provider_signature)
    outcome = current_domain.process(command, asynchronous=False)
    return WebhookResponse(outcome=outcome)


@payment_router.get("/history", response_model=PaymentHistoryResponse)
async def get_own_payment_history(
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    actor: Actor = Depends(current_actor),
) -> PaymentHistoryResponse:
    """The caller's payments; administrators see every customer's."""
    customer_id = None if actor.is_privileged else actor.actor_id
    payments = payment_history(customer_id, date_from=date_from, date_to=date_to)
    return PaymentHistoryResponse(payments=[_payment_response(payment) for payment in payments])


@payment_router.get("/history/{customer_id}", response_model=PaymentHistoryResponse)
async def get_payment_history(
    customer_id: str,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    actor: Actor = Depends(current_actor),
) -> PaymentHistoryResponse:
    _require_customer_or_privileged(actor, customer_id)
    payments = payment_history(customer_id, date_from=date_from, date_to=date_to)
    return PaymentHistoryResponse(payments=[_payment_response(payment) for payment in payments])


@payment_router.get("/orders/{order_id}", response_model=PaymentResponse)
async def get_order_payment(order_id: str, actor: Actor = Depends(current_actor)) -> PaymentResponse:
    payment = payment_for_order(order_id)
    if payment is None:
        raise ObjectNotFoundError(f"No payment for order {order_id}")
    _require_customer_or_privileged(actor, payment.customer_id)
    return _payment_response(payment)


@payment_router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: str, actor: Actor = Depends(current_actor)) -> PaymentResponse:
    payment = load_payment(payment_id)
    if payment is None:
        raise ObjectNotFoundError(f"Payment with id {payment_id} does not exist")
    _require_customer_or_privileged(actor, payment.customer_id)
    return _payment_response(payment)


@payment_router.post("/{payment_id}/refund", response_model=PaymentIdResponse)
async def refund_payment(
    payment_id: str,
    body: RefundRequest,
    actor: Actor = Depends(current_actor),
) -> PaymentIdResponse:
    command = RefundPayment(payment_id=payment_id, amount=body.amount, reason=body.reason, **_actor_fields(actor))
    current_domain.process(command, asynchronous=False)
    return PaymentIdResponse(payment_id=payment_id)


@payment_router.post("/{payment_id}/validate", response_model=ValidationResultResponse)
async def validate_payment(payment_id: str, actor: Actor = Depends(current_actor)) -> ValidationResultResponse:
    """Reconcile the payment with the provider's view of the transaction."""
    command = ValidatePayment(payment_id=payment_id, **_actor_fields(actor))
    return ValidationResultResponse(valid=current_domain.process(command, asynchronous=False))


# ---------------------------------------------------------------------------
# Review Router
# ---------------------------------------------------------------------------
review_router = APIRouter(prefix="/reviews", tags=["reviews"])


@review_router.post("", status_code=201, response_model=ReviewIdResponse)
async def register_review(body: RegisterReviewRequest) -> ReviewIdResponse:
    """Mirror a review from the review service so it can collect votes."""
    command = RegisterReview(
        review_id=body.review_id,
        product_id=body.product_id,
        author_id=body.author_id,
        rating=body.rating,
        title=body.title,
    )
    review_id = current_domain.process(command, asynchronous=False)
    return ReviewIdResponse(review_id=review_id)


@review_router.put("/{review_id}/helpful", response_model=ChangedResponse)
async def mark_review_helpful(
    review_id: str,
    body: HelpfulVoteRequest,
    actor: Actor = Depends(current_actor),
) -> ChangedResponse:
    command = MarkReviewHelpful(review_id=review_id, voter_id=actor.actor_id, is_helpful=body.is_helpful)
    return ChangedResponse(changed=current_domain.process(command, asynchronous=False))


@review_router.get("/{review_id}/helpful", response_model=HelpfulStatusResponse)
async def get_helpful_status(review_id: str, actor: Actor = Depends(current_actor)) -> HelpfulStatusResponse:
    return HelpfulStatusResponse(
        review_id=review_id,
        voter_id=actor.actor_id,
        is_helpful=is_helpful_by_user(review_id, actor.actor_id),
    )
