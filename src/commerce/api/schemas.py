"""Pydantic request/response schemas for the commerce API.

These are external contracts (anti-corruption layer), kept separate from
the internal Protean commands.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str


class OrderLineSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1)


class VariantSchema(BaseModel):
    name: str
    value: str
    sku: str | None = None
    price_adjustment: float = 0.0
    stock_quantity: int | None = Field(default=None, ge=0)


class StatusResponse(BaseModel):
    status: str = "ok"


class ChangedResponse(BaseModel):
    changed: bool


# ---------------------------------------------------------------------------
# Catalog sync
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    product_id: str
    vendor_id: str
    name: str = Field(max_length=255)
    sku: str = Field(max_length=100)
    price: float = Field(ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    track_quantity: bool = True
    weight_kg: float | None = Field(default=None, ge=0)
    variants: list[VariantSchema] = []

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "vendor_id": "vendor-001",
                    "name": "Wireless Headphones",
                    "sku": "TWB001",
                    "price": 299.99,
                    "stock_quantity": 10,
                    "weight_kg": 0.4,
                    "variants": [{"name": "Color", "value": "Black", "sku": "TWB001-BLK"}],
                }
            ]
        }
    }


class ProductIdResponse(BaseModel):
    product_id: str


class VariantIdResponse(BaseModel):
    variant_id: str


class UpdatePriceRequest(BaseModel):
    price: float = Field(ge=0)


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)
    variant_id: str | None = None


class ListingStatusRequest(BaseModel):
    status: str
    variant_id: str | None = None


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)

    model_config = {
        "json_schema_extra": {"examples": [{"product_id": "prod-001", "variant_id": None, "quantity": 2}]}
    }


class UpdateCartLineRequest(BaseModel):
    quantity: int
    variant_id: str | None = None


class RemoveCartLinesRequest(BaseModel):
    line_ids: list[str] = Field(min_length=1)


class MergeCartsRequest(BaseModel):
    from_owner_id: str


class CartLineResponse(BaseModel):
    line_id: str
    product_id: str
    variant_id: str | None = None
    quantity: int
    product_name: str | None = None
    sku: str | None = None
    variant_description: str | None = None
    vendor_id: str | None = None
    unit_price: float
    line_total: float
    available_stock: int
    is_available: bool
    in_stock: bool
    problem: str | None = None


class CartResponse(BaseModel):
    owner_id: str
    lines: list[CartLineResponse]
    subtotal: float
    item_count: int


class LineCheckResponse(BaseModel):
    line_id: str
    product_id: str
    variant_id: str | None = None
    is_valid: bool
    reason: str | None = None
    available_stock: int
    requested_quantity: int


class CartValidationResponse(BaseModel):
    is_valid: bool
    lines: list[LineCheckResponse]
    messages: list[str]


class CartSummaryResponse(BaseModel):
    subtotal: float
    estimated_shipping: float
    estimated_tax: float
    estimated_total: float
    item_count: int
    has_out_of_stock: bool
    messages: list[str]


class CartCountResponse(BaseModel):
    item_count: int


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    customer_id: str
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    items: list[OrderLineSchema] = []
    cart_line_ids: list[str] = []
    notes: str | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "shipping_address": {
                        "street": "123 Main St",
                        "city": "Springfield",
                        "state": "IL",
                        "postal_code": "62701",
                        "country": "US",
                    },
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                }
            ]
        }
    }


class OrderIdResponse(BaseModel):
    order_id: str


class UpdateOrderStatusRequest(BaseModel):
    status: str
    note: str | None = None
    location: str | None = None


class UpdateTrackingRequest(BaseModel):
    tracking_number: str | None = None
    location: str | None = None
    note: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str = Field(min_length=1)


class OrderItemResponse(BaseModel):
    product_id: str
    variant_id: str | None = None
    vendor_id: str
    product_name: str
    sku: str
    variant_description: str | None = None
    unit_price: float
    quantity: int
    total_price: float


class TrackingEventResponse(BaseModel):
    status: str
    occurred_at: datetime
    note: str | None = None
    location: str | None = None
    tracking_number: str | None = None
    actor_id: str | None = None
    actor_role: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    status: str
    total_amount: float
    currency: str
    items: list[OrderItemResponse]
    shipping_address: AddressSchema | None = None
    tracking_number: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None


class OrderPageResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class TrackingResponse(BaseModel):
    order_id: str
    events: list[TrackingEventResponse]


class DailyStatResponse(BaseModel):
    day: date
    orders: int
    revenue: float


class OrderStatsResponse(BaseModel):
    total_orders: int
    status_counts: dict[str, int]
    total_revenue: float
    average_order_value: float
    daily: list[DailyStatResponse]


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class ProcessPaymentRequest(BaseModel):
    order_id: str
    provider: str = "mock"
    method: str | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    card_token: str | None = None
    paypal_payment_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [{"order_id": "order-001", "provider": "stripe", "method": "card", "card_token": "tok_visa"}]
        }
    }


class PaymentIdResponse(BaseModel):
    payment_id: str


class RefundRequest(BaseModel):
    amount: float = Field(gt=0)
    reason: str | None = None


class ValidationResultResponse(BaseModel):
    valid: bool


class WebhookResponse(BaseModel):
    outcome: str


class RefundResponse(BaseModel):
    amount: float
    status: str
    reason: str | None = None
    external_refund_id: str | None = None
    failure_reason: str | None = None


class PaymentResponse(BaseModel):
    payment_id: str
    order_id: str
    customer_id: str
    provider: str
    transaction_id: str
    external_transaction_id: str | None = None
    amount: float
    currency: str
    status: str
    refunded_amount: float
    failure_reason: str | None = None
    refunds: list[RefundResponse]


class PaymentHistoryResponse(BaseModel):
    payments: list[PaymentResponse]


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
class RegisterReviewRequest(BaseModel):
    review_id: str
    product_id: str
    author_id: str
    rating: int = Field(ge=1, le=5)
    title: str | None = None


class ReviewIdResponse(BaseModel):
    review_id: str


class HelpfulVoteRequest(BaseModel):
    is_helpful: bool = True


class HelpfulStatusResponse(BaseModel):
    review_id: str
    voter_id: str
    is_helpful: bool
