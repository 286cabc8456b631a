"""Pydantic API schemas for the Orders domain.

These are the external API contracts, separate from domain commands.
The API layer translates between these schemas and domain commands.
JSON uses camelCase; snake_case is accepted on input as well.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class DimensionsRequest(ApiModel):
    length: float | None = None
    width: float | None = None
    height: float | None = None
    unit: str = "IN"


class OrderItemRequest(ApiModel):
    product_id: str
    title: str
    image_url: str | None = None
    unit_price: float
    quantity: int
    weight: float | None = None
    weight_unit: str = "LB"
    dimensions: DimensionsRequest | None = None


class PricingRequest(ApiModel):
    subtotal: float
    discount: float = 0.0
    shipping_cost: float = 0.0
    tax: float = 0.0
    total: float
    currency: str = "USD"


class ShippingAddressRequest(ApiModel):
    full_name: str
    phone_number: str
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str
    zip_code: str
    country: str = "US"
    residential: bool = True
    validation_data: dict | None = None


class PlaceOrderRequest(ApiModel):
    customer_id: str | None = None
    customer_email: str | None = None
    items: list[OrderItemRequest]
    pricing: PricingRequest
    shipping_address: ShippingAddressRequest
    payment_status: str = "pending"


class UpdateOrderStatusRequest(ApiModel):
    order_status: str
    admin_note: str | None = None
    changed_by: str | None = None


class UpdatePaymentStatusRequest(ApiModel):
    payment_status: str


class AddressValidationRequest(ApiModel):
    address_line1: str = Field(min_length=1)
    address_line2: str | None = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=2)
    zip_code: str = Field(pattern=r"^\d{5}(-\d{4})?$")
    country: str = Field(default="US", min_length=2, max_length=2)

    @field_validator("zip_code", mode="before")
    @classmethod
    def _strip_spaces(cls, value):
        return "".join(value.split()) if isinstance(value, str) else value

    @field_validator("state", "country")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class PlaceOrderResponse(ApiModel):
    order_id: str
    order_number: str


class StatusHistoryEntry(ApiModel):
    sequence: int
    status: str
    note: str | None = None
    changed_by: str | None = None
    timestamp: datetime


class TrackingHistoryEntry(ApiModel):
    status: str
    location: str | None = None
    description: str | None = None
    timestamp: datetime


class EmailSentEntry(ApiModel):
    kind: str
    recipient: str | None = None
    sent_at: datetime
    success: bool
    error: str | None = None


class OrderItemResponse(ApiModel):
    product_id: str
    title: str
    image_url: str | None = None
    unit_price: float
    quantity: int
    weight: float | None = None
    weight_unit: str | None = None
    dimensions: DimensionsRequest | None = None


class ShipmentResponse(ApiModel):
    carrier: str | None = None
    tracking_number: str | None = None
    master_id: str | None = None
    service_type: str | None = None
    label_url: str | None = None
    quoted_charge: float | None = None
    estimated_delivery: datetime | None = None
    voided_at: datetime | None = None


class OrderResponse(ApiModel):
    id: str
    order_number: str
    customer_id: str | None = None
    customer_email: str | None = None
    items: list[OrderItemResponse]
    pricing: PricingRequest | None = None
    shipping_address: ShippingAddressRequest | None = None
    order_status: str
    payment_status: str
    shipping_status: str
    shipment: ShipmentResponse | None = None
    status_history: list[StatusHistoryEntry]
    tracking_history: list[TrackingHistoryEntry]
    emails_sent: list[EmailSentEntry]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ShipmentCreatedResponse(ApiModel):
    tracking_number: str
    label_url: str | None = None
    estimated_delivery: datetime | None = None
    service_type: str | None = None


class TrackingUpdateResponse(ApiModel):
    order_status: str
    shipping_status: str
    new_events: int
    tracking_history: list[TrackingHistoryEntry]


class ConfirmationSentResponse(ApiModel):
    order_number: str
    recipient: str


class ResolvedAddressResponse(ApiModel):
    street_lines: list[str] = []
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class AddressValidationResponse(ApiModel):
    is_valid: bool
    classification: str
    resolved_address: ResolvedAddressResponse | None = None
    attributes: dict = {}
    error: str | None = None


class PaginationMeta(ApiModel):
    page: int
    limit: int
    total: int
    pages: int


class OrderListResponse(ApiModel):
    data: list[OrderResponse]
    pagination: PaginationMeta


class OrderStatsResponse(ApiModel):
    total_orders: int
    by_status: dict[str, int]
    paid_orders: int
    total_revenue: float
    average_order_value: float
