"""FastAPI routes for the Orders domain.

Routes that dispatch commands are plain ``def`` endpoints: FastAPI runs them
in its threadpool, so a slow carrier call or a wait on the per-order lock
never stalls the event loop.
"""

import json
import math

from fastapi import APIRouter, Query
from protean.utils.globals import current_domain

from orders.api.schemas import (
    AddressValidationRequest,
    AddressValidationResponse,
    ConfirmationSentResponse,
    DimensionsRequest,
    EmailSentEntry,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    PaginationMeta,
    PlaceOrderRequest,
    PlaceOrderResponse,
    PricingRequest,
    ShipmentCreatedResponse,
    ShipmentResponse,
    ShippingAddressRequest,
    StatusHistoryEntry,
    TrackingHistoryEntry,
    TrackingUpdateResponse,
    UpdateOrderStatusRequest,
    UpdatePaymentStatusRequest,
)
from orders.carrier import get_carrier
from orders.carrier.port import PostalAddress
from orders.order.confirmation import ResendConfirmation
from orders.order.errors import EmailDeliveryError
from orders.order.locking import process_for_order
from orders.order.order import Order
from orders.order.payment import UpdatePaymentStatus
from orders.order.placement import PlaceOrder
from orders.order.shipment import CreateShipment
from orders.order.status import UpdateOrderStatus
from orders.order.tracking import RefreshTracking


def _tracking_entries(order: Order) -> list[TrackingHistoryEntry]:
    return [
        TrackingHistoryEntry(
            status=event.status,
            location=event.location or None,
            description=event.description or None,
            timestamp=event.occurred_at,
        )
        for event in order.sorted_tracking_history()
    ]


def order_to_response(order: Order) -> OrderResponse:
    """Flatten the aggregate into its API representation."""
    address = None
    if order.shipping_address:
        a = order.shipping_address
        address = ShippingAddressRequest(
            full_name=a.full_name,
            phone_number=a.phone_number,
            address_line1=a.address_line1,
            address_line2=a.address_line2,
            city=a.city,
            state=a.state,
            zip_code=a.zip_code,
            country=a.country,
            residential=a.residential,
            validation_data=json.loads(a.validation_data) if a.validation_data else None,
        )

    shipment = None
    if order.shipment:
        s = order.shipment
        shipment = ShipmentResponse(
            carrier=s.carrier,
            tracking_number=s.tracking_number,
            master_id=s.master_id,
            service_type=s.service_type,
            label_url=s.label_url,
            quoted_charge=s.quoted_charge,
            estimated_delivery=s.estimated_delivery,
            voided_at=s.voided_at,
        )

    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id) if order.customer_id else None,
        customer_email=order.customer_email,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                title=item.title,
                image_url=item.image_url,
                unit_price=item.unit_price,
                quantity=item.quantity,
                weight=item.weight,
                weight_unit=item.weight_unit,
                dimensions=(
                    DimensionsRequest(
                        length=item.dimensions.length,
                        width=item.dimensions.width,
                        height=item.dimensions.height,
                        unit=item.dimensions.unit,
                    )
                    if item.dimensions
                    else None
                ),
            )
            for item in order.items or []
        ],
        pricing=PricingRequest(**order.pricing.to_dict()) if order.pricing else None,
        shipping_address=address,
        order_status=order.order_status,
        payment_status=order.payment_status,
        shipping_status=order.shipping_status,
        shipment=shipment,
        status_history=[
            StatusHistoryEntry(
                sequence=change.sequence,
                status=change.status,
                note=change.note,
                changed_by=change.changed_by,
                timestamp=change.changed_at,
            )
            for change in order.sorted_status_history()
        ],
        tracking_history=_tracking_entries(order),
        emails_sent=[
            EmailSentEntry(
                kind=record.kind,
                recipient=record.recipient,
                sent_at=record.sent_at,
                success=record.success,
                error=record.error,
            )
            for record in order.emails_sent or []
        ],
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _load_order(order_id: str) -> Order:
    return current_domain.repository_for(Order).get(order_id)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=OrderListResponse)
async def list_orders(
    order_status: str | None = None,
    payment_status: str | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> OrderListResponse:
    """List orders newest first, optionally filtered."""
    repo = current_domain.repository_for(Order)
    records, total = repo.list_orders(
        order_status=order_status,
        payment_status=payment_status,
        search=search,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        data=[order_to_response(order) for order in records],
        pagination=PaginationMeta(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@order_router.get("/stats/overview", response_model=OrderStatsResponse)
async def order_stats() -> OrderStatsResponse:
    """Dashboard counts and revenue."""
    return OrderStatsResponse(**current_domain.repository_for(Order).stats())


@order_router.post("", status_code=201, response_model=PlaceOrderResponse)
def place_order(body: PlaceOrderRequest) -> PlaceOrderResponse:
    """Create an order from a checked-out cart."""
    command = PlaceOrder(
        customer_id=body.customer_id,
        customer_email=body.customer_email,
        items=json.dumps([item.model_dump() for item in body.items]),
        pricing=json.dumps(body.pricing.model_dump()),
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        payment_status=body.payment_status,
    )
    order_id = current_domain.process(command, asynchronous=False)
    order = _load_order(order_id)
    return PlaceOrderResponse(order_id=order_id, order_number=order.order_number)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return order_to_response(_load_order(order_id))


@order_router.put("/{order_id}/payment-status", response_model=OrderResponse)
def update_payment_status(order_id: str, body: UpdatePaymentStatusRequest) -> OrderResponse:
    """Record the payment outcome reported by the payment collaborator."""
    process_for_order(UpdatePaymentStatus(order_id=order_id, payment_status=body.payment_status))
    return order_to_response(_load_order(order_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderResponse:
    """Admin status change. Terminal orders answer 409."""
    command = UpdateOrderStatus(
        order_id=order_id,
        order_status=body.order_status,
        note=body.admin_note,
        changed_by=body.changed_by or "admin",
    )
    process_for_order(command)
    return order_to_response(_load_order(order_id))


@order_router.post("/{order_id}/ship", response_model=ShipmentCreatedResponse)
def create_shipment(order_id: str) -> ShipmentCreatedResponse:
    """Quote, buy a label and record the shipment."""
    result = process_for_order(CreateShipment(order_id=order_id))
    return ShipmentCreatedResponse(**result)


@order_router.post("/{order_id}/update-tracking", response_model=TrackingUpdateResponse)
def update_tracking(order_id: str) -> TrackingUpdateResponse:
    """Poll the carrier and fold new tracking events into the order."""
    summary = process_for_order(RefreshTracking(order_id=order_id))
    order = _load_order(order_id)
    return TrackingUpdateResponse(
        order_status=order.order_status,
        shipping_status=order.shipping_status,
        new_events=summary["new_events"],
        tracking_history=_tracking_entries(order),
    )


@order_router.post("/{order_id}/resend-confirmation", response_model=ConfirmationSentResponse)
def resend_confirmation(order_id: str) -> ConfirmationSentResponse:
    """Send the order confirmation email again. The attempt is logged on the order either way."""
    sent = process_for_order(ResendConfirmation(order_id=order_id))
    order = _load_order(order_id)
    if not sent:
        raise EmailDeliveryError(f"Failed to send the confirmation email for order {order.order_number}")
    return ConfirmationSentResponse(order_number=order.order_number, recipient=order.customer_email)


# ---------------------------------------------------------------------------
# Shipping Router
# ---------------------------------------------------------------------------
shipping_router = APIRouter(prefix="/shipping", tags=["shipping"])


@shipping_router.post("/validate-address", response_model=AddressValidationResponse)
def validate_address(body: AddressValidationRequest) -> AddressValidationResponse:
    """Resolve a checkout address with the carrier.

    Checkout stores the result on the order as the address ``validationData``.
    """
    result = get_carrier().validate_address(PostalAddress(**body.model_dump()))
    return AddressValidationResponse(**result.model_dump())
