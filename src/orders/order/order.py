"""Order aggregate (CQRS): the core of the orders domain.

The Order carries three status dimensions that move independently:

    order_status     pending → processing → confirmed → shipped → delivered
                     {any non-terminal} → cancelled | refunded
    payment_status   pending | paid | failed | refunded   (set upstream)
    shipping_status  not-shipped → label-created → in-transit →
                     out-for-delivery → delivered, with exception reachable
                     from anywhere

Order status is driven by admins; shipping status only by shipment creation
and carrier tracking. The single coupling point is carrier-reported delivery,
which advances a non-terminal order to ``delivered``
(see ``Order.reconcile_tracking``).

``status_history`` and ``tracking_history`` are append-only audit logs.
"""

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum

import structlog
from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from orders.domain import orders
from orders.order.errors import (
    InvalidTransitionError,
    NoShipmentError,
    PaymentNotCompletedError,
    ShipmentAlreadyExistsError,
)
from orders.order.events import (
    OrderDelivered,
    OrderPlaced,
    OrderStatusChanged,
    PaymentStatusChanged,
    ShipmentCreated,
    ShipmentVoided,
    TrackingRefreshed,
)

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ShippingStatus(Enum):
    NOT_SHIPPED = "not-shipped"
    LABEL_CREATED = "label-created"
    IN_TRANSIT = "in-transit"
    OUT_FOR_DELIVERY = "out-for-delivery"
    DELIVERED = "delivered"
    EXCEPTION = "exception"


class EmailKind(Enum):
    CONFIRMATION = "confirmation"
    SHIPPING = "shipping"
    DELIVERY = "delivery"
    CANCELLATION = "cancellation"


TERMINAL_ORDER_STATUSES = frozenset(
    {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    }
)

_UNSHIPPABLE_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# Forward progress of a shipment. EXCEPTION sits outside the ranking.
_SHIPPING_RANK = {
    ShippingStatus.NOT_SHIPPED: 0,
    ShippingStatus.LABEL_CREATED: 1,
    ShippingStatus.IN_TRANSIT: 2,
    ShippingStatus.OUT_FOR_DELIVERY: 3,
    ShippingStatus.DELIVERED: 4,
}

# Carrier status vocabulary (normalised: lower case, "_"/"-" as spaces),
# including FedEx derived status codes.
CARRIER_STATUS_MAP = {
    "label created": ShippingStatus.LABEL_CREATED,
    "shipment information sent to fedex": ShippingStatus.LABEL_CREATED,
    "initiated": ShippingStatus.LABEL_CREATED,
    "oc": ShippingStatus.LABEL_CREATED,
    "picked up": ShippingStatus.IN_TRANSIT,
    "in transit": ShippingStatus.IN_TRANSIT,
    "departed fedex location": ShippingStatus.IN_TRANSIT,
    "left fedex origin facility": ShippingStatus.IN_TRANSIT,
    "arrived at fedex location": ShippingStatus.IN_TRANSIT,
    "at local fedex facility": ShippingStatus.IN_TRANSIT,
    "at destination sort facility": ShippingStatus.IN_TRANSIT,
    "on the way": ShippingStatus.IN_TRANSIT,
    "pu": ShippingStatus.IN_TRANSIT,
    "it": ShippingStatus.IN_TRANSIT,
    "dp": ShippingStatus.IN_TRANSIT,
    "ar": ShippingStatus.IN_TRANSIT,
    "af": ShippingStatus.IN_TRANSIT,
    "out for delivery": ShippingStatus.OUT_FOR_DELIVERY,
    "on fedex vehicle for delivery": ShippingStatus.OUT_FOR_DELIVERY,
    "od": ShippingStatus.OUT_FOR_DELIVERY,
    "delivered": ShippingStatus.DELIVERED,
    "dl": ShippingStatus.DELIVERED,
    "exception": ShippingStatus.EXCEPTION,
    "delivery exception": ShippingStatus.EXCEPTION,
    "shipment exception": ShippingStatus.EXCEPTION,
    "delay": ShippingStatus.EXCEPTION,
    "delayed": ShippingStatus.EXCEPTION,
    "clearance delay": ShippingStatus.EXCEPTION,
    "de": ShippingStatus.EXCEPTION,
    "se": ShippingStatus.EXCEPTION,
    "dy": ShippingStatus.EXCEPTION,
}


def normalize_carrier_status(code: str | None) -> str:
    return " ".join((code or "").lower().replace("_", " ").replace("-", " ").split())


def map_carrier_status(code: str | None) -> ShippingStatus | None:
    """Translate a carrier status code, or None when the carrier vocabulary is unknown."""
    return CARRIER_STATUS_MAP.get(normalize_carrier_status(code))


def _tracking_rank(code: str | None) -> int:
    mapped = map_carrier_status(code)
    if mapped is None:
        return -1
    return _SHIPPING_RANK.get(mapped, 0)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def tracking_key(status: str, occurred_at: datetime) -> tuple[str, str]:
    return (status, as_utc(occurred_at).isoformat())


def _coerce(enum_cls: type[Enum], value: str, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError({field: [f"Value `{value}` is not a valid choice. Must be one of: {allowed}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@orders.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships to, captured at checkout.

    ``validation_data`` holds the carrier's address-validation response as
    opaque JSON text.
    """

    full_name = String(required=True, max_length=150)
    phone_number = String(required=True, max_length=30)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(max_length=2, default="US")
    residential = Boolean(default=True)
    validation_data = Text()


@orders.value_object(part_of="Order")
class OrderPricing:
    """Price breakdown locked at checkout."""

    subtotal = Float(required=True, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")


@orders.value_object(part_of="Order")
class ItemDimensions:
    length = Float()
    width = Float()
    height = Float()
    unit = String(max_length=2, default="IN")


@orders.value_object(part_of="Order")
class ShipmentInfo:
    """Carrier shipment details.

    Write-once except ``estimated_delivery`` and ``voided_at``, which is set
    when the carrier voids the label after the order is cancelled.
    """

    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    master_id = String(max_length=255)
    service_type = String(max_length=100)
    label_url = String(max_length=500)
    quoted_charge = Float()
    estimated_delivery = DateTime()
    voided_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@orders.entity(part_of="Order")
class OrderItem:
    """A product snapshot taken at purchase time.

    Later catalogue edits never change historical orders.
    """

    product_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    image_url = String(max_length=500)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    weight = Float(min_value=0.0)
    weight_unit = String(max_length=2, default="LB")
    dimensions = ValueObject(ItemDimensions)


@orders.entity(part_of="Order")
class StatusChange:
    sequence = Integer(required=True, min_value=1)
    status = String(required=True, choices=OrderStatus)
    note = Text()
    changed_by = String(max_length=100)
    changed_at = DateTime(required=True)


@orders.entity(part_of="Order")
class TrackingEvent:
    """A carrier tracking event."""

    status = String(required=True, max_length=100)
    location = String(max_length=200)
    description = String(max_length=500)
    occurred_at = DateTime(required=True)


@orders.entity(part_of="Order")
class EmailRecord:
    kind = String(required=True, choices=EmailKind)
    recipient = String(max_length=255)
    sent_at = DateTime(required=True)
    success = Boolean(default=False)
    error = String(max_length=500)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@orders.aggregate
class Order:
    order_number = String(required=True, max_length=30, unique=True)
    customer_id = Identifier()
    customer_email = String(max_length=255)
    items = HasMany(OrderItem)
    pricing = ValueObject(OrderPricing)
    shipping_address = ValueObject(ShippingAddress)
    order_status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    shipping_status = String(choices=ShippingStatus, default=ShippingStatus.NOT_SHIPPED.value)
    shipment = ValueObject(ShipmentInfo)
    status_history = HasMany(StatusChange)
    tracking_history = HasMany(TrackingEvent)
    emails_sent = HasMany(EmailRecord)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_matches_price_breakdown(self):
        if self.pricing is None:
            return
        p = self.pricing
        expected = (p.subtotal or 0.0) - (p.discount or 0.0) + (p.shipping_cost or 0.0) + (p.tax or 0.0)
        if abs(round(expected, 2) - round(p.total, 2)) > 0.005:
            raise ValidationError(
                {"pricing": [f"Total {p.total:.2f} does not equal subtotal - discount + shipping + tax ({expected:.2f})"]}
            )

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number: str,
        items_data: list[dict],
        pricing: dict,
        shipping_address: dict,
        customer_id: str | None = None,
        customer_email: str | None = None,
        payment_status: str = PaymentStatus.PENDING.value,
    ):
        """Create a new order at checkout."""
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        address_data = dict(shipping_address)
        validation_data = address_data.pop("validation_data", None)
        if validation_data is not None and not isinstance(validation_data, str):
            validation_data = json.dumps(validation_data)

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            customer_email=customer_email,
            pricing=OrderPricing(**pricing),
            shipping_address=ShippingAddress(**address_data, validation_data=validation_data),
            order_status=OrderStatus.PENDING.value,
            payment_status=payment_status,
            shipping_status=ShippingStatus.NOT_SHIPPED.value,
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            item = dict(item_data)
            dimensions = item.pop("dimensions", None)
            order.add_items(OrderItem(**item, dimensions=ItemDimensions(**dimensions) if dimensions else None))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=customer_id,
                total=order.pricing.total,
                item_count=len(items_data),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.order_status) in TERMINAL_ORDER_STATUSES

    @property
    def tracking_number(self) -> str | None:
        return self.shipment.tracking_number if self.shipment else None

    def sorted_status_history(self) -> list[StatusChange]:
        return sorted(self.status_history or [], key=lambda change: change.sequence)

    def sorted_tracking_history(self) -> list[TrackingEvent]:
        """Tracking events, most recent first.

        Events scanned in the same instant put the furthest shipment progress
        first, whatever order the carrier listed them in.
        """
        return sorted(
            self.tracking_history or [],
            key=lambda event: (as_utc(event.occurred_at), _tracking_rank(event.status)),
            reverse=True,
        )

    # -------------------------------------------------------------------
    # Order status
    # -------------------------------------------------------------------
    def _append_status_change(self, status: str, note: str | None, changed_by: str | None, at: datetime) -> None:
        self.add_status_history(
            StatusChange(
                sequence=len(self.status_history or []) + 1,
                status=status,
                note=note,
                changed_by=changed_by,
                changed_at=at,
            )
        )

    def update_status(self, new_status: str, note: str | None = None, changed_by: str | None = None) -> None:
        """Set the order status and append it to the status history.

        Re-affirming the current status is accepted and still recorded.
        """
        target = _coerce(OrderStatus, new_status, "order_status")
        current = OrderStatus(self.order_status)
        if current in TERMINAL_ORDER_STATUSES:
            raise InvalidTransitionError(
                f"Order {self.order_number} is {current.value}; no further status changes are accepted",
                current_status=current.value,
            )

        now = datetime.now(UTC)
        self.order_status = target.value
        self._append_status_change(target.value, note, changed_by, now)
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                new_status=target.value,
                note=note,
                changed_by=changed_by,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment status
    # -------------------------------------------------------------------
    def update_payment_status(self, new_status: str) -> None:
        target = _coerce(PaymentStatus, new_status, "payment_status")
        previous = self.payment_status
        now = datetime.now(UTC)
        self.payment_status = target.value
        self.updated_at = now
        self.raise_(
            PaymentStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Shipment
    # -------------------------------------------------------------------
    def assert_can_ship(self) -> None:
        """Check shipment preconditions before any carrier call is made."""
        if self.tracking_number:
            raise ShipmentAlreadyExistsError(
                f"Shipment already created for order {self.order_number} (tracking {self.tracking_number})"
            )
        if self.payment_status != PaymentStatus.PAID.value:
            raise PaymentNotCompletedError(
                f"Cannot create shipment for order {self.order_number}: payment is {self.payment_status}"
            )
        current = OrderStatus(self.order_status)
        if current in _UNSHIPPABLE_ORDER_STATUSES:
            raise InvalidTransitionError(
                f"Cannot create shipment for {current.value} order {self.order_number}",
                current_status=current.value,
            )

    def record_shipment(
        self,
        carrier: str,
        tracking_number: str,
        service_type: str | None = None,
        label_url: str | None = None,
        master_id: str | None = None,
        quoted_charge: float | None = None,
        estimated_delivery: datetime | None = None,
    ) -> None:
        """Persist the purchased label. The tracking number can be set only once."""
        self.assert_can_ship()

        now = datetime.now(UTC)
        self.shipment = ShipmentInfo(
            carrier=carrier,
            tracking_number=tracking_number,
            master_id=master_id or tracking_number,
            service_type=service_type,
            label_url=label_url,
            quoted_charge=quoted_charge,
            estimated_delivery=estimated_delivery,
        )
        self.shipping_status = ShippingStatus.LABEL_CREATED.value
        self.updated_at = now
        self.raise_(
            ShipmentCreated(
                order_id=str(self.id),
                order_number=self.order_number,
                carrier=carrier,
                tracking_number=tracking_number,
                service_type=service_type,
                label_url=label_url,
                quoted_charge=quoted_charge,
                estimated_delivery=estimated_delivery,
                created_at=now,
            )
        )

    def _replace_shipment(self, **changes) -> None:
        if not self.shipment:
            raise NoShipmentError(f"Order {self.order_number} has no shipment")
        current = self.shipment
        data = {
            "carrier": current.carrier,
            "tracking_number": current.tracking_number,
            "master_id": current.master_id,
            "service_type": current.service_type,
            "label_url": current.label_url,
            "quoted_charge": current.quoted_charge,
            "estimated_delivery": current.estimated_delivery,
            "voided_at": current.voided_at,
        }
        data.update(changes)
        self.shipment = ShipmentInfo(**data)

    def refresh_estimated_delivery(self, estimated_delivery: datetime) -> None:
        self._replace_shipment(estimated_delivery=estimated_delivery)

    def record_shipment_voided(self) -> None:
        """Mark the carrier label as voided. Only cancelled orders void labels."""
        if OrderStatus(self.order_status) != OrderStatus.CANCELLED:
            raise InvalidTransitionError(
                f"Shipment for order {self.order_number} can only be voided once the order is cancelled",
                current_status=self.order_status,
            )

        now = datetime.now(UTC)
        self._replace_shipment(voided_at=now)
        self.updated_at = now
        self.raise_(
            ShipmentVoided(
                order_id=str(self.id),
                order_number=self.order_number,
                tracking_number=self.tracking_number,
                voided_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    def merge_tracking_events(self, events: Iterable) -> list[TrackingEvent]:
        """Append carrier events not yet recorded, matched on (status, timestamp).

        Returns the newly appended events.
        """
        seen = {tracking_key(e.status, e.occurred_at) for e in (self.tracking_history or [])}
        added = []
        for event in events:
            key = tracking_key(event.status, event.occurred_at)
            if key in seen:
                continue
            seen.add(key)
            tracking_event = TrackingEvent(
                status=event.status,
                location=event.location or "",
                description=event.description or "",
                occurred_at=as_utc(event.occurred_at),
            )
            self.add_tracking_history(tracking_event)
            added.append(tracking_event)
        return added

    def _advance_shipping_status(self, derived: ShippingStatus) -> bool:
        current = ShippingStatus(self.shipping_status)
        if derived == current:
            return False
        if derived != ShippingStatus.EXCEPTION and current != ShippingStatus.EXCEPTION:
            if _SHIPPING_RANK[derived] < _SHIPPING_RANK[current]:
                logger.info(
                    "Ignoring carrier status that would regress shipping status",
                    order_id=str(self.id),
                    current=current.value,
                    reported=derived.value,
                )
                return False
        self.shipping_status = derived.value
        return True

    def reconcile_tracking(self, events: Iterable, estimated_delivery: datetime | None = None) -> dict:
        """Fold a carrier tracking response into the order.

        Merges new events, derives the shipping status from the latest event,
        and lets carrier-reported delivery advance a non-terminal order.
        """
        if not self.tracking_number:
            raise NoShipmentError(f"No tracking number found for order {self.order_number}")

        now = datetime.now(UTC)
        previous_shipping = self.shipping_status
        added = self.merge_tracking_events(events)

        history = self.sorted_tracking_history()
        if history:
            derived = map_carrier_status(history[0].status)
            if derived is None:
                logger.warning(
                    "Unrecognised carrier status; shipping status left unchanged",
                    order_id=str(self.id),
                    carrier_status=history[0].status,
                )
            else:
                self._advance_shipping_status(derived)

        if estimated_delivery is not None:
            self.refresh_estimated_delivery(estimated_delivery)

        feedback = None
        if self.shipping_status == ShippingStatus.DELIVERED.value and self.order_status != OrderStatus.DELIVERED.value:
            feedback = self._apply_delivered_feedback(now)

        self.updated_at = now
        self.raise_(
            TrackingRefreshed(
                order_id=str(self.id),
                tracking_number=self.tracking_number,
                new_event_count=len(added),
                previous_shipping_status=previous_shipping,
                shipping_status=self.shipping_status,
                refreshed_at=now,
            )
        )
        return {
            "new_events": len(added),
            "previous_shipping_status": previous_shipping,
            "shipping_status": self.shipping_status,
            "delivered_feedback": feedback,
        }

    def _apply_delivered_feedback(self, now: datetime) -> str:
        if self.is_terminal:
            logger.warning(
                "Carrier reported delivery for an order in a terminal state; order status left unchanged",
                order_id=str(self.id),
                order_number=self.order_number,
                order_status=self.order_status,
                tracking_number=self.tracking_number,
            )
            return "suppressed"

        self.order_status = OrderStatus.DELIVERED.value
        self._append_status_change(
            OrderStatus.DELIVERED.value,
            f"Delivered per carrier tracking {self.tracking_number}",
            "carrier",
            now,
        )
        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                order_number=self.order_number,
                tracking_number=self.tracking_number,
                delivered_at=now,
            )
        )
        return "applied"

    # -------------------------------------------------------------------
    # Emails
    # -------------------------------------------------------------------
    def record_email(self, kind: str, recipient: str | None, success: bool, error: str | None = None) -> None:
        self.add_emails_sent(
            EmailRecord(
                kind=kind,
                recipient=recipient,
                sent_at=datetime.now(UTC),
                success=success,
                error=error,
            )
        )

    def has_sent_email(self, kind: str) -> bool:
        return any(record.kind == kind and record.success for record in (self.emails_sent or []))
