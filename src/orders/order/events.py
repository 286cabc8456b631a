"""Order domain events: immutable facts about fulfillment state changes.

All events are past tense, versioned, and carry enough data for the
notification collaborator and any downstream read models.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from orders.domain import orders


@orders.event(part_of="Order")
class OrderPlaced:
    """An order was created at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier()
    total = Float(required=True)
    item_count = Integer(required=True)
    placed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderStatusChanged:
    """An admin set the order status (possibly re-affirming the current one)."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    note = Text()
    changed_by = String()
    changed_at = DateTime(required=True)


@orders.event(part_of="Order")
class PaymentStatusChanged:
    """The upstream payment outcome was recorded on the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@orders.event(part_of="Order")
class ShipmentCreated:
    """A shipping label was purchased from the carrier."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    service_type = String()
    label_url = String()
    quoted_charge = Float()
    estimated_delivery = DateTime()
    created_at = DateTime(required=True)


@orders.event(part_of="Order")
class TrackingRefreshed:
    """Carrier tracking was reconciled into the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    new_event_count = Integer(required=True)
    previous_shipping_status = String(required=True)
    shipping_status = String(required=True)
    refreshed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderDelivered:
    """The carrier reported delivery and the order status followed."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    tracking_number = String(required=True)
    delivered_at = DateTime(required=True)


@orders.event(part_of="Order")
class ShipmentVoided:
    """The carrier voided the label of a cancelled order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    tracking_number = String(required=True)
    voided_at = DateTime(required=True)
