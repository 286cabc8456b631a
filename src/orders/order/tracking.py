"""Tracking refresh: command and handler.

Polls the carrier for a shipment's tracking events and reconciles them into
the order. Safe to repeat: identical carrier responses do not duplicate
history, and a carrier failure leaves the order untouched.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from orders.carrier import get_carrier
from orders.domain import orders
from orders.order.errors import CarrierGatewayError, NoShipmentError
from orders.order.mailing import attempt_email
from orders.order.order import EmailKind, Order, ShippingStatus

logger = structlog.get_logger(__name__)


@orders.command(part_of="Order")
class RefreshTracking:
    """Fetch the latest carrier tracking for an order's shipment."""

    order_id = Identifier(required=True)


@orders.command_handler(part_of=Order)
class TrackingHandler:
    @handle(RefreshTracking)
    def refresh_tracking(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if not order.tracking_number:
            raise NoShipmentError(f"No tracking number found for order {order.order_number}")

        try:
            result = get_carrier().track(order.tracking_number)
        except CarrierGatewayError as exc:
            logger.error(
                "Tracking refresh failed",
                order_number=order.order_number,
                tracking_number=order.tracking_number,
                reason=exc.reason,
                transient=exc.transient,
            )
            raise

        summary = order.reconcile_tracking(result.events, estimated_delivery=result.estimated_delivery)
        if (
            summary["shipping_status"] == ShippingStatus.DELIVERED.value
            and summary["previous_shipping_status"] != ShippingStatus.DELIVERED.value
            and not order.has_sent_email(EmailKind.DELIVERY.value)
        ):
            attempt_email(order, EmailKind.DELIVERY.value)
        repo.add(order)

        logger.info(
            "Tracking updated",
            order_number=order.order_number,
            tracking_number=order.tracking_number,
            new_events=summary["new_events"],
            shipping_status=summary["shipping_status"],
            order_status=order.order_status,
        )
        return summary
