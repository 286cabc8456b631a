"""Order status: admin status change command and handler.

Cancelling an order that already has a label asks the carrier to void it.
A void the carrier refuses is logged and the cancellation still stands.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orders.carrier import get_carrier
from orders.domain import orders
from orders.order.errors import CarrierGatewayError
from orders.order.mailing import attempt_email
from orders.order.order import EmailKind, Order, OrderStatus

logger = structlog.get_logger(__name__)


@orders.command(part_of="Order")
class UpdateOrderStatus:
    """Set the order status; terminal orders reject the change."""

    order_id = Identifier(required=True)
    order_status = String(required=True, choices=OrderStatus)
    note = Text()
    changed_by = String(max_length=100)


def _void_shipment(order: Order) -> None:
    try:
        get_carrier().cancel_shipment(order.tracking_number)
    except CarrierGatewayError as exc:
        logger.error(
            "Failed to void carrier shipment for cancelled order",
            order_number=order.order_number,
            tracking_number=order.tracking_number,
            reason=exc.reason,
            transient=exc.transient,
        )
        return

    order.record_shipment_voided()
    logger.info(
        "Carrier shipment voided",
        order_number=order.order_number,
        tracking_number=order.tracking_number,
    )


@orders.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.order_status

        order.update_status(command.order_status, note=command.note, changed_by=command.changed_by)
        if previous != order.order_status and order.order_status == OrderStatus.CANCELLED.value:
            if order.tracking_number:
                _void_shipment(order)
            attempt_email(order, EmailKind.CANCELLATION.value, note=command.note)

        repo.add(order)
        logger.info(
            "Order status updated",
            order_number=order.order_number,
            previous_status=previous,
            order_status=order.order_status,
            changed_by=command.changed_by,
        )
