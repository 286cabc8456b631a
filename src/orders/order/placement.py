"""Order placement: command and handler.

Checkout lives outside this context; it hands over the priced cart,
item snapshots and shipping address through ``PlaceOrder``.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.order.order import Order, PaymentStatus

logger = structlog.get_logger(__name__)


@orders.command(part_of="Order")
class PlaceOrder:
    """Create a new order from a checked-out cart."""

    customer_id = Identifier()
    customer_email = String(max_length=255)
    items = Text(required=True)  # JSON list of item snapshot dicts
    pricing = Text(required=True)  # JSON pricing breakdown
    shipping_address = Text(required=True)  # JSON address dict
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)


def _load(value):
    return json.loads(value) if isinstance(value, str) else value


@orders.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        repo = current_domain.repository_for(Order)
        order = Order.place(
            order_number=repo.next_order_number(),
            items_data=_load(command.items),
            pricing=_load(command.pricing),
            shipping_address=_load(command.shipping_address),
            customer_id=command.customer_id,
            customer_email=command.customer_email,
            payment_status=command.payment_status,
        )
        repo.add(order)
        logger.info("Order placed", order_id=str(order.id), order_number=order.order_number)
        return str(order.id)
