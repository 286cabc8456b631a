"""Shipment creation: command and handler.

Quotes the aggregated package with the carrier, buys the label for the
selected service tier and records it on the order. Any carrier failure
aborts before the order is modified, so nothing is persisted and the admin
can retry.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from orders.carrier import get_carrier
from orders.carrier.packaging import build_shipment_request
from orders.carrier.port import Address
from orders.carrier.rates import select_quote
from orders.domain import orders
from orders.order.errors import CarrierGatewayError
from orders.order.mailing import attempt_email
from orders.order.order import EmailKind, Order
from orders.settings import get_settings

logger = structlog.get_logger(__name__)


@orders.command(part_of="Order")
class CreateShipment:
    """Buy a carrier label for a paid order."""

    order_id = Identifier(required=True)


@orders.command_handler(part_of=Order)
class ShipmentHandler:
    @handle(CreateShipment)
    def create_shipment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.assert_can_ship()

        settings = get_settings()
        carrier = get_carrier()
        request = build_shipment_request(
            order,
            origin=Address(**settings.warehouse.model_dump()),
            ship_date=datetime.now(UTC).date().isoformat(),
        )

        try:
            quotes = carrier.quote(request)
            selected = select_quote(quotes, settings.max_transit_days)
            label = carrier.purchase_label(request, selected)
        except CarrierGatewayError as exc:
            logger.error(
                "Shipment creation failed",
                order_number=order.order_number,
                reason=exc.reason,
                transient=exc.transient,
            )
            raise

        order.record_shipment(
            carrier=carrier.name,
            tracking_number=label.tracking_number,
            service_type=label.service_type,
            label_url=label.label_url,
            master_id=label.master_id,
            quoted_charge=selected.total_charge,
            estimated_delivery=label.estimated_delivery,
        )
        attempt_email(order, EmailKind.SHIPPING.value)
        repo.add(order)

        logger.info(
            "Shipment created",
            order_number=order.order_number,
            tracking_number=label.tracking_number,
            service_type=label.service_type,
        )
        return {
            "tracking_number": label.tracking_number,
            "label_url": label.label_url,
            "estimated_delivery": label.estimated_delivery,
            "service_type": label.service_type,
        }
