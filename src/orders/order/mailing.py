"""Customer email side effects for fulfillment milestones.

Each email is attempted exactly once. The outcome is appended to the order's
``emails_sent`` log and a failure is logged; it never fails the operation
that triggered it.
"""

import structlog

from orders.mail import get_mailer
from orders.mail.templates import TEMPLATES

logger = structlog.get_logger(__name__)


def _context(order, extra: dict) -> dict:
    shipment = order.shipment
    pricing = order.pricing
    context = {
        "order_number": order.order_number,
        "items": [
            {"title": item.title, "quantity": item.quantity, "unit_price": item.unit_price}
            for item in order.items or []
        ],
        "total": pricing.total if pricing else None,
        "currency": pricing.currency if pricing else None,
        "tracking_number": shipment.tracking_number if shipment else None,
        "carrier": shipment.carrier if shipment else None,
        "service_type": shipment.service_type if shipment else None,
        "estimated_delivery": (
            shipment.estimated_delivery.date().isoformat() if shipment and shipment.estimated_delivery else None
        ),
    }
    context.update(extra)
    return context


def attempt_email(order, kind: str, **extra) -> bool | None:
    """Send the ``kind`` email for ``order`` once and record the attempt.

    Returns None when the order has no customer email to send to.
    """
    if not order.customer_email:
        logger.info("No customer email on order, skipping", order_number=order.order_number, kind=kind)
        return None

    rendered = TEMPLATES[kind].render(_context(order, extra))
    try:
        result = get_mailer().send(to=order.customer_email, subject=rendered["subject"], body=rendered["body"])
    except Exception as e:
        result = {"status": "failed", "error": str(e)}

    success = result.get("status") == "sent"
    order.record_email(kind, order.customer_email, success, result.get("error"))
    if success:
        logger.info("Customer email sent", order_number=order.order_number, kind=kind)
    else:
        logger.warning(
            "Customer email failed",
            order_number=order.order_number,
            kind=kind,
            error=result.get("error", "Unknown dispatch error"),
        )
    return success
