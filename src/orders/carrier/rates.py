"""Service tier selection for label purchase."""

import structlog

from orders.carrier.port import RateQuote
from orders.order.errors import CarrierGatewayError

logger = structlog.get_logger(__name__)


def select_quote(quotes: list[RateQuote], max_transit_days: int | None) -> RateQuote:
    """Pick the cheapest quote that delivers within ``max_transit_days``.

    Quotes without a transit estimate never satisfy a floor. With no floor
    configured the cheapest quote wins.
    """
    if not quotes:
        raise CarrierGatewayError("No shipping rates available for this shipment", transient=False)

    eligible = [
        q for q in quotes if max_transit_days is None or (q.transit_days is not None and q.transit_days <= max_transit_days)
    ]
    if not eligible:
        raise CarrierGatewayError(
            f"No shipping rate delivers within {max_transit_days} days",
            transient=False,
        )

    selected = min(eligible, key=lambda q: (q.total_charge, q.transit_days if q.transit_days is not None else 99))
    logger.info(
        "Selected shipping rate",
        service_type=selected.service_type,
        total_charge=selected.total_charge,
        transit_days=selected.transit_days,
        candidates=len(quotes),
    )
    return selected
