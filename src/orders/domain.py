"""Orders bounded context: Order Fulfillment and Shipment Tracking.

Owns the order aggregate with its three status dimensions (order, payment,
shipping), the append-only status and tracking logs, and the carrier
integration that creates shipments and feeds tracking back into the order.
Uses CQRS because the carrier, not this system, owns tracking state.
"""

import structlog
from protean.domain import Domain

orders = Domain(name="orders")

logger = structlog.get_logger(__name__)
