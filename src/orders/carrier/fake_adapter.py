"""Fake carrier adapter: deterministic carrier for testing and development.

Generates mock quotes, tracking numbers, labels, and tracking events.
Configurable success/failure behavior for integration testing.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from orders.carrier.port import (
    AddressValidation,
    CarrierEvent,
    CarrierGateway,
    LabelResult,
    PostalAddress,
    RateQuote,
    ResolvedAddress,
    ShipmentRequest,
    TrackingResult,
)
from orders.order.errors import CarrierGatewayError

_DEFAULT_QUOTES = [
    RateQuote(service_type="FEDEX_GROUND", service_name="FedEx Ground", total_charge=12.40, transit_days=5),
    RateQuote(service_type="FEDEX_2_DAY", service_name="FedEx 2Day", total_charge=24.95, transit_days=2),
    RateQuote(
        service_type="PRIORITY_OVERNIGHT",
        service_name="FedEx Priority Overnight",
        total_charge=58.10,
        transit_days=1,
    ),
]


class FakeCarrier(CarrierGateway):
    """Fake carrier that always succeeds by default."""

    name = "FakeCarrier"

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.transient = True
        self.quotes: list[RateQuote] = list(_DEFAULT_QUOTES)
        self.next_tracking_number: str | None = None
        self.tracking_events: dict[str, list[CarrierEvent]] = {}
        self.estimated_delivery: datetime | None = None
        self.labels_purchased: list[LabelResult] = []
        self.cancelled_shipments: list[str] = []
        self.undeliverable_zip_codes: set[str] = set()

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Carrier unavailable",
        transient: bool = True,
    ):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.transient = transient

    def set_quotes(self, quotes: list[RateQuote]):
        self.quotes = list(quotes)

    def set_tracking(
        self,
        tracking_number: str,
        events: list[CarrierEvent],
        estimated_delivery: datetime | None = None,
    ):
        self.tracking_events[tracking_number] = list(events)
        self.estimated_delivery = estimated_delivery

    def _fail_if_configured(self):
        if not self.should_succeed:
            raise CarrierGatewayError(self.failure_reason, transient=self.transient)

    def quote(self, request: ShipmentRequest) -> list[RateQuote]:
        self._fail_if_configured()
        return list(self.quotes)

    def purchase_label(self, request: ShipmentRequest, quote: RateQuote) -> LabelResult:
        self._fail_if_configured()

        tracking_number = self.next_tracking_number or f"FAKE-{uuid4().hex[:12].upper()}"
        self.next_tracking_number = None
        days = quote.transit_days or 5
        label = LabelResult(
            tracking_number=tracking_number,
            master_id=tracking_number,
            label_url=f"https://fake-carrier.example.com/labels/{tracking_number}.pdf",
            service_type=quote.service_type,
            estimated_delivery=datetime.now(UTC) + timedelta(days=days),
        )
        self.labels_purchased.append(label)
        return label

    def track(self, tracking_number: str) -> TrackingResult:
        self._fail_if_configured()

        events = self.tracking_events.get(tracking_number)
        if events is None:
            # Generated once per tracking number so repeated polls see the same history
            now = datetime.now(UTC).replace(microsecond=0)
            events = self.tracking_events[tracking_number] = [
                CarrierEvent(
                    status="picked_up",
                    location="Miami, FL",
                    description="Package picked up by carrier",
                    occurred_at=now - timedelta(hours=6),
                ),
                CarrierEvent(
                    status="in_transit",
                    location="Distribution Center, GA",
                    description="Package in transit",
                    occurred_at=now,
                ),
            ]
        return TrackingResult(
            tracking_number=tracking_number,
            events=list(events),
            estimated_delivery=self.estimated_delivery,
        )

    def cancel_shipment(self, tracking_number: str) -> None:
        self._fail_if_configured()
        self.cancelled_shipments.append(tracking_number)

    def validate_address(self, address: PostalAddress) -> AddressValidation:
        self._fail_if_configured()

        if address.zip_code in self.undeliverable_zip_codes:
            return AddressValidation(
                is_valid=False,
                error=f"Address in {address.zip_code} is not deliverable",
            )
        return AddressValidation(
            is_valid=True,
            classification="RESIDENTIAL",
            resolved_address=ResolvedAddress(
                street_lines=[line.upper() for line in (address.address_line1, address.address_line2) if line],
                city=address.city.upper(),
                state=address.state.upper(),
                zip_code=address.zip_code,
                country=address.country or "US",
            ),
        )
