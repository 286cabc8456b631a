"""Carrier port: abstract interface for shipping carrier integrations.

All carrier adapters must implement this interface. The domain code
programs against the port; adapters are swapped via configuration.
Adapters signal failures by raising ``CarrierGatewayError`` classified as
transient (retry as-is) or permanent (fix the order data first).
"""

from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel


class PostalAddress(BaseModel):
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str
    zip_code: str
    country: str = "US"


class Address(PostalAddress):
    full_name: str
    phone_number: str
    residential: bool = True


class Package(BaseModel):
    """A single physical package: weight in ``weight_unit``, dimensions in ``dimension_unit``."""

    weight: float
    weight_unit: str = "LB"
    length: float
    width: float
    height: float
    dimension_unit: str = "IN"
    insured_value: float = 0.0


class ShipmentRequest(BaseModel):
    reference: str
    origin: Address
    destination: Address
    package: Package
    ship_date: str


class RateQuote(BaseModel):
    service_type: str
    service_name: str | None = None
    total_charge: float
    currency: str = "USD"
    transit_days: int | None = None
    rate_id: str | None = None


class LabelResult(BaseModel):
    tracking_number: str
    master_id: str | None = None
    label_url: str | None = None
    service_type: str
    estimated_delivery: datetime | None = None


class CarrierEvent(BaseModel):
    status: str
    location: str | None = None
    description: str | None = None
    occurred_at: datetime


class TrackingResult(BaseModel):
    tracking_number: str
    events: list[CarrierEvent] = []
    estimated_delivery: datetime | None = None


class ResolvedAddress(BaseModel):
    street_lines: list[str] = []
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class AddressValidation(BaseModel):
    """Carrier verdict on a postal address.

    ``classification`` is BUSINESS, RESIDENTIAL, MIXED or UNKNOWN. A rejected
    address comes back with ``is_valid`` False and the carrier's ``error``.
    """

    is_valid: bool
    classification: str = "UNKNOWN"
    resolved_address: ResolvedAddress | None = None
    attributes: dict = {}
    error: str | None = None


class CarrierGateway(ABC):
    """Abstract interface for carrier adapters."""

    name: str = "carrier"

    @abstractmethod
    def quote(self, request: ShipmentRequest) -> list[RateQuote]:
        """Return the available service tiers and their prices for a shipment."""
        ...

    @abstractmethod
    def purchase_label(self, request: ShipmentRequest, quote: RateQuote) -> LabelResult:
        """Buy a label for the selected quote. Costs money; never retried implicitly."""
        ...

    @abstractmethod
    def track(self, tracking_number: str) -> TrackingResult:
        """Return the carrier-reported tracking events for a shipment."""
        ...

    @abstractmethod
    def cancel_shipment(self, tracking_number: str) -> None:
        """Void a purchased label so the shipment is not billed."""
        ...

    @abstractmethod
    def validate_address(self, address: PostalAddress) -> AddressValidation:
        """Resolve and classify a destination address before checkout."""
        ...
