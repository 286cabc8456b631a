"""FedEx carrier adapter: FedEx REST APIs over httpx.

Covers rate quotes, label purchase and void, tracking, and address resolution.

Authenticates with OAuth client credentials and caches the bearer token until
five minutes before it expires. Every request is bounded by the configured
timeout. Failures are classified for the caller:

- timeouts, connection errors, HTTP 429 and 5xx → transient
- any other 4xx (bad address, unknown tracking number, auth) → permanent
"""

from datetime import UTC, datetime, timedelta

import httpx
import structlog

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
from orders.settings import ShippingSettings

logger = structlog.get_logger(__name__)

SERVICE_NAMES = {
    "FEDEX_GROUND": "FedEx Ground",
    "GROUND_HOME_DELIVERY": "FedEx Home Delivery",
    "FEDEX_EXPRESS_SAVER": "FedEx Express Saver",
    "FEDEX_2_DAY": "FedEx 2Day",
    "FEDEX_2_DAY_AM": "FedEx 2Day A.M.",
    "STANDARD_OVERNIGHT": "FedEx Standard Overnight",
    "PRIORITY_OVERNIGHT": "FedEx Priority Overnight",
    "FIRST_OVERNIGHT": "FedEx First Overnight",
}

_TRANSIT_DAYS = {
    "ONE_DAY": 1,
    "TWO_DAYS": 2,
    "THREE_DAYS": 3,
    "FOUR_DAYS": 4,
    "FIVE_DAYS": 5,
    "SIX_DAYS": 6,
    "SEVEN_DAYS": 7,
}

_TOKEN_SAFETY_MARGIN = timedelta(minutes=5)

_DELIVERABLE_CLASSIFICATIONS = {"BUSINESS", "RESIDENTIAL", "MIXED", "UNKNOWN"}


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _transit_days(rate: dict) -> int | None:
    commit = rate.get("commit") or {}
    raw = commit.get("transitDays")
    if isinstance(raw, dict):
        raw = raw.get("minimumTransitTime")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        return _TRANSIT_DAYS.get(raw)
    if rate.get("serviceType", "").endswith("OVERNIGHT"):
        return 1
    return None


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    errors = payload.get("errors") if isinstance(payload, dict) else None
    if isinstance(errors, list):
        messages = [e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors]
        if messages:
            return "; ".join(messages)
    return f"HTTP {response.status_code}"


def _address_payload(address) -> dict:
    return {
        "streetLines": [line for line in (address.address_line1, address.address_line2) if line],
        "city": address.city,
        "stateOrProvinceCode": address.state,
        "postalCode": address.zip_code,
        "countryCode": address.country or "US",
    }


class FedExCarrier(CarrierGateway):
    name = "FedEx"

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        secret_key: str | None,
        account_number: str | None,
        timeout: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.secret_key = secret_key
        self.account_number = account_number
        self._client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"X-locale": "en_US"},
            transport=transport,
        )
        self._access_token: str | None = None
        self._token_expiry: datetime | None = None

    @classmethod
    def from_settings(cls, settings: ShippingSettings) -> "FedExCarrier":
        return cls(
            base_url=settings.fedex_base_url,
            api_key=settings.fedex_api_key,
            secret_key=settings.fedex_secret_key,
            account_number=settings.fedex_account_number,
            timeout=settings.carrier_timeout_seconds,
        )

    def close(self):
        self._client.close()

    # -------------------------------------------------------------------
    # Transport helpers
    # -------------------------------------------------------------------
    def _send(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("FedEx request timed out", path=path)
            raise CarrierGatewayError(f"FedEx request timed out: {exc}", transient=True) from exc
        except httpx.TransportError as exc:
            logger.error("FedEx request failed", path=path, error=str(exc))
            raise CarrierGatewayError(f"FedEx unreachable: {exc}", transient=True) from exc

        if response.is_success:
            try:
                data = response.json()
            except ValueError:
                data = None
            if not isinstance(data, dict):
                logger.error("FedEx returned a non-JSON body", path=path, status_code=response.status_code)
                raise CarrierGatewayError(
                    "FedEx returned an unreadable response",
                    transient=True,
                    upstream_status=response.status_code,
                )
            return data

        message = _error_message(response)
        transient = response.status_code == 429 or response.status_code >= 500
        logger.error(
            "FedEx request rejected",
            path=path,
            status_code=response.status_code,
            error=message,
            transient=transient,
        )
        raise CarrierGatewayError(message, transient=transient, upstream_status=response.status_code)

    def _authenticate(self) -> str:
        now = datetime.now(UTC)
        if self._access_token and self._token_expiry and now < self._token_expiry:
            return self._access_token

        if not self.api_key or not self.secret_key:
            raise CarrierGatewayError("FedEx credentials are not configured", transient=False)

        data = self._send(
            "POST",
            "/oauth/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.api_key,
                "client_secret": self.secret_key,
            },
        )
        if not data.get("access_token"):
            raise CarrierGatewayError("FedEx token response carried no access token", transient=True)
        self._access_token = data["access_token"]
        expires_in = int(data.get("expires_in", 3600))
        self._token_expiry = now + timedelta(seconds=expires_in) - _TOKEN_SAFETY_MARGIN
        logger.info("FedEx authentication successful")
        return self._access_token

    def _call(self, method: str, path: str, payload: dict) -> dict:
        token = self._authenticate()
        return self._send(method, path, json=payload, headers={"Authorization": f"Bearer {token}"})

    def _post(self, path: str, payload: dict) -> dict:
        return self._call("POST", path, payload)

    def _package_line_item(self, request: ShipmentRequest) -> dict:
        pkg = request.package
        return {
            "weight": {"units": "KG" if pkg.weight_unit.upper() == "KG" else "LB", "value": pkg.weight},
            "dimensions": {
                "length": int(-(-pkg.length // 1)),
                "width": int(-(-pkg.width // 1)),
                "height": int(-(-pkg.height // 1)),
                "units": "CM" if pkg.dimension_unit.upper() == "CM" else "IN",
            },
        }

    # -------------------------------------------------------------------
    # CarrierGateway
    # -------------------------------------------------------------------
    def quote(self, request: ShipmentRequest) -> list[RateQuote]:
        line_item = self._package_line_item(request)
        line_item["groupPackageCount"] = 1
        line_item["insuredValue"] = {"currency": "USD", "amount": request.package.insured_value or 100}
        recipient = _address_payload(request.destination)
        recipient["residential"] = request.destination.residential

        data = self._post(
            "/rate/v1/rates/quotes",
            {
                "accountNumber": {"value": self.account_number},
                "requestedShipment": {
                    "shipper": {"address": _address_payload(request.origin)},
                    "recipient": {"address": recipient},
                    "pickupType": "USE_SCHEDULED_PICKUP",
                    "rateRequestType": ["LIST", "ACCOUNT"],
                    "requestedPackageLineItems": [line_item],
                    "shipDateStamp": request.ship_date,
                },
            },
        )

        quotes = []
        for rate in (data.get("output") or {}).get("rateReplyDetails") or []:
            details = rate.get("ratedShipmentDetails") or []
            if not details:
                continue
            service_type = rate.get("serviceType", "")
            quotes.append(
                RateQuote(
                    service_type=service_type,
                    service_name=SERVICE_NAMES.get(service_type, service_type),
                    total_charge=float(details[0].get("totalNetCharge") or 0),
                    currency=details[0].get("currency") or "USD",
                    transit_days=_transit_days(rate),
                )
            )
        logger.info("FedEx rates retrieved", reference=request.reference, count=len(quotes))
        return sorted(quotes, key=lambda q: q.total_charge)

    def purchase_label(self, request: ShipmentRequest, quote: RateQuote) -> LabelResult:
        line_item = self._package_line_item(request)
        line_item["customerReferences"] = [{"customerReferenceType": "CUSTOMER_REFERENCE", "value": request.reference}]
        recipient_address = _address_payload(request.destination)
        recipient_address["residential"] = request.destination.residential

        data = self._post(
            "/ship/v1/shipments",
            {
                "labelResponseOptions": "URL_ONLY",
                "accountNumber": {"value": self.account_number},
                "requestedShipment": {
                    "shipper": {
                        "contact": {
                            "personName": request.origin.full_name,
                            "phoneNumber": request.origin.phone_number,
                        },
                        "address": _address_payload(request.origin),
                    },
                    "recipients": [
                        {
                            "contact": {
                                "personName": request.destination.full_name,
                                "phoneNumber": request.destination.phone_number,
                            },
                            "address": recipient_address,
                        }
                    ],
                    "shipDatestamp": request.ship_date,
                    "serviceType": quote.service_type,
                    "packagingType": "YOUR_PACKAGING",
                    "pickupType": "USE_SCHEDULED_PICKUP",
                    "shippingChargesPayment": {"paymentType": "SENDER"},
                    "labelSpecification": {"imageType": "PDF", "labelStockType": "PAPER_85X11_TOP_HALF_LABEL"},
                    "requestedPackageLineItems": [line_item],
                },
            },
        )

        try:
            shipment = data["output"]["transactionShipments"][0]
            piece = shipment["pieceResponses"][0]
        except (KeyError, IndexError, TypeError) as exc:
            raise CarrierGatewayError("FedEx returned an unexpected shipment response", transient=True) from exc

        documents = piece.get("packageDocuments") or []
        estimated = None
        if quote.transit_days:
            estimated = datetime.now(UTC) + timedelta(days=quote.transit_days)

        logger.info("FedEx label purchased", reference=request.reference, tracking_number=piece["trackingNumber"])
        return LabelResult(
            tracking_number=piece["trackingNumber"],
            master_id=shipment.get("masterTrackingNumber") or piece["trackingNumber"],
            label_url=documents[0].get("url") if documents else None,
            service_type=shipment.get("serviceType") or quote.service_type,
            estimated_delivery=estimated,
        )

    def track(self, tracking_number: str) -> TrackingResult:
        data = self._post(
            "/track/v1/trackingnumbers",
            {
                "includeDetailedScans": True,
                "trackingInfo": [{"trackingNumberInfo": {"trackingNumber": tracking_number}}],
            },
        )

        try:
            result = data["output"]["completeTrackResults"][0]["trackResults"][0]
        except (KeyError, IndexError, TypeError) as exc:
            raise CarrierGatewayError("Tracking information not available", transient=True) from exc

        if result.get("error"):
            raise CarrierGatewayError(result["error"].get("message", "Tracking failed"), transient=False)

        events = []
        for scan in result.get("scanEvents") or []:
            occurred_at = _parse_datetime(scan.get("date"))
            if occurred_at is None:
                continue
            location = scan.get("scanLocation") or {}
            place = ", ".join(part for part in (location.get("city"), location.get("stateOrProvinceCode")) if part)
            events.append(
                CarrierEvent(
                    status=scan.get("derivedStatus") or scan.get("eventDescription") or scan.get("eventType", ""),
                    location=place or None,
                    description=scan.get("eventDescription"),
                    occurred_at=occurred_at,
                )
            )

        window = ((result.get("estimatedDeliveryTimeWindow") or {}).get("window") or {}).get("ends")
        if not window:
            window = next(
                (d.get("dateTime") for d in result.get("dateAndTimes") or [] if d.get("type") == "ESTIMATED_DELIVERY"),
                None,
            )

        return TrackingResult(
            tracking_number=tracking_number,
            events=events,
            estimated_delivery=_parse_datetime(window),
        )

    def cancel_shipment(self, tracking_number: str) -> None:
        data = self._call(
            "PUT",
            "/ship/v1/shipments/cancel",
            {
                "accountNumber": {"value": self.account_number},
                "trackingNumber": tracking_number,
                "deletionControl": "DELETE_ALL_PACKAGES",
            },
        )
        if (data.get("output") or {}).get("cancelledShipment") is False:
            raise CarrierGatewayError(f"FedEx declined to cancel shipment {tracking_number}", transient=False)
        logger.info("FedEx shipment cancelled", tracking_number=tracking_number)

    def validate_address(self, address: PostalAddress) -> AddressValidation:
        try:
            data = self._post(
                "/address/v1/addresses/resolve",
                {"addressesToValidate": [{"address": _address_payload(address)}]},
            )
        except CarrierGatewayError as exc:
            if exc.transient:
                raise
            logger.warning("FedEx rejected address", city=address.city, state=address.state, error=exc.reason)
            return AddressValidation(is_valid=False, error=exc.reason)

        try:
            result = data["output"]["resolvedAddresses"][0]
        except (KeyError, IndexError, TypeError) as exc:
            raise CarrierGatewayError("FedEx returned an unexpected address validation response", transient=True) from exc

        classification = result.get("classification") or "UNKNOWN"
        attributes = result.get("attributes")
        logger.info(
            "Address validation completed",
            city=address.city,
            state=address.state,
            classification=classification,
        )
        return AddressValidation(
            is_valid=classification in _DELIVERABLE_CLASSIFICATIONS,
            classification=classification,
            resolved_address=ResolvedAddress(
                street_lines=result.get("streetLinesToken") or [],
                city=result.get("city"),
                state=result.get("stateOrProvinceCode"),
                zip_code=result.get("postalCode"),
                country=result.get("countryCode"),
            ),
            attributes=attributes if isinstance(attributes, dict) else {},
        )
