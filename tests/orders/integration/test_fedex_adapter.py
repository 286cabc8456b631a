"""Integration tests for the FedEx adapter against a mocked HTTP transport."""

import json
from datetime import UTC, datetime

import httpx
import pytest

from orders.carrier.fedex_adapter import FedExCarrier
from orders.carrier.port import Address, Package, PostalAddress, RateQuote, ShipmentRequest
from orders.order.errors import CarrierGatewayError

_REQUEST = ShipmentRequest(
    reference="ORD260315000042",
    origin=Address(
        full_name="Art By Bayshore",
        phone_number="1234567890",
        address_line1="1717 N Bayshore Dr 121",
        city="Miami",
        state="FL",
        zip_code="33132",
    ),
    destination=Address(
        full_name="Jordan Rivera",
        phone_number="3055550123",
        address_line1="200 Ocean Dr",
        address_line2="Apt 4",
        city="Miami Beach",
        state="FL",
        zip_code="33139",
    ),
    package=Package(weight=16.0, length=24.0, width=24.0, height=10.5, insured_value=200.0),
    ship_date="2026-03-15",
)

_RATES = {
    "output": {
        "rateReplyDetails": [
            {
                "serviceType": "FEDEX_2_DAY",
                "ratedShipmentDetails": [{"totalNetCharge": 24.95, "currency": "USD"}],
                "commit": {"transitDays": {"minimumTransitTime": "TWO_DAYS"}},
            },
            {
                "serviceType": "FEDEX_GROUND",
                "ratedShipmentDetails": [{"totalNetCharge": 12.40, "currency": "USD"}],
                "commit": {"transitDays": {"minimumTransitTime": "FIVE_DAYS"}},
            },
            {"serviceType": "FIRST_OVERNIGHT", "ratedShipmentDetails": []},
        ]
    }
}

_SHIPMENT = {
    "output": {
        "transactionShipments": [
            {
                "masterTrackingNumber": "784918293",
                "serviceType": "FEDEX_GROUND",
                "pieceResponses": [
                    {
                        "trackingNumber": "784918293",
                        "packageDocuments": [{"url": "https://fedex.example.com/label/784918293.pdf"}],
                    }
                ],
            }
        ]
    }
}

_TRACKING = {
    "output": {
        "completeTrackResults": [
            {
                "trackResults": [
                    {
                        "scanEvents": [
                            {
                                "date": "2026-03-18T14:05:00-04:00",
                                "derivedStatus": "Delivered",
                                "eventDescription": "Delivered",
                                "scanLocation": {"city": "MIAMI BEACH", "stateOrProvinceCode": "FL"},
                            },
                            {
                                "date": "2026-03-16T09:30:00Z",
                                "derivedStatus": "Picked up",
                                "eventDescription": "Picked up",
                                "scanLocation": {"city": "MIAMI", "stateOrProvinceCode": "FL"},
                            },
                            {"date": None, "eventType": "XX"},
                        ],
                        "estimatedDeliveryTimeWindow": {"window": {"ends": "2026-03-18T20:00:00Z"}},
                    }
                ]
            }
        ]
    }
}


_RESOLVED = {
    "output": {
        "resolvedAddresses": [
            {
                "streetLinesToken": ["200 OCEAN DR", "APT 4"],
                "city": "MIAMI BEACH",
                "stateOrProvinceCode": "FL",
                "postalCode": "33139-6613",
                "countryCode": "US",
                "classification": "RESIDENTIAL",
                "attributes": {"Resolved": "true", "DPV": "true"},
            }
        ]
    }
}

_DESTINATION = PostalAddress(
    address_line1="200 Ocean Dr",
    address_line2="Apt 4",
    city="Miami Beach",
    state="FL",
    zip_code="33139",
)

class FakeFedEx:
    """Routes FedEx API paths to canned responses and records calls."""

    def __init__(self, responses=None):
        self.calls: list[httpx.Request] = []
        self.token_requests = 0
        self.responses = {
            "/rate/v1/rates/quotes": httpx.Response(200, json=_RATES),
            "/ship/v1/shipments": httpx.Response(200, json=_SHIPMENT),
            "/track/v1/trackingnumbers": httpx.Response(200, json=_TRACKING),
            "/ship/v1/shipments/cancel": httpx.Response(200, json={"output": {"cancelledShipment": True}}),
            "/address/v1/addresses/resolve": httpx.Response(200, json=_RESOLVED),
        }
        self.responses.update(responses or {})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if request.url.path == "/oauth/token":
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": "token-abc", "expires_in": 3600})
        response = self.responses[request.url.path]
        if isinstance(response, Exception):
            raise response
        return response


def _carrier(handler, api_key="key", secret_key="secret"):
    return FedExCarrier(
        base_url="https://apis-sandbox.fedex.com",
        api_key=api_key,
        secret_key=secret_key,
        account_number="740561073",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestFedExRates:
    def test_parses_quotes_cheapest_first(self):
        quotes = _carrier(FakeFedEx()).quote(_REQUEST)
        assert [(q.service_type, q.total_charge, q.transit_days) for q in quotes] == [
            ("FEDEX_GROUND", 12.40, 5),
            ("FEDEX_2_DAY", 24.95, 2),
        ]
        assert quotes[0].service_name == "FedEx Ground"

    def test_sends_bearer_token_and_account(self):
        fedex = FakeFedEx()
        _carrier(fedex).quote(_REQUEST)
        rate_call = fedex.calls[-1]
        assert rate_call.headers["Authorization"] == "Bearer token-abc"
        payload = json.loads(rate_call.content)
        assert payload["accountNumber"] == {"value": "740561073"}
        assert payload["requestedShipment"]["recipient"]["address"]["postalCode"] == "33139"

    def test_token_is_cached(self):
        fedex = FakeFedEx()
        carrier = _carrier(fedex)
        carrier.quote(_REQUEST)
        carrier.track("784918293")
        assert fedex.token_requests == 1

    def test_missing_credentials_is_permanent(self):
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(FakeFedEx(), api_key=None).quote(_REQUEST)
        assert exc.value.transient is False


class TestFedExLabel:
    def test_purchase_label(self):
        fedex = FakeFedEx()
        quote = RateQuote(service_type="FEDEX_GROUND", total_charge=12.40, transit_days=5)
        label = _carrier(fedex).purchase_label(_REQUEST, quote)

        assert label.tracking_number == "784918293"
        assert label.master_id == "784918293"
        assert label.label_url == "https://fedex.example.com/label/784918293.pdf"
        assert label.estimated_delivery is not None

        payload = json.loads(fedex.calls[-1].content)
        line_item = payload["requestedShipment"]["requestedPackageLineItems"][0]
        assert line_item["customerReferences"][0]["value"] == "ORD260315000042"
        assert line_item["dimensions"]["height"] == 11

    def test_malformed_response_is_transient(self):
        fedex = FakeFedEx({"/ship/v1/shipments": httpx.Response(200, json={"output": {}})})
        quote = RateQuote(service_type="FEDEX_GROUND", total_charge=12.40)
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).purchase_label(_REQUEST, quote)
        assert exc.value.transient is True


class TestFedExTracking:
    def test_parses_scan_events(self):
        result = _carrier(FakeFedEx()).track("784918293")

        assert [e.status for e in result.events] == ["Delivered", "Picked up"]
        assert result.events[0].occurred_at == datetime(2026, 3, 18, 18, 5, tzinfo=UTC)
        assert result.events[0].location == "MIAMI BEACH, FL"
        assert result.estimated_delivery == datetime(2026, 3, 18, 20, 0, tzinfo=UTC)

    def test_tracking_error_is_permanent(self):
        body = {"output": {"completeTrackResults": [{"trackResults": [{"error": {"message": "Tracking number not found"}}]}]}}
        fedex = FakeFedEx({"/track/v1/trackingnumbers": httpx.Response(200, json=body)})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).track("000")
        assert exc.value.transient is False
        assert exc.value.reason == "Tracking number not found"


class TestFedExFailureClassification:
    @pytest.mark.parametrize("status_code", [429, 500, 503])
    def test_throttling_and_outages_are_transient(self, status_code):
        fedex = FakeFedEx({"/rate/v1/rates/quotes": httpx.Response(status_code, json={"errors": [{"message": "Try later"}]})})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).quote(_REQUEST)
        assert exc.value.transient is True
        assert exc.value.upstream_status == status_code
        assert exc.value.status_code == 502

    @pytest.mark.parametrize("status_code", [400, 401, 404, 422])
    def test_client_errors_are_permanent(self, status_code):
        body = {"errors": [{"code": "POSTALCODE.INVALID", "message": "Invalid postal code"}]}
        fedex = FakeFedEx({"/rate/v1/rates/quotes": httpx.Response(status_code, json=body)})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).quote(_REQUEST)
        assert exc.value.transient is False
        assert exc.value.reason == "Invalid postal code"
        assert exc.value.status_code == 422

    def test_timeout_is_transient(self):
        fedex = FakeFedEx({"/track/v1/trackingnumbers": httpx.ReadTimeout("timed out")})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).track("784918293")
        assert exc.value.transient is True

    def test_connection_error_is_transient(self):
        fedex = FakeFedEx({"/track/v1/trackingnumbers": httpx.ConnectError("connection refused")})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).track("784918293")
        assert exc.value.transient is True


    def test_unreadable_success_body_is_transient(self):
        fedex = FakeFedEx({"/track/v1/trackingnumbers": httpx.Response(200, text="<html>maintenance</html>")})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).track("784918293")
        assert exc.value.transient is True
        assert exc.value.upstream_status == 200

    def test_non_object_json_body_is_transient(self):
        fedex = FakeFedEx({"/rate/v1/rates/quotes": httpx.Response(200, json=["unexpected"])})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).quote(_REQUEST)
        assert exc.value.transient is True

    @pytest.mark.parametrize("body", [["upstream", "failure"], {"errors": "bad"}, {"errors": ["Invalid postal code"]}])
    def test_odd_error_bodies_are_still_classified(self, body):
        fedex = FakeFedEx({"/rate/v1/rates/quotes": httpx.Response(400, json=body)})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).quote(_REQUEST)
        assert exc.value.transient is False
        assert exc.value.upstream_status == 400

    def test_html_error_page_is_classified(self):
        fedex = FakeFedEx({"/rate/v1/rates/quotes": httpx.Response(503, text="<html>Service Unavailable</html>")})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).quote(_REQUEST)
        assert exc.value.transient is True
        assert "Service Unavailable" in exc.value.reason


class TestFedExCancelShipment:
    def test_cancel_sends_tracking_number(self):
        fedex = FakeFedEx()
        _carrier(fedex).cancel_shipment("784918293")

        call = fedex.calls[-1]
        assert call.method == "PUT"
        payload = json.loads(call.content)
        assert payload["trackingNumber"] == "784918293"
        assert payload["deletionControl"] == "DELETE_ALL_PACKAGES"

    def test_declined_cancellation_is_permanent(self):
        body = {"output": {"cancelledShipment": False}}
        fedex = FakeFedEx({"/ship/v1/shipments/cancel": httpx.Response(200, json=body)})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).cancel_shipment("784918293")
        assert exc.value.transient is False


class TestFedExAddressValidation:
    def test_resolves_and_classifies(self):
        fedex = FakeFedEx()
        result = _carrier(fedex).validate_address(_DESTINATION)

        assert result.is_valid is True
        assert result.classification == "RESIDENTIAL"
        assert result.resolved_address.zip_code == "33139-6613"
        assert result.resolved_address.street_lines == ["200 OCEAN DR", "APT 4"]
        assert result.attributes["DPV"] == "true"
        payload = json.loads(fedex.calls[-1].content)
        assert payload["addressesToValidate"][0]["address"]["streetLines"] == ["200 Ocean Dr", "Apt 4"]

    def test_rejected_address_is_invalid_not_an_error(self):
        body = {"errors": [{"message": "Address not found"}]}
        fedex = FakeFedEx({"/address/v1/addresses/resolve": httpx.Response(400, json=body)})
        result = _carrier(fedex).validate_address(_DESTINATION)
        assert result.is_valid is False
        assert result.error == "Address not found"

    def test_outage_still_raises(self):
        fedex = FakeFedEx({"/address/v1/addresses/resolve": httpx.Response(503, json={})})
        with pytest.raises(CarrierGatewayError) as exc:
            _carrier(fedex).validate_address(_DESTINATION)
        assert exc.value.transient is True

def test_selected_from_settings(monkeypatch):
    from orders.carrier import get_carrier
    from orders.settings import reset_settings

    monkeypatch.setenv("CARRIER_ADAPTER", "fedex")
    monkeypatch.setenv("FEDEX_MODE", "production")
    reset_settings()

    carrier = get_carrier()

    assert isinstance(carrier, FedExCarrier)
    assert str(carrier._client.base_url).startswith("https://apis.fedex.com")
