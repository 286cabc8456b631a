"""Fulfillment error taxonomy.

Every business-rule violation raised by the order handlers derives from
``FulfillmentError`` and carries the HTTP status the API surfaces it with.
"""


class FulfillmentError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": self.message}


class InvalidTransitionError(FulfillmentError):
    """The order is in a state that does not accept the requested change."""

    status_code = 409

    def __init__(self, message: str, current_status: str | None = None):
        super().__init__(message)
        self.current_status = current_status

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["current_status"] = self.current_status
        return payload


class ShipmentAlreadyExistsError(FulfillmentError):
    status_code = 409


class PaymentNotCompletedError(FulfillmentError):
    status_code = 402


class NoShipmentError(FulfillmentError):
    status_code = 412


class EmailDeliveryError(FulfillmentError):
    """A customer email the admin explicitly asked for could not be delivered."""

    status_code = 502


class CarrierGatewayError(FulfillmentError):
    """The carrier rejected or failed a request.

    ``transient`` failures (timeouts, outages, throttling) can be retried as-is;
    permanent ones need the order data (usually the address) fixed first.
    """

    def __init__(self, reason: str, transient: bool = True, upstream_status: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.transient = transient
        self.upstream_status = upstream_status

    @property
    def status_code(self) -> int:
        return 502 if self.transient else 422

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["retryable"] = self.transient
        return payload
