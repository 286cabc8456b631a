"""Carrier adapter abstraction: pluggable shipping carrier integration."""

from orders.settings import get_settings

_carrier_instance = None


def get_carrier():
    """Return the configured carrier adapter (singleton).

    Uses FakeCarrier by default. In production, configure via
    CARRIER_ADAPTER environment variable.
    """
    global _carrier_instance
    if _carrier_instance is None:
        settings = get_settings()
        adapter = settings.carrier_adapter
        if adapter == "fake":
            from orders.carrier.fake_adapter import FakeCarrier

            _carrier_instance = FakeCarrier()
        elif adapter == "fedex":
            from orders.carrier.fedex_adapter import FedExCarrier

            _carrier_instance = FedExCarrier.from_settings(settings)
        else:
            raise ValueError(f"Unknown carrier adapter: {adapter}")
    return _carrier_instance


def reset_carrier():
    """Reset the carrier singleton (useful for testing)."""
    global _carrier_instance
    if _carrier_instance is not None and hasattr(_carrier_instance, "close"):
        _carrier_instance.close()
    _carrier_instance = None
