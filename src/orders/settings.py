"""Runtime settings for shipping and carrier integration.

Values come from environment variables so that deployments (and tests) can
swap adapters and business parameters without code changes.
"""

import os

from pydantic import BaseModel


class WarehouseAddress(BaseModel):
    """Origin address that every shipment is sent from."""

    full_name: str = "Art By Bayshore"
    phone_number: str = "1234567890"
    address_line1: str = "1717 N Bayshore Dr 121"
    city: str = "Miami"
    state: str = "FL"
    zip_code: str = "33132"
    country: str = "US"


class ShippingSettings(BaseModel):
    carrier_adapter: str = "fake"
    mail_adapter: str = "fake"
    carrier_timeout_seconds: float = 20.0
    # Delivery-speed floor for service selection; None means "cheapest wins"
    max_transit_days: int | None = 5
    warehouse: WarehouseAddress = WarehouseAddress()
    fedex_mode: str = "sandbox"
    fedex_api_url_sandbox: str = "https://apis-sandbox.fedex.com"
    fedex_api_url_production: str = "https://apis.fedex.com"
    fedex_api_key: str | None = None
    fedex_secret_key: str | None = None
    fedex_account_number: str | None = None

    @property
    def fedex_base_url(self) -> str:
        if self.fedex_mode == "production":
            return self.fedex_api_url_production
        return self.fedex_api_url_sandbox

    @classmethod
    def from_env(cls) -> "ShippingSettings":
        env = os.environ
        max_transit = env.get("MAX_TRANSIT_DAYS", "5")
        warehouse_defaults = WarehouseAddress()
        warehouse = WarehouseAddress(
            full_name=env.get("COMPANY_NAME", warehouse_defaults.full_name),
            phone_number=env.get("SUPPORT_PHONE", warehouse_defaults.phone_number),
            address_line1=env.get("WAREHOUSE_ADDRESS_LINE1", warehouse_defaults.address_line1),
            city=env.get("WAREHOUSE_CITY", warehouse_defaults.city),
            state=env.get("WAREHOUSE_STATE", warehouse_defaults.state),
            zip_code=env.get("WAREHOUSE_ZIP", warehouse_defaults.zip_code),
        )
        return cls(
            carrier_adapter=env.get("CARRIER_ADAPTER", "fake"),
            mail_adapter=env.get("MAIL_ADAPTER", "fake"),
            carrier_timeout_seconds=float(env.get("CARRIER_TIMEOUT_SECONDS", "20")),
            max_transit_days=int(max_transit) if max_transit else None,
            warehouse=warehouse,
            fedex_mode=env.get("FEDEX_MODE", "sandbox"),
            fedex_api_url_sandbox=env.get("FEDEX_API_URL_SANDBOX", cls.model_fields["fedex_api_url_sandbox"].default),
            fedex_api_url_production=env.get(
                "FEDEX_API_URL_PRODUCTION", cls.model_fields["fedex_api_url_production"].default
            ),
            fedex_api_key=env.get("FEDEX_API_KEY"),
            fedex_secret_key=env.get("FEDEX_SECRET_KEY"),
            fedex_account_number=env.get("FEDEX_ACCOUNT_NUMBER"),
        )


_settings: ShippingSettings | None = None


def get_settings() -> ShippingSettings:
    """Return the process-wide settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = ShippingSettings.from_env()
    return _settings


def reset_settings():
    """Drop cached settings so the next call re-reads the environment (useful for testing)."""
    global _settings
    _settings = None
