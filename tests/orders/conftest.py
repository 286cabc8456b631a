import pytest
from protean.integrations.pytest import DomainFixture

from orders.carrier import reset_carrier
from orders.mail import reset_mailer
from orders.settings import reset_settings


@pytest.fixture(scope="session")
def orders_bed():
    from orders.domain import orders

    bed = DomainFixture(orders)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(orders_bed):
    with orders_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()


@pytest.fixture(autouse=True)
def _adapters():
    """Fresh settings, carrier and mailer for every test."""
    reset_settings()
    reset_carrier()
    reset_mailer()
    yield
    reset_carrier()
    reset_mailer()
    reset_settings()


_DEFAULT_ITEMS = [
    {
        "product_id": "prod-sunset",
        "title": "Sunset Over Biscayne (framed print)",
        "unit_price": 120.0,
        "quantity": 1,
        "weight": 6.0,
        "weight_unit": "LB",
        "dimensions": {"length": 20.0, "width": 16.0, "height": 3.0, "unit": "IN"},
    },
    {
        "product_id": "prod-palms",
        "title": "Palms at Dusk (canvas)",
        "unit_price": 40.0,
        "quantity": 2,
    },
]

_DEFAULT_PRICING = {"subtotal": 200.0, "discount": 10.0, "shipping_cost": 15.0, "tax": 14.0, "total": 219.0}

_DEFAULT_ADDRESS = {
    "full_name": "Jordan Rivera",
    "phone_number": "3055550123",
    "address_line1": "200 Ocean Dr",
    "address_line2": "Apt 4",
    "city": "Miami Beach",
    "state": "FL",
    "zip_code": "33139",
    "country": "US",
    "residential": True,
}


@pytest.fixture()
def order_data():
    """Checkout payload for a two-line order, as keyword arguments of ``Order.place``."""

    def _data(**overrides):
        data = {
            "order_number": "ORD260101000001",
            "items_data": [dict(item) for item in _DEFAULT_ITEMS],
            "pricing": dict(_DEFAULT_PRICING),
            "shipping_address": dict(_DEFAULT_ADDRESS),
            "customer_id": "cust-001",
            "customer_email": "jordan@example.com",
            "payment_status": "paid",
        }
        data.update(overrides)
        return data

    return _data


@pytest.fixture()
def new_order(order_data):
    """Factory for an unsaved order with its creation events cleared."""
    from orders.order.order import Order

    def _new(**overrides):
        order = Order.place(**order_data(**overrides))
        order._events.clear()
        return order

    return _new


@pytest.fixture()
def saved_order(new_order):
    """Factory for a persisted order; returns its id."""
    from protean import current_domain

    from orders.order.order import Order

    counter = {"n": 0}

    def _saved(**overrides):
        counter["n"] += 1
        overrides.setdefault("order_number", f"ORD260101{counter['n']:06d}")
        created_at = overrides.pop("created_at", None)
        order = new_order(**overrides)
        if created_at is not None:
            order.created_at = created_at
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    return _saved


@pytest.fixture()
def carrier():
    from orders.carrier import get_carrier

    return get_carrier()


@pytest.fixture()
def mailer():
    from orders.mail import get_mailer

    return get_mailer()
