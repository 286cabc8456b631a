"""Shared BDD fixtures and step definitions for the Orders domain."""

import pytest
from pytest_bdd import given, parsers, then, when

from orders.order.errors import InvalidTransitionError
from orders.order.events import OrderDelivered


@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a paid pending order", target_fixture="order")
def paid_pending_order(new_order):
    return new_order(payment_status="paid")


@given(parsers.cfparse('the order shipped with tracking number "{tracking_number}"'), target_fixture="order")
def shipped_order(order, tracking_number):
    order.record_shipment(carrier="FedEx", tracking_number=tracking_number, service_type="FEDEX_GROUND")
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# When steps (shared)
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the admin sets the status to "{status}"'), target_fixture="order")
@when(parsers.cfparse('the admin sets the status to "{status}"'), target_fixture="order")
def set_status(order, status):
    order.update_status(status, changed_by="admin")
    order._events.clear()
    return order


@when(parsers.cfparse('the admin tries to set the status to "{status}"'))
def try_set_status(order, status, error):
    try:
        order.update_status(status, changed_by="admin")
    except InvalidTransitionError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.order_status == status


@then(parsers.cfparse('the shipping status is "{status}"'))
def shipping_status_is(order, status):
    assert order.shipping_status == status


@then(parsers.cfparse('the status history reads "{statuses}"'))
def status_history_reads(order, statuses):
    assert [c.status for c in order.sorted_status_history()] == [s.strip() for s in statuses.split(",")]


@then(parsers.cfparse("the status history has {count:d} entries"))
def status_history_count(order, count):
    assert len(order.status_history) == count


@then(parsers.cfparse('the change is rejected as an invalid transition from "{status}"'))
def rejected_invalid_transition(error, status):
    assert isinstance(error["exc"], InvalidTransitionError)
    assert error["exc"].current_status == status


@then("an OrderDelivered event is raised")
def order_delivered_raised(order):
    assert any(isinstance(e, OrderDelivered) for e in order._events)


@then("no OrderDelivered event is raised")
def order_delivered_not_raised(order):
    assert not any(isinstance(e, OrderDelivered) for e in order._events)
