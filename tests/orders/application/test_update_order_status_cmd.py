"""Application tests for UpdateOrderStatus via domain.process()."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from orders.order.errors import InvalidTransitionError
from orders.order.locking import process_for_order
from orders.order.order import Order
from orders.order.shipment import CreateShipment
from orders.order.status import UpdateOrderStatus


def _update(order_id, status, **kwargs):
    return process_for_order(UpdateOrderStatus(order_id=order_id, order_status=status, **kwargs))


class TestUpdateOrderStatus:
    def test_persists_status_and_history(self, saved_order):
        order_id = saved_order()
        _update(order_id, "processing", note="Framing", changed_by="admin-1")

        order = current_domain.repository_for(Order).get(order_id)
        assert order.order_status == "processing"
        assert len(order.status_history) == 1
        assert order.status_history[0].changed_by == "admin-1"

    def test_history_grows_with_every_update(self, saved_order):
        order_id = saved_order()
        for status in ("processing", "processing", "confirmed", "shipped"):
            _update(order_id, status)

        order = current_domain.repository_for(Order).get(order_id)
        assert [c.status for c in order.sorted_status_history()] == ["processing", "processing", "confirmed", "shipped"]

    def test_terminal_order_rejected_and_unchanged(self, saved_order):
        order_id = saved_order()
        _update(order_id, "cancelled")

        with pytest.raises(InvalidTransitionError):
            _update(order_id, "processing")

        order = current_domain.repository_for(Order).get(order_id)
        assert order.order_status == "cancelled"
        assert len(order.status_history) == 1

    def test_invalid_status_value(self, saved_order):
        order_id = saved_order()
        with pytest.raises(ValidationError):
            _update(order_id, "misplaced")

    def test_unknown_order(self):
        with pytest.raises(ObjectNotFoundError):
            _update("does-not-exist", "processing")


class TestCancellationEmail:
    def test_cancellation_sends_email_once(self, saved_order, mailer):
        order_id = saved_order()
        _update(order_id, "cancelled", note="Out of stock")

        assert len(mailer.sent_emails) == 1
        assert "Cancelled" in mailer.sent_emails[0]["subject"]
        assert "Out of stock" in mailer.sent_emails[0]["body"]

        order = current_domain.repository_for(Order).get(order_id)
        assert [(r.kind, r.success) for r in order.emails_sent] == [("cancellation", True)]

    def test_other_statuses_send_nothing(self, saved_order, mailer):
        order_id = saved_order()
        _update(order_id, "processing")
        _update(order_id, "confirmed")
        assert mailer.sent_emails == []

    def test_failed_email_does_not_fail_cancellation(self, saved_order, mailer):
        mailer.configure(should_succeed=False, failure_reason="SMTP down")
        order_id = saved_order()
        _update(order_id, "cancelled")

        order = current_domain.repository_for(Order).get(order_id)
        assert order.order_status == "cancelled"
        record = order.emails_sent[0]
        assert record.success is False
        assert record.error == "SMTP down"

    def test_no_customer_email_skips_sending(self, saved_order, mailer):
        order_id = saved_order(customer_email=None)
        _update(order_id, "cancelled")
        order = current_domain.repository_for(Order).get(order_id)
        assert order.order_status == "cancelled"
        assert len(order.emails_sent) == 0
        assert mailer.sent_emails == []

    def test_mailer_exception_is_recorded(self, saved_order, mailer):
        mailer.configure(should_succeed=False, failure_reason="Connection reset", raise_on_send=True)
        order_id = saved_order()
        _update(order_id, "cancelled")

        order = current_domain.repository_for(Order).get(order_id)
        assert order.order_status == "cancelled"
        assert order.emails_sent[0].success is False
        assert order.emails_sent[0].error == "Connection reset"


class TestCancellationVoidsShipment:
    @pytest.fixture()
    def shipped_order_id(self, saved_order, carrier):
        carrier.next_tracking_number = "784918293"
        order_id = saved_order()
        process_for_order(CreateShipment(order_id=order_id))
        return order_id

    def test_cancelling_voids_the_label(self, shipped_order_id, carrier):
        _update(shipped_order_id, "cancelled", note="Customer changed their mind")

        assert carrier.cancelled_shipments == ["784918293"]
        order = current_domain.repository_for(Order).get(shipped_order_id)
        assert order.order_status == "cancelled"
        assert order.shipment.voided_at is not None
        assert order.tracking_number == "784918293"

    def test_carrier_refusal_does_not_block_cancellation(self, shipped_order_id, carrier, mailer):
        carrier.configure(should_succeed=False, failure_reason="Label already scanned", transient=False)

        _update(shipped_order_id, "cancelled")

        order = current_domain.repository_for(Order).get(shipped_order_id)
        assert order.order_status == "cancelled"
        assert order.shipment.voided_at is None
        assert "cancellation" in [r.kind for r in order.emails_sent]

    def test_other_statuses_keep_the_label(self, shipped_order_id, carrier):
        _update(shipped_order_id, "processing")
        assert carrier.cancelled_shipments == []

    def test_order_without_shipment_needs_no_carrier(self, saved_order, carrier):
        _update(saved_order(), "cancelled")
        assert carrier.cancelled_shipments == []
