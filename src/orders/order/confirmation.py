"""Order confirmation: admin-triggered resend of the confirmation email.

The first confirmation goes out from checkout. Admins resend it when a
customer reports it missing; every attempt is kept in ``emails_sent``.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.order.mailing import attempt_email
from orders.order.order import EmailKind, Order

logger = structlog.get_logger(__name__)


@orders.command(part_of="Order")
class ResendConfirmation:
    order_id = Identifier(required=True)


@orders.command_handler(part_of=Order)
class ConfirmationHandler:
    @handle(ResendConfirmation)
    def resend_confirmation(self, command):
        """Returns whether the mailer accepted the email."""
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if not order.customer_email:
            raise ValidationError({"customer_email": ["Order has no customer email to send the confirmation to"]})

        sent = attempt_email(order, EmailKind.CONFIRMATION.value)
        repo.add(order)

        logger.info("Order confirmation resent", order_number=order.order_number, success=sent)
        return sent
