"""Customer email templates for fulfillment milestones."""

from orders.order.order import EmailKind


class OrderConfirmationTemplate:
    kind = EmailKind.CONFIRMATION.value

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        currency = context.get("currency") or "USD"
        lines = [
            f"- {item['title']} x{item['quantity']}: {item['unit_price'] * item['quantity']:.2f} {currency}"
            for item in context.get("items") or []
        ]
        body = f"Thank you for your order #{order_number}!\n\n"
        if lines:
            body += "\n".join(lines) + "\n\n"
        if context.get("total") is not None:
            body += f"Total: {context['total']:.2f} {currency}\n\n"
        body += "We will email you again as soon as it ships."
        return {"subject": f"Order Confirmation - {order_number}", "body": body}


class ShippingConfirmationTemplate:
    kind = EmailKind.SHIPPING.value

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        tracking_number = context.get("tracking_number", "N/A")
        estimated_delivery = context.get("estimated_delivery") or "soon"
        return {
            "subject": f"Your Order {order_number} Has Shipped!",
            "body": (
                f"Great news! Your order #{order_number} has shipped.\n\n"
                f"Carrier: {context.get('carrier', 'FedEx')}\n"
                f"Service: {context.get('service_type', 'Standard')}\n"
                f"Tracking Number: {tracking_number}\n"
                f"Estimated Delivery: {estimated_delivery}\n\n"
                "You can track your package using the tracking number above."
            ),
        }


class DeliveryConfirmationTemplate:
    kind = EmailKind.DELIVERY.value

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        return {
            "subject": f"Your Order {order_number} Has Been Delivered",
            "body": (
                f"Your order #{order_number} was delivered.\n\n"
                f"Tracking Number: {context.get('tracking_number', 'N/A')}\n\n"
                "We hope you enjoy your purchase!"
            ),
        }


class OrderCancellationTemplate:
    kind = EmailKind.CANCELLATION.value

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        note = context.get("note")
        body = f"Your order #{order_number} has been cancelled."
        if note:
            body += f"\n\nReason: {note}"
        body += "\n\nIf you were charged, a refund will follow to your original payment method."
        return {"subject": f"Order {order_number} Cancelled", "body": body}


TEMPLATES = {
    template.kind: template
    for template in (
        OrderConfirmationTemplate,
        ShippingConfirmationTemplate,
        DeliveryConfirmationTemplate,
        OrderCancellationTemplate,
    )
}
