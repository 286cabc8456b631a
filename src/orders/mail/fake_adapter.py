"""Fake mail adapter: keeps an in-memory outbox for tests and local runs."""

from uuid import uuid4

from orders.mail.port import MailPort


class FakeMailer(MailPort):
    def __init__(self):
        self.sent_emails: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"
        self.raise_on_send = False

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Email delivery failed",
        raise_on_send: bool = False,
    ):
        """Make sends report failure, or raise outright when ``raise_on_send`` is set."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raise_on_send = raise_on_send

    def send(self, to: str, subject: str, body: str) -> dict:
        if not self.should_succeed:
            if self.raise_on_send:
                raise ConnectionError(self.failure_reason)
            return {"status": "failed", "error": self.failure_reason}

        message_id = f"msg-{uuid4().hex[:12]}"
        self.sent_emails.append({"message_id": message_id, "to": to, "subject": subject, "body": body})
        return {"message_id": message_id, "status": "sent"}
