"""Mail port: how order emails leave the system."""

from abc import ABC, abstractmethod


class MailPort(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> dict:
        """Deliver one plain-text message.

        Returns a dict with ``status`` ("sent" or "failed"), the provider's
        ``message_id`` when sent, and ``error`` when not. Adapters may also
        raise; callers record either outcome as a failed attempt.
        """
        ...
