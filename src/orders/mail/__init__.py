"""Mail adapter registry: pluggable customer email dispatch."""

from orders.settings import get_settings

_mailer_instance = None


def get_mailer():
    """Return the configured mail adapter (singleton).

    Uses FakeMailer by default; configure via the MAIL_ADAPTER environment variable.
    """
    global _mailer_instance
    if _mailer_instance is None:
        adapter = get_settings().mail_adapter
        if adapter == "fake":
            from orders.mail.fake_adapter import FakeMailer

            _mailer_instance = FakeMailer()
        else:
            raise ValueError(f"Unknown mail adapter: {adapter}")
    return _mailer_instance


def reset_mailer():
    """Reset the mailer singleton (useful for testing)."""
    global _mailer_instance
    _mailer_instance = None
