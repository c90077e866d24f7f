"""Out-of-band delivery of one-time passcodes.

The core only needs "attempt delivery, report success or failure"; the mail
transport itself is pluggable.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

_SUBJECTS = {
    "register": "Tu código de registro",
    "login": "Tu código de acceso",
}


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single delivery attempt."""

    success: bool
    message_id: str | None = None
    error: str | None = None


class Notifier(Protocol):
    """Anything that can deliver a code to a contact identity."""

    def send(self, email: str, code: str, purpose: str) -> DeliveryResult:
        ...


class ConsoleNotifier:
    """Writes the code to the application log instead of sending mail.

    Used in development and whenever no mail transport is configured.
    """

    def send(self, email: str, code: str, purpose: str) -> DeliveryResult:
        logger.info(
            "OTP delivery | email=%s | subject=%s | code=%s",
            email,
            _SUBJECTS.get(purpose, "Tu código"),
            code,
        )
        return DeliveryResult(success=True, message_id=f"console-{uuid.uuid4().hex[:12]}")


def safe_send(notifier: Notifier, email: str, code: str, purpose: str) -> DeliveryResult:
    """Call ``notifier.send`` and turn transport exceptions into a failed result."""
    try:
        return notifier.send(email, code, purpose)
    except Exception as err:  # noqa: BLE001 - any transport failure is a delivery failure
        logger.error("OTP delivery to %s failed: %s", email, err, exc_info=True)
        return DeliveryResult(success=False, error=str(err))


_notifier: Notifier = ConsoleNotifier()


def get_notifier() -> Notifier:
    """Return the configured notifier."""
    return _notifier
