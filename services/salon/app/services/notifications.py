"""Booking notification hand-off.

The booking flow only hands the client, the appointment and the booked
services to a :class:`Notifier`; message content and delivery channel are
the receiver's business. A notifier never raises: the outcome is returned
and recorded in the notification ledger.
"""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import httpx

from app.models.salon import Appointment, Client, Service
from app.models.tenant import Tenant

logger = logging.getLogger(__name__)

BOOKING_CREATED = "appointment.created"


@dataclass(frozen=True)
class NotificationOutcome:
    success: bool
    channel: str
    message: str = ""


class Notifier(Protocol):
    channel: str

    def notify(
        self,
        tenant: Optional[Tenant],
        client: Client,
        appointment: Appointment,
        services: List[Service],
    ) -> NotificationOutcome: ...


class NullNotifier:
    """Notifier used when no delivery endpoint is configured."""

    channel = "none"

    def notify(self, tenant, client, appointment, services) -> NotificationOutcome:
        return NotificationOutcome(success=True, channel=self.channel, message="Notifications disabled")


def validate_webhook_url(url: Optional[str]) -> bool:
    """Check that a webhook URL is safe to call.

    Rules:
    - HTTPS is always allowed
    - HTTP only for localhost/127.0.0.1 (development)
    - anything else is rejected

    Parameters
    ----------
    url : str | None
        URL to validate

    Returns
    -------
    bool
        True if the URL can be used
    """
    if not url:
        return False

    url_lower = url.lower().strip()

    if url_lower.startswith("https://"):
        return True

    if url_lower.startswith("http://"):
        return url_lower.startswith("http://localhost") or url_lower.startswith("http://127.0.0.1")

    return False


def generate_signature(payload: str, secret: str) -> str:
    """HMAC-SHA256 hex digest of ``payload`` keyed by ``secret``."""
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def booking_payload(
    tenant: Optional[Tenant],
    client: Client,
    appointment: Appointment,
    services: List[Service],
) -> Dict[str, Any]:
    return {
        "tenant": {"id": tenant.id, "slug": tenant.slug, "name": tenant.name} if tenant else None,
        "client": client.to_storage(),
        "appointment": appointment.to_storage(),
        "services": [service.to_storage() for service in services],
    }


class WebhookNotifier:
    """POST booking events to a webhook endpoint.

    Parameters
    ----------
    url : str
        Destination URL (see :func:`validate_webhook_url`)
    secret : str | None
        Optional secret; when set the body is signed in ``X-Webhook-Signature``
    client : httpx.Client | None
        HTTP client, injectable for tests
    timeout : float
        Timeout in seconds (default: 10.0)
    """

    channel = "webhook"

    def __init__(
        self,
        url: str,
        secret: Optional[str] = None,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._secret = secret
        self._client = client or httpx.Client()
        self._timeout = timeout

    def notify(self, tenant, client, appointment, services) -> NotificationOutcome:
        if not validate_webhook_url(self._url):
            logger.warning("Invalid webhook URL: %s", self._url)
            return NotificationOutcome(False, self.channel, "Invalid webhook URL")

        body = json.dumps(
            {"event": BOOKING_CREATED, "data": booking_payload(tenant, client, appointment, services)},
            default=str,
        )
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "Salon-Booking-Webhook/1.0",
        }
        if self._secret:
            headers["X-Webhook-Signature"] = f"sha256={generate_signature(body, self._secret)}"

        try:
            response = self._client.post(self._url, content=body, headers=headers, timeout=self._timeout)
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("Timeout sending webhook to %s (appointment %s)", self._url, appointment.id)
            return NotificationOutcome(False, self.channel, "Timeout")
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "HTTP error sending webhook to %s (appointment %s): %s",
                self._url,
                appointment.id,
                exc.response.status_code,
            )
            return NotificationOutcome(False, self.channel, f"HTTP {exc.response.status_code}")
        except httpx.HTTPError as exc:
            logger.exception("Unexpected error sending webhook to %s", self._url)
            return NotificationOutcome(False, self.channel, str(exc))

        logger.info("Webhook sent to %s (appointment %s)", self._url, appointment.id)
        return NotificationOutcome(True, self.channel, "Delivered")
