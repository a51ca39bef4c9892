"""Best-effort booking notification posted to a static-site form endpoint."""

import logging
from datetime import date
from typing import Optional

import httpx

from cleanbook.availability.periods import label_for_period
from cleanbook.config import NotificationConfig, settings
from cleanbook.schemas.cart_schema import Period

logger = logging.getLogger(__name__)

_WEEKDAYS = ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"]
_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]


def format_long_date(day: date) -> str:
    """French long date, e.g. ``mardi 4 mars 2025``."""
    return f"{_WEEKDAYS[day.weekday()]} {day.day} {_MONTHS[day.month - 1]} {day.year}"


def build_confirmation_message(
    name: str, day: date, period: Period, service_count: int
) -> str:
    return (
        f"✅ RÉSERVATION CONFIRMÉE - {name} - {format_long_date(day)} - "
        f"{label_for_period(period)} - {service_count} service(s)"
    )


class Notifier:
    """Posts form-encoded messages. Never raises; returns whether it was sent."""

    def __init__(
        self,
        config: Optional[NotificationConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or settings.notifications
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.config.url)

    async def send(self, message: str) -> bool:
        if not self.enabled:
            logger.debug("Notification skipped, no endpoint configured")
            return False

        data = {"form-name": self.config.form_name, "message": message}
        try:
            if self._client is not None:
                resp = await self._client.post(self.config.url, data=data)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout_sec) as client:
                    resp = await client.post(self.config.url, data=data)
        except httpx.HTTPError as exc:
            logger.warning("Notification failed: %s", exc)
            return False

        if resp.status_code >= 400:
            logger.warning("Notification rejected with HTTP %s", resp.status_code)
            return False
        logger.info("Notification sent (%s)", resp.status_code)
        return True
