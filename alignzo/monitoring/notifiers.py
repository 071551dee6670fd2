"""
Outbound alert notifications: generic JSON webhooks and Slack.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from alignzo.monitoring.models import Alert, AlertSeverity

logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    AlertSeverity.LOW: "#36a64f",
    AlertSeverity.MEDIUM: "#ffa500",
    AlertSeverity.HIGH: "#ff0000",
    AlertSeverity.CRITICAL: "#8b0000",
}
DEFAULT_COLOR = "#808080"


class NotificationError(Exception):
    """Raised when an alert notification cannot be delivered."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


def build_slack_message(alert: Alert, channel: Optional[str] = None) -> Dict[str, Any]:
    message = {
        "text": f":rotating_light: Security Alert: {alert.title}",
        "attachments": [
            {
                "color": SEVERITY_COLORS.get(alert.severity, DEFAULT_COLOR),
                "fields": [
                    {"title": "Severity", "value": alert.severity.value, "short": True},
                    {"title": "User", "value": alert.user_email or "Unknown", "short": True},
                    {"title": "IP Address", "value": alert.ip_address or "Unknown", "short": True},
                    {"title": "Time", "value": alert.timestamp.isoformat(), "short": True},
                    {"title": "Message", "value": alert.message, "short": False},
                ],
            }
        ],
    }
    if channel:
        message["channel"] = channel
    return message


class WebhookNotifier:
    """Posts alerts to webhook endpoints."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def _post(self, url: str, payload: Dict[str, Any], target: str):
        try:
            response = await self._client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"{target} notification failed: {e}") from e

        if response.status_code >= 400:
            raise NotificationError(
                f"{target} notification failed: {response.status_code}",
                status_code=response.status_code,
            )

    async def send_webhook(self, url: str, alert: Alert):
        """POST the serialized alert."""
        await self._post(url, alert.to_dict(), "Webhook")
        logger.info(f"Webhook notification sent for alert {alert.id}")

    async def send_slack(self, url: str, alert: Alert, channel: Optional[str] = None):
        """POST a severity-coloured Slack message."""
        await self._post(url, build_slack_message(alert, channel), "Slack")
        logger.info(f"Slack notification sent for alert {alert.id}")

    async def close(self):
        await self._client.aclose()
