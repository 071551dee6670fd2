"""
Email Delivery Module

Sends security alert notifications via Resend.
"""

import os
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

import resend

if TYPE_CHECKING:
    from alignzo.monitoring.models import Alert

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    """Result of email delivery."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def alert_email_text(alert: "Alert") -> str:
    return (
        f"Security Alert: {alert.title}\n"
        f"\n"
        f"Severity: {alert.severity.value}\n"
        f"Time: {alert.timestamp.isoformat()}\n"
        f"User: {alert.user_email or 'Unknown'}\n"
        f"IP: {alert.ip_address or 'Unknown'}\n"
        f"\n"
        f"Message: {alert.message}\n"
        f"\n"
        f"Please investigate this security event immediately.\n"
    )


class EmailDelivery:
    """Email delivery service using Resend."""

    DEFAULT_FROM_EMAIL = "alerts@alignzo.app"
    DEFAULT_FROM_NAME = "Alignzo Security"

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
    ):
        """
        Initialize email delivery.

        Args:
            api_key: Resend API key (defaults to env var)
            from_email: Sender email address
        """
        self.api_key = api_key or os.getenv("RESEND_API_KEY")
        if not self.api_key:
            logger.warning("RESEND_API_KEY not set - email delivery disabled")

        self.from_email = from_email or os.getenv("FROM_EMAIL", self.DEFAULT_FROM_EMAIL)

        if self.api_key:
            resend.api_key = self.api_key

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send_alert(self, recipients: List[str], alert: "Alert") -> EmailResult:
        """
        Send an alert notification.

        Args:
            recipients: Addresses to notify
            alert: The alert to describe

        Returns:
            EmailResult indicating success/failure
        """
        if not self.api_key:
            return EmailResult(
                success=False,
                error="Email delivery not configured (missing API key)"
            )

        try:
            params = {
                "from": f"{self.DEFAULT_FROM_NAME} <{self.from_email}>",
                "to": list(recipients),
                "subject": f"[{alert.severity.value}] Security Alert: {alert.title}",
                "text": alert_email_text(alert),
            }

            response = resend.Emails.send(params)

            logger.info(f"Alert email {alert.id} sent to {', '.join(recipients)}")

            return EmailResult(success=True, message_id=response.get("id"))

        except Exception as e:
            logger.error(f"Alert email delivery failed: {e}")
            return EmailResult(success=False, error=str(e))
