"""Outbound notification delivery."""

from alignzo.delivery.email import EmailDelivery, EmailResult

__all__ = ["EmailDelivery", "EmailResult"]
