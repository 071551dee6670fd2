"""
Alignzo Security Monitoring

Threshold rules over security and audit events, with cooldown-limited
alerts and pluggable actions (log, database, email, webhook, Slack).
"""

from alignzo.monitoring.config import MonitoringConfig, get_monitoring_config
from alignzo.monitoring.engine import AlertNotFoundError, MonitoringEngine
from alignzo.monitoring.models import (
    ActionType,
    Alert,
    AlertAction,
    AlertSeverity,
    AlertType,
    EventCounter,
    EventKey,
    MonitoringRule,
    SecurityEventType,
)
from alignzo.monitoring.notifiers import NotificationError, WebhookNotifier
from alignzo.monitoring.rules import default_rules
from alignzo.monitoring.store import AlertStore

__all__ = [
    "ActionType",
    "Alert",
    "AlertAction",
    "AlertNotFoundError",
    "AlertSeverity",
    "AlertStore",
    "AlertType",
    "EventCounter",
    "EventKey",
    "MonitoringConfig",
    "MonitoringEngine",
    "MonitoringRule",
    "NotificationError",
    "SecurityEventType",
    "WebhookNotifier",
    "default_rules",
    "get_monitoring_config",
]
