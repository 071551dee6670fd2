"""Built-in monitoring rules."""

from typing import List

from alignzo.monitoring.models import (
    ActionType,
    AlertAction,
    AlertSeverity,
    AlertType,
    MonitoringRule,
    SecurityEventType,
)


def default_rules() -> List[MonitoringRule]:
    """Fresh copies of the built-in rules."""
    return [
        MonitoringRule(
            id="rate-limit-exceeded",
            name="Rate Limit Exceeded",
            description="Multiple rate limit violations from same IP",
            event_type=SecurityEventType.RATE_LIMIT_EXCEEDED.value,
            alert_type=AlertType.RATE_LIMIT_EXCEEDED,
            severity=AlertSeverity.MEDIUM,
            threshold=5,
            time_window_minutes=15,
            actions=[AlertAction(ActionType.LOG), AlertAction(ActionType.DATABASE)],
        ),
        MonitoringRule(
            id="failed-login-attempts",
            name="Failed Login Attempts",
            description="Multiple failed login attempts from same IP",
            event_type=SecurityEventType.LOGIN_FAILED.value,
            alert_type=AlertType.SECURITY_BREACH,
            severity=AlertSeverity.HIGH,
            threshold=3,
            time_window_minutes=10,
            actions=[
                AlertAction(ActionType.LOG),
                AlertAction(ActionType.DATABASE),
                AlertAction(ActionType.EMAIL, recipients=["admin@example.com"]),
            ],
        ),
        MonitoringRule(
            id="suspicious-data-access",
            name="Suspicious Data Access",
            description="Unusual data access patterns",
            event_type=SecurityEventType.DATA_ACCESS.value,
            alert_type=AlertType.SUSPICIOUS_ACTIVITY,
            severity=AlertSeverity.MEDIUM,
            threshold=50,
            time_window_minutes=5,
            actions=[AlertAction(ActionType.LOG), AlertAction(ActionType.DATABASE)],
        ),
        MonitoringRule(
            id="access-denied-pattern",
            name="Access Denied Pattern",
            description="Multiple access denied events",
            event_type=SecurityEventType.ACCESS_DENIED.value,
            alert_type=AlertType.ACCESS_DENIED,
            severity=AlertSeverity.HIGH,
            threshold=10,
            time_window_minutes=10,
            actions=[
                AlertAction(ActionType.LOG),
                AlertAction(ActionType.DATABASE),
                AlertAction(ActionType.EMAIL, recipients=["security@example.com"]),
            ],
        ),
    ]
