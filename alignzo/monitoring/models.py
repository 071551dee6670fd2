"""
Monitoring data model: event types, rules, counters and alerts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class AlertSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AlertType(str, Enum):
    SECURITY_BREACH = "SECURITY_BREACH"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    SYSTEM_ERROR = "SYSTEM_ERROR"
    PERFORMANCE_ISSUE = "PERFORMANCE_ISSUE"
    ACCESS_DENIED = "ACCESS_DENIED"
    DATA_BREACH = "DATA_BREACH"
    CONFIGURATION_CHANGE = "CONFIGURATION_CHANGE"


class SecurityEventType(str, Enum):
    LOGIN_ATTEMPT = "login_attempt"
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    CSRF_VIOLATION = "csrf_violation"
    INVALID_INPUT = "invalid_input"
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    DATA_ACCESS = "data_access"
    API_KEY_USAGE = "api_key_usage"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    ACCESS_DENIED = "access_denied"


class ActionType(str, Enum):
    LOG = "log"
    DATABASE = "database"
    EMAIL = "email"
    WEBHOOK = "webhook"
    SLACK = "slack"


@dataclass(frozen=True)
class EventKey:
    """Correlates repeated events from the same actor and origin."""
    event_type: str
    user_email: str
    ip_address: str

    def __str__(self) -> str:
        return f"{self.event_type}:{self.user_email}:{self.ip_address}"


@dataclass
class EventCounter:
    count: int
    first_seen_at: datetime


@dataclass
class AlertAction:
    type: ActionType
    recipients: List[str] = field(default_factory=list)
    webhook_url: Optional[str] = None
    channel: Optional[str] = None


@dataclass
class MonitoringRule:
    """Alert when ``threshold`` events share a key within ``time_window_minutes``."""
    id: str
    name: str
    description: str
    event_type: str
    alert_type: AlertType
    severity: AlertSeverity
    threshold: int
    time_window_minutes: int
    actions: List[AlertAction] = field(default_factory=list)
    enabled: bool = True


@dataclass
class Alert:
    id: str
    rule_id: str
    type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    source: str  # str(EventKey)
    user_email: Optional[str]
    ip_address: Optional[str]
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)
    acknowledged: bool = False
    resolved: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "source": self.source,
            "user_email": self.user_email,
            "ip_address": self.ip_address,
            "metadata": self.metadata,
            "timestamp": iso(self.timestamp),
            "acknowledged": self.acknowledged,
            "resolved": self.resolved,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": iso(self.acknowledged_at),
            "resolved_by": self.resolved_by,
            "resolved_at": iso(self.resolved_at),
        }
