"""
Monitoring Configuration

Loaded from MONITORING_* environment variables, e.g.
MONITORING_ENABLED=false or MONITORING_ALERT_COOLDOWN_MINUTES=10.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class MonitoringConfig(BaseSettings):
    """Alerting behaviour of the monitoring engine."""

    enabled: bool = True
    alert_retention_days: int = 30
    max_alerts_per_hour: int = 100
    email_notifications: bool = True
    webhook_notifications: bool = False
    slack_notifications: bool = False
    auto_acknowledge_low_severity: bool = True
    alert_cooldown_minutes: int = 5

    # Counters older than this are dropped by cleanup regardless of rule windows
    counter_retention_minutes: int = 60
    cleanup_interval_seconds: int = 300

    default_email_recipients: List[str] = Field(default_factory=lambda: ["admin@example.com"])
    webhook_url: Optional[str] = None
    slack_webhook_url: Optional[str] = None

    class Config:
        env_prefix = "MONITORING_"
        extra = "ignore"


@lru_cache()
def get_monitoring_config() -> MonitoringConfig:
    return MonitoringConfig()
