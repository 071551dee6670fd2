"""
Alert persistence in the security_alerts table.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from alignzo.database.models import SecurityAlertRecord
from alignzo.database.session import session_scope
from alignzo.monitoring.models import Alert

logger = logging.getLogger(__name__)


class AlertStore:
    """Writes alerts and their acknowledge/resolve transitions."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def save(self, alert: Alert) -> None:
        with session_scope(self._session_factory) as db:
            db.merge(SecurityAlertRecord(
                id=alert.id,
                rule_id=alert.rule_id,
                type=alert.type.value,
                severity=alert.severity.value,
                title=alert.title,
                message=alert.message,
                source=alert.source,
                user_email=alert.user_email,
                ip_address=alert.ip_address,
                alert_metadata=alert.metadata,
                timestamp=alert.timestamp,
                acknowledged=alert.acknowledged,
                resolved=alert.resolved,
                acknowledged_by=alert.acknowledged_by,
                acknowledged_at=alert.acknowledged_at,
                resolved_by=alert.resolved_by,
                resolved_at=alert.resolved_at,
            ))
        logger.info(f"Saved alert {alert.id} to database")

    def mark_acknowledged(self, alert_id: str, by: str, at: datetime) -> bool:
        """Returns False if the alert was never persisted."""
        with session_scope(self._session_factory) as db:
            record = db.get(SecurityAlertRecord, alert_id)
            if record is None:
                return False
            record.acknowledged = True
            record.acknowledged_by = by
            record.acknowledged_at = at
        return True

    def mark_resolved(self, alert_id: str, by: str, at: datetime) -> bool:
        """Returns False if the alert was never persisted."""
        with session_scope(self._session_factory) as db:
            record = db.get(SecurityAlertRecord, alert_id)
            if record is None:
                return False
            record.resolved = True
            record.resolved_by = by
            record.resolved_at = at
        return True

    def get(self, alert_id: str) -> Optional[SecurityAlertRecord]:
        with session_scope(self._session_factory) as db:
            return db.get(SecurityAlertRecord, alert_id)

    def recent(self, limit: int = 50) -> List[SecurityAlertRecord]:
        with session_scope(self._session_factory) as db:
            return (
                db.query(SecurityAlertRecord)
                .order_by(SecurityAlertRecord.timestamp.desc())
                .limit(limit)
                .all()
            )
