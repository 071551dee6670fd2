"""
SQLAlchemy models for records the backend writes itself.

Most application data lives in the hosted Supabase project and is read
over PostgREST. Security alerts are the exception: the monitoring engine
persists them directly.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


class SecurityAlertRecord(Base):
    """A persisted monitoring alert."""
    __tablename__ = "security_alerts"

    id = Column(String(128), primary_key=True)
    rule_id = Column(String(100), nullable=False)
    type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    source = Column(String(255), nullable=False)  # event key
    user_email = Column(String(255))
    ip_address = Column(String(45))
    alert_metadata = Column("metadata", JSONType, default=dict)

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    acknowledged = Column(Boolean, default=False, nullable=False)
    resolved = Column(Boolean, default=False, nullable=False)
    acknowledged_by = Column(String(255))
    acknowledged_at = Column(DateTime)
    resolved_by = Column(String(255))
    resolved_at = Column(DateTime)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_security_alerts_type", "type"),
        Index("idx_security_alerts_severity", "severity"),
        Index("idx_security_alerts_timestamp", "timestamp"),
        Index("idx_security_alerts_user_email", "user_email"),
        Index("idx_security_alerts_acknowledged", "acknowledged"),
        Index("idx_security_alerts_resolved", "resolved"),
    )

    def __repr__(self):
        return f"<SecurityAlertRecord {self.id} {self.severity}>"
