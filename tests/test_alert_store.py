"""
Tests for alert persistence against an in-memory SQLite database.
"""

from datetime import datetime, timedelta

import pytest

from alignzo.database import (
    check_db_connection,
    create_db_engine,
    create_session_factory,
    init_db,
)
from alignzo.monitoring import (
    ActionType,
    AlertAction,
    AlertSeverity,
    AlertStore,
    AlertType,
    MonitoringConfig,
    MonitoringEngine,
    MonitoringRule,
)
from alignzo.monitoring.models import Alert


@pytest.fixture
def engine():
    db_engine = create_db_engine("sqlite://")
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def alert_store(engine) -> AlertStore:
    return AlertStore(create_session_factory(engine))


def _alert(alert_id: str = "rate-limit-exceeded-abc", minutes_ago: int = 0) -> Alert:
    return Alert(
        id=alert_id,
        rule_id="rate-limit-exceeded",
        type=AlertType.RATE_LIMIT_EXCEEDED,
        severity=AlertSeverity.MEDIUM,
        title="Rate Limit Exceeded",
        message="Multiple rate limit violations from same IP",
        source="rate_limit_exceeded:anonymous:1.2.3.4",
        user_email="anonymous",
        ip_address="1.2.3.4",
        timestamp=datetime(2024, 3, 13, 9, 0) - timedelta(minutes=minutes_ago),
        metadata={"endpoint": "/api/kanban/board/P1"},
    )


class TestAlertStore:
    """Test the security_alerts table."""

    def test_connection(self, engine):
        assert check_db_connection(engine) is True

    def test_save_and_get(self, alert_store):
        alert_store.save(_alert())

        record = alert_store.get("rate-limit-exceeded-abc")
        assert record.severity == "MEDIUM"
        assert record.type == "RATE_LIMIT_EXCEEDED"
        assert record.alert_metadata == {"endpoint": "/api/kanban/board/P1"}
        assert record.acknowledged is False

    def test_save_twice_updates(self, alert_store):
        alert = _alert()
        alert_store.save(alert)
        alert.acknowledged = True
        alert.acknowledged_by = "system"
        alert_store.save(alert)

        assert alert_store.get(alert.id).acknowledged_by == "system"
        assert len(alert_store.recent()) == 1

    def test_acknowledge_and_resolve(self, alert_store):
        alert_store.save(_alert())
        at = datetime(2024, 3, 13, 10, 0)

        assert alert_store.mark_acknowledged("rate-limit-exceeded-abc", "admin@example.com", at)
        assert alert_store.mark_resolved("rate-limit-exceeded-abc", "admin@example.com", at)

        record = alert_store.get("rate-limit-exceeded-abc")
        assert record.acknowledged and record.resolved
        assert record.resolved_by == "admin@example.com"
        assert record.acknowledged_at == at

    def test_unknown_alert(self, alert_store):
        assert alert_store.mark_acknowledged("missing", "admin@example.com", datetime.utcnow()) is False
        assert alert_store.get("missing") is None

    def test_recent_is_newest_first(self, alert_store):
        alert_store.save(_alert("old", minutes_ago=30))
        alert_store.save(_alert("new", minutes_ago=1))
        alert_store.save(_alert("middle", minutes_ago=10))

        assert [r.id for r in alert_store.recent(limit=2)] == ["new", "middle"]


class TestEnginePersistence:
    """Test the database action and lifecycle updates end to end."""

    @pytest.mark.asyncio
    async def test_alert_lifecycle_is_persisted(self, alert_store):
        rule = MonitoringRule(
            id="custom",
            name="Custom",
            description="Custom threshold",
            event_type="custom_event",
            alert_type=AlertType.SUSPICIOUS_ACTIVITY,
            severity=AlertSeverity.HIGH,
            threshold=1,
            time_window_minutes=5,
            actions=[AlertAction(ActionType.DATABASE)],
        )
        engine = MonitoringEngine(config=MonitoringConfig(), rules=[rule], store=alert_store)

        alert = (await engine.process_event("custom_event", "a@b.com", "1.2.3.4"))[0]
        assert alert_store.get(alert.id).source == "custom_event:a@b.com:1.2.3.4"

        engine.acknowledge(alert.id, "admin@example.com")
        engine.resolve(alert.id, "admin@example.com")

        record = alert_store.get(alert.id)
        assert record.acknowledged_by == "admin@example.com"
        assert record.resolved is True
