"""
Tests for the security monitoring engine.

These tests verify:
- Threshold rules, time windows and per-rule cooldowns
- Alert lifecycle (acknowledge/resolve) and filtering
- Action dispatch isolation and notifier payloads
- Cleanup of expired alerts and stale counters
- Request monitoring helpers
"""

import asyncio
import json
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from starlette.requests import Request

from alignzo.delivery.email import EmailResult, alert_email_text
from alignzo.monitoring import (
    ActionType,
    AlertAction,
    AlertNotFoundError,
    AlertSeverity,
    AlertType,
    EventKey,
    MonitoringConfig,
    MonitoringEngine,
    MonitoringRule,
    NotificationError,
    SecurityEventType,
    WebhookNotifier,
)
from alignzo.monitoring.engine import SYSTEM_ACTOR
from alignzo.monitoring.middleware import extract_client_address, extract_user_email, monitored
from alignzo.monitoring.notifiers import SEVERITY_COLORS, build_slack_message
from alignzo.monitoring.rules import default_rules


IP = "1.2.3.4"
USER = "mallory@example.com"


def _rule(**overrides) -> MonitoringRule:
    values = dict(
        id="custom",
        name="Custom Rule",
        description="Custom threshold",
        event_type="custom_event",
        alert_type=AlertType.SUSPICIOUS_ACTIVITY,
        severity=AlertSeverity.MEDIUM,
        threshold=3,
        time_window_minutes=10,
        actions=[AlertAction(ActionType.LOG)],
    )
    values.update(overrides)
    return MonitoringRule(**values)


@pytest.fixture
def config() -> MonitoringConfig:
    return MonitoringConfig(
        enabled=True,
        alert_cooldown_minutes=5,
        max_alerts_per_hour=100,
        email_notifications=True,
    )


@pytest.fixture
def email():
    delivery = MagicMock()
    delivery.send_alert = AsyncMock(return_value=EmailResult(success=True, message_id="em_1"))
    return delivery


@pytest.fixture
def alert_store():
    return MagicMock()


@pytest.fixture
def engine(config, clock, email, alert_store) -> MonitoringEngine:
    return MonitoringEngine(config=config, store=alert_store, email=email, clock=clock.now)


# =============================================================================
# RULE EVALUATION
# =============================================================================

class TestThresholds:
    """Test counting, thresholds, windows and cooldowns."""

    def test_default_rules(self):
        rules = {rule.id: rule for rule in default_rules()}
        assert rules["rate-limit-exceeded"].threshold == 5
        assert rules["rate-limit-exceeded"].time_window_minutes == 15
        assert rules["failed-login-attempts"].severity == AlertSeverity.HIGH
        assert rules["suspicious-data-access"].threshold == 50
        assert rules["access-denied-pattern"].event_type == "access_denied"

    @pytest.mark.asyncio
    async def test_failed_logins(self, engine, clock):
        for _ in range(2):
            assert await engine.process_event("login_failed", USER, IP) == []
            clock.advance(seconds=30)

        alerts = await engine.process_event("login_failed", USER, IP)
        assert len(alerts) == 1
        assert alerts[0].rule_id == "failed-login-attempts"
        assert alerts[0].severity == AlertSeverity.HIGH
        assert alerts[0].source == f"login_failed:{USER}:{IP}"

        clock.advance(seconds=10)
        assert await engine.process_event("login_failed", USER, IP) == []
        assert len(engine.list_alerts()) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_scenario(self, engine, clock):
        created = []
        for _ in range(5):
            created += await engine.process_event("rate_limit_exceeded", "anonymous", IP)
            clock.advance(seconds=10)

        assert len(created) == 1
        assert created[0].severity == AlertSeverity.MEDIUM

        assert await engine.process_event("rate_limit_exceeded", "anonymous", IP) == []

        clock.advance(minutes=5)
        again = await engine.process_event("rate_limit_exceeded", "anonymous", IP)
        assert len(again) == 1
        assert again[0].id != created[0].id

    @pytest.mark.asyncio
    async def test_events_spread_past_the_window_never_alert(self, config, clock):
        engine = MonitoringEngine(config=config, rules=[_rule()], clock=clock.now)

        for _ in range(4):
            assert await engine.process_event("custom_event", USER, IP) == []
            clock.advance(minutes=11)

        assert engine.get_counter(EventKey("custom_event", USER, IP)).count == 4

    @pytest.mark.asyncio
    async def test_keys_are_counted_separately(self, config, clock):
        engine = MonitoringEngine(config=config, rules=[_rule(threshold=2)], clock=clock.now)

        assert await engine.process_event("custom_event", USER, IP) == []
        assert await engine.process_event("custom_event", USER, "5.6.7.8") == []
        assert await engine.process_event("custom_event", "other@example.com", IP) == []
        assert len(await engine.process_event("custom_event", USER, IP)) == 1

    @pytest.mark.asyncio
    async def test_stale_counter_starts_over(self, config, clock):
        engine = MonitoringEngine(config=config, rules=[_rule(threshold=2)], clock=clock.now)

        await engine.process_event("custom_event", USER, IP)
        clock.advance(minutes=61)
        assert await engine.process_event("custom_event", USER, IP) == []

        counter = engine.get_counter(EventKey("custom_event", USER, IP))
        assert counter.count == 1
        assert counter.first_seen_at == clock.now()

    @pytest.mark.asyncio
    async def test_unknown_event_type_is_counted_only(self, engine):
        assert await engine.process_event("page_view", USER, IP) == []
        assert engine.get_counter(EventKey("page_view", USER, IP)).count == 1

    @pytest.mark.asyncio
    async def test_disabled_rule_is_skipped(self, config, clock):
        engine = MonitoringEngine(
            config=config, rules=[_rule(threshold=1, enabled=False)], clock=clock.now
        )
        assert await engine.process_event("custom_event", USER, IP) == []

    @pytest.mark.asyncio
    async def test_disabled_monitoring(self, clock):
        engine = MonitoringEngine(
            config=MonitoringConfig(enabled=False), rules=[_rule(threshold=1)], clock=clock.now
        )
        assert await engine.process_event("custom_event", USER, IP) == []
        assert engine.get_stats()["tracked_event_keys"] == 0

    @pytest.mark.asyncio
    async def test_hourly_alert_limit(self, clock):
        engine = MonitoringEngine(
            config=MonitoringConfig(max_alerts_per_hour=2),
            rules=[_rule(threshold=1)],
            clock=clock.now,
        )

        for i in range(3):
            await engine.process_event("custom_event", f"user{i}@example.com", IP)
        assert len(engine.list_alerts()) == 2

        clock.advance(minutes=61)
        assert len(await engine.process_event("custom_event", "late@example.com", IP)) == 1

    @pytest.mark.asyncio
    async def test_low_severity_is_auto_acknowledged(self, config, clock):
        engine = MonitoringEngine(
            config=config,
            rules=[_rule(threshold=1, severity=AlertSeverity.LOW)],
            clock=clock.now,
        )
        alert = (await engine.process_event("custom_event", USER, IP))[0]

        assert alert.acknowledged is True
        assert alert.acknowledged_by == SYSTEM_ACTOR
        assert alert.resolved is False

    @pytest.mark.asyncio
    async def test_alert_is_logged_with_structured_fields(self, config, clock, caplog):
        engine = MonitoringEngine(config=config, rules=[_rule(threshold=1)], clock=clock.now)

        with caplog.at_level(logging.WARNING, logger="alignzo.security"):
            alert = (await engine.process_event("custom_event", USER, IP, {"path": "/x"}))[0]

        records = [r for r in caplog.records if getattr(r, "alert_id", None) == alert.id]
        assert records
        assert records[0].rule_id == "custom"
        assert alert.metadata == {"path": "/x"}

    def test_rule_management(self, config):
        engine = MonitoringEngine(config=config, rules=[])
        engine.add_rule(_rule())

        with pytest.raises(ValueError):
            engine.add_rule(_rule())

        assert engine.remove_rule("custom") is True
        assert engine.remove_rule("custom") is False
        assert engine.rules == []


# =============================================================================
# ACTIONS
# =============================================================================

class TestActions:
    """Test action dispatch."""

    @pytest.mark.asyncio
    async def test_failing_action_does_not_stop_the_rest(self, clock, alert_store):
        notifier = MagicMock()
        notifier.send_webhook = AsyncMock(side_effect=NotificationError("unreachable"))
        engine = MonitoringEngine(
            config=MonitoringConfig(webhook_notifications=True, webhook_url="https://hooks.test/x"),
            rules=[_rule(threshold=1, actions=[
                AlertAction(ActionType.WEBHOOK),
                AlertAction(ActionType.LOG),
                AlertAction(ActionType.DATABASE),
            ])],
            store=alert_store,
            notifier=notifier,
            clock=clock.now,
        )

        alerts = await engine.process_event("custom_event", USER, IP)

        assert len(alerts) == 1
        notifier.send_webhook.assert_awaited_once_with("https://hooks.test/x", alerts[0])
        alert_store.save.assert_called_once_with(alerts[0])
        assert engine.get_alert(alerts[0].id) is alerts[0]

    @pytest.mark.asyncio
    async def test_execute_actions_counts_failures(self, engine, email, clock, alert_store):
        alert_store.save.side_effect = RuntimeError("database down")
        email.send_alert.return_value = EmailResult(success=False, error="rejected")
        for _ in range(3):
            await engine.process_event("login_failed", USER, IP)
        alert = engine.list_alerts()[0]

        failures = await engine.execute_actions(alert, [
            AlertAction(ActionType.LOG),
            AlertAction(ActionType.DATABASE),
            AlertAction(ActionType.EMAIL, recipients=["sec@example.com"]),
        ])
        assert failures == 2

    @pytest.mark.asyncio
    async def test_email_uses_rule_recipients(self, engine, email):
        for _ in range(3):
            await engine.process_event("login_failed", USER, IP)

        recipients, alert = email.send_alert.await_args.args
        assert recipients == ["admin@example.com"]
        assert alert.rule_id == "failed-login-attempts"

    @pytest.mark.asyncio
    async def test_email_without_delivery_is_a_failure(self, config, clock):
        engine = MonitoringEngine(config=config, rules=[], clock=clock.now)
        alert = MagicMock(id="a1")
        assert await engine.execute_actions(alert, [AlertAction(ActionType.EMAIL)]) == 1

    @pytest.mark.asyncio
    async def test_disabled_channels_are_skipped(self, clock):
        notifier = MagicMock()
        notifier.send_webhook = AsyncMock()
        notifier.send_slack = AsyncMock()
        engine = MonitoringEngine(
            config=MonitoringConfig(email_notifications=False, slack_webhook_url="https://hooks.test/s"),
            rules=[],
            notifier=notifier,
            clock=clock.now,
        )
        alert = MagicMock(id="a1")

        failures = await engine.execute_actions(alert, [
            AlertAction(ActionType.EMAIL),
            AlertAction(ActionType.WEBHOOK, webhook_url="https://hooks.test/w"),
            AlertAction(ActionType.SLACK),
        ])

        assert failures == 0
        notifier.send_webhook.assert_not_called()
        notifier.send_slack.assert_not_called()


# =============================================================================
# ALERT LIFECYCLE
# =============================================================================

class TestLifecycle:
    """Test acknowledge/resolve transitions and queries."""

    @pytest.mark.asyncio
    async def test_acknowledge_is_idempotent(self, engine, clock, alert_store):
        for _ in range(3):
            await engine.process_event("login_failed", USER, IP)
        alert = engine.list_alerts()[0]

        engine.acknowledge(alert.id, "admin@example.com")
        first_at = alert.acknowledged_at
        clock.advance(minutes=1)
        engine.acknowledge(alert.id, "someone-else@example.com")

        assert alert.acknowledged_by == "admin@example.com"
        assert alert.acknowledged_at == first_at
        alert_store.mark_acknowledged.assert_called_once_with(alert.id, "admin@example.com", first_at)

    @pytest.mark.asyncio
    async def test_resolve_without_acknowledge(self, engine):
        for _ in range(3):
            await engine.process_event("login_failed", USER, IP)
        alert = engine.list_alerts()[0]

        engine.resolve(alert.id, "admin@example.com")
        engine.resolve(alert.id, "other@example.com")

        assert alert.resolved is True
        assert alert.acknowledged is False
        assert alert.resolved_by == "admin@example.com"
        assert engine.get_active_alerts() == []

    @pytest.mark.asyncio
    async def test_actor_is_required(self, engine):
        for _ in range(3):
            await engine.process_event("login_failed", USER, IP)
        alert = engine.list_alerts()[0]

        with pytest.raises(ValueError):
            engine.acknowledge(alert.id, "")
        with pytest.raises(ValueError):
            engine.resolve(alert.id, "")

    def test_unknown_alert(self, engine):
        with pytest.raises(AlertNotFoundError):
            engine.acknowledge("missing", "admin@example.com")
        with pytest.raises(AlertNotFoundError):
            engine.get_alert("missing")

    @pytest.mark.asyncio
    async def test_store_errors_do_not_block_transitions(self, engine, alert_store):
        alert_store.mark_resolved.side_effect = RuntimeError("database down")
        for _ in range(3):
            await engine.process_event("login_failed", USER, IP)
        alert = engine.list_alerts()[0]

        assert engine.resolve(alert.id, "admin@example.com").resolved is True

    @pytest.mark.asyncio
    async def test_list_and_stats(self, engine, clock):
        for _ in range(3):
            await engine.process_event("login_failed", USER, IP)
        clock.advance(seconds=5)
        for _ in range(5):
            await engine.process_event("rate_limit_exceeded", "anonymous", IP)

        newest = engine.list_alerts()
        assert [a.rule_id for a in newest] == ["rate-limit-exceeded", "failed-login-attempts"]
        assert len(engine.list_alerts(severity=AlertSeverity.HIGH)) == 1
        assert len(engine.list_alerts(user_email=USER)) == 1
        assert len(engine.list_alerts(limit=1)) == 1

        engine.acknowledge(newest[0].id, "admin@example.com")
        stats = engine.get_stats()
        assert stats["total_alerts"] == 2
        assert stats["active_alerts"] == 2
        assert stats["unacknowledged_alerts"] == 1
        assert stats["alerts_by_severity"] == {"MEDIUM": 1, "HIGH": 1}
        assert stats["alerts_by_type"] == {"RATE_LIMIT_EXCEEDED": 1, "SECURITY_BREACH": 1}
        assert stats["tracked_event_keys"] == 2


# =============================================================================
# CLEANUP
# =============================================================================

class TestCleanup:
    """Test retention-based cleanup."""

    @pytest.mark.asyncio
    async def test_cleanup_removes_old_alerts_and_stale_counters(self, engine, clock):
        for _ in range(3):
            await engine.process_event("login_failed", USER, IP)
        clock.advance(minutes=30)
        await engine.process_event("page_view", USER, IP)

        assert engine.cleanup() == (0, 0)

        clock.advance(minutes=31)
        assert engine.cleanup() == (0, 1)
        assert engine.get_counter(EventKey("login_failed", USER, IP)) is None
        assert engine.get_counter(EventKey("page_view", USER, IP)) is not None

        clock.advance(minutes=60 * 24 * 30)
        alerts_removed, _ = engine.cleanup()
        assert alerts_removed == 1
        assert engine.list_alerts() == []

    @pytest.mark.asyncio
    async def test_cleanup_task_start_stop(self, engine):
        engine.cleanup = MagicMock(return_value=(0, 0))

        await engine.start_cleanup(interval_seconds=0.01)
        await asyncio.sleep(0.05)
        await engine.stop_cleanup()

        assert engine.cleanup.call_count >= 1


# =============================================================================
# NOTIFIERS
# =============================================================================

class TestNotifiers:
    """Test webhook and Slack delivery over a mocked transport."""

    @pytest.mark.asyncio
    async def test_webhook_posts_alert_json(self, config, clock):
        engine = MonitoringEngine(config=config, rules=[_rule(threshold=1)], clock=clock.now)
        alert = (await engine.process_event("custom_event", USER, IP))[0]
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200)

        notifier = WebhookNotifier(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        await notifier.send_webhook("https://hooks.test/alerts", alert)
        await notifier.close()

        assert captured["url"] == "https://hooks.test/alerts"
        assert captured["body"]["id"] == alert.id
        assert captured["body"]["severity"] == "MEDIUM"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, config, clock):
        engine = MonitoringEngine(config=config, rules=[_rule(threshold=1)], clock=clock.now)
        alert = (await engine.process_event("custom_event", USER, IP))[0]

        notifier = WebhookNotifier(client=httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(500))
        ))
        with pytest.raises(NotificationError) as exc_info:
            await notifier.send_slack("https://hooks.test/slack", alert)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, config, clock):
        engine = MonitoringEngine(config=config, rules=[_rule(threshold=1)], clock=clock.now)
        alert = (await engine.process_event("custom_event", USER, IP))[0]

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        notifier = WebhookNotifier(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(NotificationError):
            await notifier.send_webhook("https://hooks.test/alerts", alert)

    @pytest.mark.asyncio
    async def test_slack_message(self, config, clock):
        engine = MonitoringEngine(
            config=config,
            rules=[_rule(threshold=1, severity=AlertSeverity.HIGH)],
            clock=clock.now,
        )
        alert = (await engine.process_event("custom_event", USER, IP))[0]

        message = build_slack_message(alert, "#security")

        assert message["channel"] == "#security"
        attachment = message["attachments"][0]
        assert attachment["color"] == SEVERITY_COLORS[AlertSeverity.HIGH]
        fields = {f["title"]: f["value"] for f in attachment["fields"]}
        assert fields["IP Address"] == IP
        assert fields["User"] == USER

    @pytest.mark.asyncio
    async def test_email_text(self, config, clock):
        engine = MonitoringEngine(config=config, rules=[_rule(threshold=1)], clock=clock.now)
        alert = (await engine.process_event("custom_event", USER, IP))[0]

        text = alert_email_text(alert)
        assert "Security Alert: Custom Rule" in text
        assert f"IP: {IP}" in text


# =============================================================================
# REQUEST MONITORING
# =============================================================================

def _request(headers=None, client=("9.9.9.9", 5000), app=None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("testserver", 80),
        "path": "/api/users/a@b.com/dashboard",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    if app is not None:
        scope["app"] = app
    return Request(scope)


class TestRequestMonitoring:
    """Test client identification and the monitored decorator."""

    def test_forwarded_for_uses_first_hop(self):
        request = _request({"X-Forwarded-For": "1.2.3.4, 10.0.0.1", "X-Real-IP": "5.5.5.5"})
        assert extract_client_address(request) == "1.2.3.4"

    def test_real_ip_then_peer(self):
        assert extract_client_address(_request({"X-Real-IP": "5.5.5.5"})) == "5.5.5.5"
        assert extract_client_address(_request()) == "9.9.9.9"
        assert extract_client_address(_request(client=None)) == "unknown"

    def test_user_email_header(self):
        assert extract_user_email(_request({"X-User-Email": "a@b.com"})) == "a@b.com"
        assert extract_user_email(_request()) == "anonymous"

    @pytest.mark.asyncio
    async def test_success_records_event(self, engine):
        app = SimpleNamespace(state=SimpleNamespace(context=SimpleNamespace(monitoring=engine)))

        @monitored(SecurityEventType.DATA_ACCESS)
        async def handler(request: Request):
            return "ok"

        request = _request({"X-User-Email": USER}, app=app)
        assert await handler(request=request) == "ok"
        assert engine.get_counter(EventKey("data_access", USER, "9.9.9.9")).count == 1

    @pytest.mark.asyncio
    async def test_failure_records_suspicious_activity(self, engine):
        app = SimpleNamespace(state=SimpleNamespace(context=SimpleNamespace(monitoring=engine)))

        @monitored("data_access")
        async def handler(request: Request):
            raise RuntimeError("kaboom")

        with pytest.raises(RuntimeError):
            await handler(_request(app=app))

        assert engine.get_counter(EventKey("suspicious_activity", "anonymous", "9.9.9.9")).count == 1
        assert engine.get_counter(EventKey("data_access", "anonymous", "9.9.9.9")) is None

    @pytest.mark.asyncio
    async def test_without_engine_handler_still_runs(self):
        app = SimpleNamespace(state=SimpleNamespace())

        @monitored(SecurityEventType.DATA_ACCESS)
        async def handler(request: Request):
            return 42

        assert await handler(_request(app=app)) == 42
