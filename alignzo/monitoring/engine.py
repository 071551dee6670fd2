"""
Monitoring Engine

Counts security and audit events per (event type, user, address) and
raises alerts when a rule's threshold is reached inside its time window.

Per event:
1. Upsert the counter for the event key (no window check at increment)
2. Evaluate every enabled rule for the event type
3. Within window, at or over threshold, and outside the rule's cooldown
   for this key: create and register an alert
4. Run the rule's actions in order; a failing action never stops the rest

Steps 1-3 run without awaiting anything, so they are atomic on the event
loop. Actions run afterwards and may suspend.
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple
from uuid import uuid4

from alignzo.delivery.email import EmailDelivery
from alignzo.monitoring.config import MonitoringConfig, get_monitoring_config
from alignzo.monitoring.models import (
    ActionType,
    Alert,
    AlertAction,
    AlertSeverity,
    EventCounter,
    EventKey,
    MonitoringRule,
)
from alignzo.monitoring.notifiers import NotificationError, WebhookNotifier
from alignzo.monitoring.rules import default_rules
from alignzo.monitoring.store import AlertStore

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("alignzo.security")

SYSTEM_ACTOR = "system"


class AlertNotFoundError(KeyError):
    """Raised when acknowledging or resolving an unknown alert."""


class MonitoringEngine:
    """
    Owns all event counters and alerts.

    Usage:
        engine = MonitoringEngine(store=AlertStore(session_factory))
        alerts = await engine.process_event("login_failed", "a@b.com", "1.2.3.4")
        engine.acknowledge(alerts[0].id, "admin@b.com")
    """

    def __init__(
        self,
        config: Optional[MonitoringConfig] = None,
        rules: Optional[List[MonitoringRule]] = None,
        store: Optional[AlertStore] = None,
        email: Optional[EmailDelivery] = None,
        notifier: Optional[WebhookNotifier] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.config = config or get_monitoring_config()
        self._rules: List[MonitoringRule] = list(default_rules() if rules is None else rules)
        self._store = store
        self._email = email
        self._notifier = notifier
        self._clock = clock

        self._counters: Dict[EventKey, EventCounter] = {}
        self._alerts: Dict[str, Alert] = {}
        self._last_alert_at: Dict[Tuple[str, EventKey], datetime] = {}
        self._recent_alerts: Deque[datetime] = deque()

        self._running = False
        self._task: Optional[asyncio.Task] = None

    # =========================================================================
    # Rules
    # =========================================================================

    @property
    def rules(self) -> List[MonitoringRule]:
        return list(self._rules)

    def add_rule(self, rule: MonitoringRule) -> None:
        if any(r.id == rule.id for r in self._rules):
            raise ValueError(f"Monitoring rule already exists: {rule.id}")
        self._rules.append(rule)
        logger.info(f"Added monitoring rule {rule.id}")

    def remove_rule(self, rule_id: str) -> bool:
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.id != rule_id]
        removed = len(self._rules) < before
        if removed:
            logger.info(f"Removed monitoring rule {rule_id}")
        return removed

    # =========================================================================
    # Event processing
    # =========================================================================

    def get_counter(self, key: EventKey) -> Optional[EventCounter]:
        return self._counters.get(key)

    def _increment(self, key: EventKey, now: datetime) -> EventCounter:
        counter = self._counters.get(key)
        stale_after = timedelta(minutes=self.config.counter_retention_minutes)
        if counter is None or now - counter.first_seen_at > stale_after:
            counter = EventCounter(count=1, first_seen_at=now)
            self._counters[key] = counter
        else:
            counter.count += 1
        return counter

    def _in_cooldown(self, rule: MonitoringRule, key: EventKey, now: datetime) -> bool:
        last = self._last_alert_at.get((rule.id, key))
        cooldown = timedelta(minutes=self.config.alert_cooldown_minutes)
        return last is not None and now - last < cooldown

    def _over_hourly_limit(self, now: datetime) -> bool:
        hour_ago = now - timedelta(hours=1)
        while self._recent_alerts and self._recent_alerts[0] <= hour_ago:
            self._recent_alerts.popleft()
        return len(self._recent_alerts) >= self.config.max_alerts_per_hour

    def _create_alert(
        self,
        rule: MonitoringRule,
        key: EventKey,
        now: datetime,
        metadata: Optional[Dict[str, Any]],
    ) -> Alert:
        alert = Alert(
            id=f"{rule.id}-{uuid4().hex[:12]}",
            rule_id=rule.id,
            type=rule.alert_type,
            severity=rule.severity,
            title=rule.name,
            message=rule.description,
            source=str(key),
            user_email=key.user_email,
            ip_address=key.ip_address,
            timestamp=now,
            metadata=dict(metadata or {}),
        )
        if alert.severity == AlertSeverity.LOW and self.config.auto_acknowledge_low_severity:
            alert.acknowledged = True
            alert.acknowledged_by = SYSTEM_ACTOR
            alert.acknowledged_at = now

        self._alerts[alert.id] = alert
        self._last_alert_at[(rule.id, key)] = now
        self._recent_alerts.append(now)

        security_logger.warning(
            f"Security alert {alert.id}: {alert.title}",
            extra={
                "alert_id": alert.id,
                "rule_id": rule.id,
                "event_key": alert.source,
                "user_email": alert.user_email,
                "severity": alert.severity.value,
            },
        )
        return alert

    def record_event(
        self,
        event_type: str,
        user_email: str,
        ip_address: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Tuple[Alert, MonitoringRule]]:
        """
        Count an event and register any alerts it triggers.

        Does not run actions. Never suspends.
        """
        if not self.config.enabled:
            return []

        now = self._clock()
        key = EventKey(str(event_type), user_email, ip_address)
        counter = self._increment(key, now)

        triggered = []
        for rule in self._rules:
            if not rule.enabled or rule.event_type != key.event_type:
                continue

            window = timedelta(minutes=rule.time_window_minutes)
            if now - counter.first_seen_at > window or counter.count < rule.threshold:
                continue

            if self._in_cooldown(rule, key, now):
                logger.debug(f"Rule {rule.id} in cooldown for {key}")
                continue

            if self._over_hourly_limit(now):
                logger.warning(
                    f"Alert limit of {self.config.max_alerts_per_hour}/hour reached, "
                    f"suppressing {rule.id} for {key}"
                )
                continue

            triggered.append((self._create_alert(rule, key, now, metadata), rule))

        return triggered

    async def process_event(
        self,
        event_type: str,
        user_email: str,
        ip_address: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Alert]:
        """Count an event, raise alerts and run their actions."""
        triggered = self.record_event(event_type, user_email, ip_address, metadata)
        for alert, rule in triggered:
            await self.execute_actions(alert, rule.actions)
        return [alert for alert, _ in triggered]

    # =========================================================================
    # Actions
    # =========================================================================

    async def execute_actions(self, alert: Alert, actions: List[AlertAction]) -> int:
        """Run actions in order. Returns the number that failed."""
        failures = 0
        for action in actions:
            try:
                await self._execute_action(alert, action)
            except Exception as e:
                failures += 1
                logger.error(f"Failed to execute alert action {action.type.value} for {alert.id}: {e}")
        return failures

    async def _execute_action(self, alert: Alert, action: AlertAction):
        if action.type == ActionType.LOG:
            security_logger.warning(
                f"Alert {alert.id} [{alert.severity.value}] {alert.title}: {alert.message}",
                extra={"alert": alert.to_dict(), "action": "log"},
            )

        elif action.type == ActionType.DATABASE:
            if self._store is None:
                logger.debug(f"No alert store configured, {alert.id} not persisted")
                return
            self._store.save(alert)

        elif action.type == ActionType.EMAIL:
            if not self.config.email_notifications:
                return
            if self._email is None:
                raise NotificationError("Email delivery not configured")
            recipients = action.recipients or self.config.default_email_recipients
            result = await self._email.send_alert(recipients, alert)
            if not result.success:
                raise NotificationError(f"Email notification failed: {result.error}")

        elif action.type == ActionType.WEBHOOK:
            url = action.webhook_url or self.config.webhook_url
            if not self.config.webhook_notifications or not url:
                return
            await self._require_notifier().send_webhook(url, alert)

        elif action.type == ActionType.SLACK:
            url = action.webhook_url or self.config.slack_webhook_url
            if not self.config.slack_notifications or not url:
                return
            await self._require_notifier().send_slack(url, alert, action.channel)

    def _require_notifier(self) -> WebhookNotifier:
        if self._notifier is None:
            self._notifier = WebhookNotifier()
        return self._notifier

    # =========================================================================
    # Alert lifecycle
    # =========================================================================

    def get_alert(self, alert_id: str) -> Alert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    def acknowledge(self, alert_id: str, acknowledged_by: str) -> Alert:
        """Acknowledge an alert. A second acknowledgement changes nothing."""
        if not acknowledged_by:
            raise ValueError("acknowledged_by is required")
        alert = self.get_alert(alert_id)
        if alert.acknowledged:
            return alert

        alert.acknowledged = True
        alert.acknowledged_by = acknowledged_by
        alert.acknowledged_at = self._clock()
        logger.info(f"Alert {alert_id} acknowledged by {acknowledged_by}")

        if self._store is not None:
            try:
                self._store.mark_acknowledged(alert_id, acknowledged_by, alert.acknowledged_at)
            except Exception as e:
                logger.error(f"Failed to persist acknowledgement of {alert_id}: {e}")
        return alert

    def resolve(self, alert_id: str, resolved_by: str) -> Alert:
        """Resolve an alert, acknowledged or not. A second resolve changes nothing."""
        if not resolved_by:
            raise ValueError("resolved_by is required")
        alert = self.get_alert(alert_id)
        if alert.resolved:
            return alert

        alert.resolved = True
        alert.resolved_by = resolved_by
        alert.resolved_at = self._clock()
        logger.info(f"Alert {alert_id} resolved by {resolved_by}")

        if self._store is not None:
            try:
                self._store.mark_resolved(alert_id, resolved_by, alert.resolved_at)
            except Exception as e:
                logger.error(f"Failed to persist resolution of {alert_id}: {e}")
        return alert

    def get_active_alerts(self) -> List[Alert]:
        """Unresolved alerts, newest first."""
        return self.list_alerts(resolved=False)

    def list_alerts(
        self,
        severity: Optional[AlertSeverity] = None,
        acknowledged: Optional[bool] = None,
        resolved: Optional[bool] = None,
        user_email: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        alerts = [
            a for a in self._alerts.values()
            if (severity is None or a.severity == severity)
            and (acknowledged is None or a.acknowledged == acknowledged)
            and (resolved is None or a.resolved == resolved)
            and (user_email is None or a.user_email == user_email)
        ]
        alerts.sort(key=lambda a: a.timestamp, reverse=True)
        return alerts[:limit] if limit is not None else alerts

    def get_stats(self) -> Dict[str, Any]:
        alerts = list(self._alerts.values())
        by_severity: Dict[str, int] = {}
        by_type: Dict[str, int] = {}
        for alert in alerts:
            by_severity[alert.severity.value] = by_severity.get(alert.severity.value, 0) + 1
            by_type[alert.type.value] = by_type.get(alert.type.value, 0) + 1

        return {
            "total_alerts": len(alerts),
            "active_alerts": sum(1 for a in alerts if not a.resolved),
            "unacknowledged_alerts": sum(1 for a in alerts if not a.acknowledged),
            "alerts_by_severity": by_severity,
            "alerts_by_type": by_type,
            "tracked_event_keys": len(self._counters),
            "rules": len(self._rules),
        }

    # =========================================================================
    # Cleanup
    # =========================================================================

    def cleanup(self) -> Tuple[int, int]:
        """
        Drop alerts past retention and counters past the staleness window.

        Returns:
            (alerts_removed, counters_removed)
        """
        now = self._clock()
        retention = timedelta(days=self.config.alert_retention_days)
        stale_after = timedelta(minutes=self.config.counter_retention_minutes)
        cooldown = timedelta(minutes=self.config.alert_cooldown_minutes)

        expired_alerts = [
            alert_id for alert_id, alert in self._alerts.items()
            if now - alert.timestamp >= retention
        ]
        for alert_id in expired_alerts:
            del self._alerts[alert_id]

        stale_counters = [
            key for key, counter in self._counters.items()
            if now - counter.first_seen_at > stale_after
        ]
        for key in stale_counters:
            del self._counters[key]

        self._last_alert_at = {
            k: at for k, at in self._last_alert_at.items() if now - at < cooldown
        }

        if expired_alerts or stale_counters:
            logger.info(
                f"Monitoring cleanup removed {len(expired_alerts)} alerts "
                f"and {len(stale_counters)} counters"
            )
        return len(expired_alerts), len(stale_counters)

    async def start_cleanup(self, interval_seconds: Optional[int] = None):
        """Start the periodic cleanup task."""
        if self._running:
            logger.warning("Monitoring cleanup already running")
            return

        interval = interval_seconds or self.config.cleanup_interval_seconds
        self._running = True

        async def cleanup_loop():
            while self._running:
                await asyncio.sleep(interval)
                try:
                    self.cleanup()
                except Exception as e:
                    logger.error(f"Monitoring cleanup error: {e}")

        self._task = asyncio.create_task(cleanup_loop())
        logger.info(f"Monitoring cleanup started (interval: {interval}s)")

    async def stop_cleanup(self):
        """Stop the periodic cleanup task."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Monitoring cleanup stopped")
