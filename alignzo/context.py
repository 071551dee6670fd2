"""
Application Context

Everything with process lifetime (cache store, category table, monitoring
state, HTTP and database clients) is built once here and handed to request
handlers, instead of living in module-level globals.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from alignzo.cache import (
    CacheConfig,
    CacheInvalidator,
    CacheMonitor,
    CacheStrategy,
    DetachedTasks,
    KanbanCache,
    RedisStore,
    UserCache,
    get_cache_config,
)
from alignzo.data.base import KanbanSource, UserSource
from alignzo.data.supabase import (
    SupabaseClient,
    SupabaseKanbanSource,
    SupabaseUserSource,
)
from alignzo.database.session import create_db_engine, create_session_factory, init_db
from alignzo.delivery.email import EmailDelivery
from alignzo.monitoring import (
    AlertStore,
    MonitoringConfig,
    MonitoringEngine,
    WebhookNotifier,
    get_monitoring_config,
)
from alignzo.services import KanbanService, UserService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    store: RedisStore
    strategy: CacheStrategy
    kanban_cache: KanbanCache
    user_cache: UserCache
    invalidator: CacheInvalidator
    cache_monitor: CacheMonitor
    tasks: DetachedTasks
    kanban: KanbanService
    users: UserService
    monitoring: MonitoringEngine
    supabase: Optional[SupabaseClient] = None
    notifier: Optional[WebhookNotifier] = None
    db_engine: Optional[Engine] = None

    async def close(self):
        """Release connections. Pending cache writes get a chance to finish."""
        await self.monitoring.stop_cleanup()
        await self.tasks.drain()
        await self.store.close()
        if self.supabase is not None:
            await self.supabase.close()
        if self.notifier is not None:
            await self.notifier.close()
        if self.db_engine is not None:
            self.db_engine.dispose()
        logger.info("Application context closed")


def build_context(
    cache_config: Optional[CacheConfig] = None,
    monitoring_config: Optional[MonitoringConfig] = None,
    store: Optional[RedisStore] = None,
    kanban_source: Optional[KanbanSource] = None,
    user_source: Optional[UserSource] = None,
    alert_store: Optional[AlertStore] = None,
    email: Optional[EmailDelivery] = None,
    database_url: Optional[str] = None,
) -> AppContext:
    """
    Wire the application.

    Collaborators not passed in are created from environment settings.
    """
    cache_config = cache_config or get_cache_config()
    monitoring_config = monitoring_config or get_monitoring_config()

    store = store or RedisStore(cache_config)
    strategy = CacheStrategy(store)
    kanban_cache = KanbanCache(strategy)
    user_cache = UserCache(strategy)
    tasks = DetachedTasks()

    supabase = None
    if kanban_source is None or user_source is None:
        supabase = SupabaseClient()
        kanban_source = kanban_source or SupabaseKanbanSource(supabase)
        user_source = user_source or SupabaseUserSource(supabase)

    db_engine = None
    if alert_store is None:
        db_engine = create_db_engine(database_url)
        init_db(db_engine)
        alert_store = AlertStore(create_session_factory(db_engine))

    notifier = WebhookNotifier()
    monitoring = MonitoringEngine(
        config=monitoring_config,
        store=alert_store,
        email=email or EmailDelivery(),
        notifier=notifier,
    )

    logger.info("Application context built")

    return AppContext(
        store=store,
        strategy=strategy,
        kanban_cache=kanban_cache,
        user_cache=user_cache,
        invalidator=CacheInvalidator(kanban_cache, user_cache),
        cache_monitor=CacheMonitor(store, cache_config),
        tasks=tasks,
        kanban=KanbanService(kanban_cache, kanban_source, tasks),
        users=UserService(user_cache, user_source, tasks),
        monitoring=monitoring,
        supabase=supabase,
        notifier=notifier,
        db_engine=db_engine,
    )
