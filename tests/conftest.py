"""
Pytest Configuration and Shared Fixtures

Provides an in-memory Redis double with a controllable clock, in-memory
data sources and the cache objects built on top of them.
"""

import fnmatch
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from alignzo.cache import (
    CacheConfig,
    CacheStrategy,
    DetachedTasks,
    KanbanCache,
    RedisStore,
    UserCache,
)
from alignzo.data.base import FetchResult, Row


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Manually advanced clock shared by the Redis double and the engine."""

    def __init__(self, start: datetime = datetime(2024, 3, 13, 9, 0, 0)):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 0, minutes: float = 0):
        self._now += timedelta(seconds=seconds, minutes=minutes)


# ============================================================================
# Redis double
# ============================================================================

class FakeRedis:
    """
    Subset of the redis.asyncio client used by RedisStore.

    Set ``fail`` to an exception instance to make every call raise it.
    """

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._data: Dict[str, bytes] = {}
        self._expiry: Dict[str, datetime] = {}
        self.fail: Optional[Exception] = None
        self.fail_on_delete: Optional[Exception] = None
        self.closed = False
        self.used_memory = 2 * 1024 * 1024
        self.maxmemory = 20 * 1024 * 1024

    def _check(self):
        if self.fail is not None:
            raise self.fail

    def _purge(self, key: str):
        expires = self._expiry.get(key)
        if expires is not None and self._clock.now() >= expires:
            self._data.pop(key, None)
            self._expiry.pop(key, None)

    async def get(self, key):
        self._check()
        self._purge(key)
        return self._data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self._data[key] = value
        if ex is not None:
            self._expiry[key] = self._clock.now() + timedelta(seconds=ex)
        else:
            self._expiry.pop(key, None)
        return True

    async def delete(self, *keys):
        self._check()
        if self.fail_on_delete is not None:
            raise self.fail_on_delete
        removed = 0
        for key in keys:
            self._purge(key)
            if self._data.pop(key, None) is not None:
                removed += 1
            self._expiry.pop(key, None)
        return removed

    async def scan_iter(self, match=None, count=None):
        self._check()
        for key in list(self._data):
            self._purge(key)
            if key in self._data and (match is None or fnmatch.fnmatchcase(key, match)):
                yield key

    async def exists(self, *keys):
        self._check()
        total = 0
        for key in keys:
            self._purge(key)
            total += key in self._data
        return total

    async def ttl(self, key):
        self._check()
        self._purge(key)
        if key not in self._data:
            return -2
        expires = self._expiry.get(key)
        if expires is None:
            return -1
        return int((expires - self._clock.now()).total_seconds())

    async def flushdb(self):
        self._check()
        self._data.clear()
        self._expiry.clear()
        return True

    async def info(self, section=None):
        self._check()
        if section == "keyspace":
            return {"db0": {"keys": len(self._data), "expires": len(self._expiry)}}
        return {
            "used_memory": self.used_memory,
            "used_memory_peak": self.used_memory,
            "maxmemory": self.maxmemory,
        }

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        self.closed = True

    def keys_matching(self, pattern: str) -> List[str]:
        return [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]


# ============================================================================
# Data sources
# ============================================================================

class RecordingSource:
    """
    In-memory data source that records every call.

    Responses are FetchResults keyed by method name; a callable or an
    exception instance can be given instead.
    """

    def __init__(self, **responses: Any):
        self.responses = dict(responses)
        self.calls: List[tuple] = []

    async def _answer(self, name: str, *args):
        self.calls.append((name,) + args)
        response = self.responses.get(name, FetchResult.ok([]))
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(*args)
        return response

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    # Kanban source

    async def get_board(self, project_id: str, team_id: Optional[str]):
        return await self._answer("get_board", project_id, team_id)

    async def get_columns(self, project_id: str):
        return await self._answer("get_columns", project_id)

    async def get_project_categories(self, project_id: str):
        return await self._answer("get_project_categories", project_id)

    async def get_category_options(self, category_ids: Sequence[str]):
        return await self._answer("get_category_options", list(category_ids))

    # Shared

    async def get_user_projects(self, user_email: str):
        return await self._answer("get_user_projects", user_email)

    # User source

    async def get_user(self, user_email: str):
        return await self._answer("get_user", user_email)

    async def get_user_teams(self, user_email: str):
        return await self._answer("get_user_teams", user_email)

    async def get_user_shifts(self, user_email: str, shift_date: Optional[str] = None):
        return await self._answer("get_user_shifts", user_email, shift_date)

    async def get_team_members(self, team_id: str):
        return await self._answer("get_team_members", team_id)

    async def get_team_shifts(self, team_id: str, shift_date: Optional[str] = None):
        return await self._answer("get_team_shifts", team_id, shift_date)

    async def get_work_logs(self, user_email: str):
        return await self._answer("get_work_logs", user_email)

    async def get_team_availability(self, shift_date: str):
        return await self._answer("get_team_availability", shift_date)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def cache_config() -> CacheConfig:
    return CacheConfig(
        enabled=True,
        redis_url="redis://test:6379/0",
        compression_enabled=True,
        compression_threshold=1024,
    )


@pytest.fixture
def store(fake_redis, cache_config) -> RedisStore:
    async def factory(config):
        return fake_redis

    return RedisStore(cache_config, client_factory=factory)


@pytest.fixture
def strategy(store) -> CacheStrategy:
    return CacheStrategy(store)


@pytest.fixture
def kanban_cache(strategy) -> KanbanCache:
    return KanbanCache(strategy)


@pytest.fixture
def user_cache(strategy, clock) -> UserCache:
    return UserCache(strategy, today=lambda: clock.now().date())


@pytest.fixture
def tasks() -> DetachedTasks:
    return DetachedTasks()


@pytest.fixture
def sample_board() -> List[Row]:
    return [
        {"id": "col-a", "name": "To Do", "sort_order": 1, "tasks": [{"id": "t1", "title": "Scope"}]},
        {"id": "col-b", "name": "Done", "sort_order": 2, "tasks": []},
    ]
