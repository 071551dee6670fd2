"""Cache-aside read services."""

from alignzo.services.cache_aside import CacheOutcome, ReadResult, read_through
from alignzo.services.kanban import KanbanService
from alignzo.services.user import UserService

__all__ = [
    "CacheOutcome",
    "KanbanService",
    "ReadResult",
    "UserService",
    "read_through",
]
