"""Source-of-truth data access for the cache-aside read paths."""

from alignzo.data.base import FetchResult, KanbanSource, Row, UserSource

__all__ = ["FetchResult", "KanbanSource", "Row", "UserSource"]
