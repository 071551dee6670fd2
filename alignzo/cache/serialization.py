"""
Cache Payload Serialization

Values are stored as compact JSON. Null, empty-string and empty-collection
object members are dropped before encoding to keep payloads small. List
elements keep their positions, with emptied elements stored as null.
Everything else round-trips unchanged. Payloads above a threshold are
LZ4-compressed.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import lz4.frame


logger = logging.getLogger(__name__)


# Compression type markers (1-byte prefix)
MARKER_UNCOMPRESSED = b'\x00'
MARKER_LZ4 = b'\x01'

_DROP = object()


class SerializationError(ValueError):
    """Raised when a cached payload cannot be decoded."""


@dataclass
class CompressionStats:
    """Track compression statistics."""
    original_size: int
    compressed_size: int

    @property
    def savings_percent(self) -> float:
        if self.original_size == 0:
            return 0.0
        return (1 - self.compressed_size / self.original_size) * 100


def _is_empty(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, (list, tuple, dict)) and len(value) == 0


def _strip(value: Any) -> Any:
    if isinstance(value, dict):
        stripped = {}
        for key, item in value.items():
            item = _strip(item)
            if item is not _DROP:
                stripped[key] = item
        return _DROP if not stripped else stripped
    if isinstance(value, (list, tuple)):
        if not value:
            return _DROP
        # Elements keep their positions; an emptied element becomes null
        items = [_strip(item) for item in value]
        return [None if item is _DROP else item for item in items]
    if value is None or value == "":
        return _DROP
    return value


def strip_empty(value: Any) -> Any:
    """
    Remove null, empty-string and empty-collection members recursively.

    Inside lists an emptied element is replaced by None so the remaining
    elements keep their indexes.

    The top-level value itself is never dropped: an empty list stays an
    empty list so that "cached, but nothing there" is distinguishable
    from a miss.
    """
    if _is_empty(value):
        return value
    stripped = _strip(value)
    if stripped is _DROP:
        return [] if isinstance(value, (list, tuple)) else {}
    return stripped


def _default_handler(obj):
    if hasattr(obj, 'isoformat'):
        return obj.isoformat()
    if hasattr(obj, 'to_dict'):
        return obj.to_dict()
    if hasattr(obj, '__dict__'):
        return obj.__dict__
    return str(obj)


def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to compact JSON bytes, dropping empty fields."""
    if hasattr(value, 'to_dict'):
        value = value.to_dict()
    # Round-trip through the default handler first so that dataclasses and
    # datetimes are plain JSON before empty fields are stripped.
    plain = json.loads(json.dumps(value, default=_default_handler))
    compact = json.dumps(
        strip_empty(plain),
        ensure_ascii=False,
        separators=(',', ':'),
    )
    return compact.encode('utf-8')


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes back to a Python value."""
    if not data:
        return None
    try:
        return json.loads(data.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SerializationError(f"Invalid cached payload: {e}") from e


class CacheCompressor:
    """
    Handles compression/decompression of cache entries.

    LZ4 is used for its speed: JSON board data compresses 2-3x at
    hundreds of MB/s, which matters on a small hosted Redis plan.
    """

    def __init__(
        self,
        enabled: bool = True,
        threshold: int = 1024,  # 1KB minimum for compression
    ):
        self.enabled = enabled
        self.threshold = threshold

    def compress(self, data: bytes) -> Tuple[bytes, Optional[CompressionStats]]:
        """
        Compress data if beneficial.

        Returns:
            Tuple of (framed_data, stats) or (framed_data, None) when stored raw
        """
        if not self.enabled or len(data) < self.threshold:
            return MARKER_UNCOMPRESSED + data, None

        try:
            compressed = lz4.frame.compress(data)
        except Exception as e:
            logger.warning(f"Compression failed: {e}, storing uncompressed")
            return MARKER_UNCOMPRESSED + data, None

        if len(compressed) < len(data):
            stats = CompressionStats(
                original_size=len(data),
                compressed_size=len(compressed) + 1,  # +1 for marker
            )
            return MARKER_LZ4 + compressed, stats

        return MARKER_UNCOMPRESSED + data, None

    def decompress(self, data: bytes) -> bytes:
        """Strip the frame marker and decompress if needed."""
        if not data:
            return data

        marker = data[0:1]
        payload = data[1:]

        if marker == MARKER_UNCOMPRESSED:
            return payload
        if marker == MARKER_LZ4:
            try:
                return lz4.frame.decompress(payload)
            except Exception as e:
                raise SerializationError(f"Corrupt LZ4 payload: {e}") from e

        raise SerializationError(f"Unknown compression marker: {marker!r}")
