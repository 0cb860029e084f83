"""MessagePack codec for request and push payloads."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

import msgpack
from pydantic import BaseModel

CONTENT_TYPE = "application/msgpack"


def _default(obj: Any) -> Any:
    # datetime must be checked before date (datetime is a date subclass)
    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=timezone.utc)
        return msgpack.Timestamp.from_datetime(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, BaseModel):
        return obj.model_dump()
    raise TypeError(f"Cannot serialize object of type {type(obj).__name__}")


def pack(obj: Any) -> bytes:
    """Serialize a value to MessagePack bytes."""
    return msgpack.packb(obj, default=_default, use_bin_type=True)


def unpack(data: bytes) -> Any:
    """Deserialize MessagePack bytes.

    Timestamps decode as timezone-aware UTC datetimes.
    """
    return msgpack.unpackb(data, raw=False, timestamp=3, strict_map_key=False)
