"""Conversion between structured values and wire bytes."""

from __future__ import annotations

import json
from typing import Any, Protocol


class Serializer(Protocol):
    """Structured value <-> bytes, used for request and response bodies."""

    def dumps(self, value: Any) -> bytes: ...

    def loads(self, data: bytes) -> Any: ...


class JsonSerializer:
    """Compact UTF-8 JSON, the only format the backend speaks."""

    def dumps(self, value: Any) -> bytes:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    def loads(self, data: bytes) -> Any:
        if not data:
            return None
        return json.loads(bytes(data).decode("utf-8"))


__all__ = ["JsonSerializer", "Serializer"]
