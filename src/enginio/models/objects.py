"""Typed result objects and the factory chain that builds them.

Every object found in a success payload is turned into an
:class:`EnginioObject` by an :class:`ObjectFactoryRegistry`.  Applications
plug their own classes in by registering an :class:`ObjectFactory`; types
nobody claims are wrapped in a :class:`JsonObject`.
"""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Protocol, runtime_checkable

from .. import config

logger = logging.getLogger(__name__)


class EnginioObject:
    """Base class for objects stored on the backend.

    Subclasses may override :meth:`from_json`/:meth:`to_json` to map backend
    fields onto real attributes; the default keeps everything in a dict.
    """

    def __init__(self, object_type: str = "", object_id: Optional[str] = None) -> None:
        self._fields: Dict[str, Any] = {}
        if object_type:
            self._fields[config.OBJECT_TYPE_KEY] = object_type
        if object_id:
            self._fields[config.OBJECT_ID_KEY] = object_id

    @property
    def object_type(self) -> str:
        return str(self.value(config.OBJECT_TYPE_KEY) or "")

    @property
    def id(self) -> Optional[str]:
        value = self.value(config.OBJECT_ID_KEY)
        return str(value) if value else None

    def value(self, name: str, default: Any = None) -> Any:
        return self._fields.get(name, default)

    def set_value(self, name: str, value: Any) -> None:
        self._fields[name] = value

    def keys(self) -> List[str]:
        return list(self._fields)

    def from_json(self, payload: Dict[str, Any]) -> None:
        """Merge *payload* into the object, overwriting existing fields."""
        for key, value in payload.items():
            self.set_value(key, copy.deepcopy(value))

    def to_json(self) -> Dict[str, Any]:
        return {key: copy.deepcopy(self.value(key)) for key in self.keys()}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(type={self.object_type!r}, id={self.id!r})"


class JsonObject(EnginioObject):
    """Generic object used when no registered factory claims a type."""


@runtime_checkable
class ObjectFactory(Protocol):
    """Plugin interface: attempt to construct an object for ``(type, id)``."""

    def create_object_for_type(
        self, object_type: str, object_id: Optional[str] = None
    ) -> Optional[EnginioObject]: ...


class JsonObjectFactory:
    """Terminal fallback of every registry."""

    def create_object_for_type(
        self, object_type: str, object_id: Optional[str] = None
    ) -> EnginioObject:
        return JsonObject(object_type, object_id)


@dataclass
class FactoryEntry:
    id: int
    factory: ObjectFactory


class ObjectFactoryRegistry:
    """Ordered chain of object factories, most recently registered first."""

    _ids = itertools.count()

    def __init__(self) -> None:
        self._entries: List[FactoryEntry] = []
        self._fallback = JsonObjectFactory()
        self._lock = threading.Lock()

    def register(self, factory: ObjectFactory) -> int:
        """Insert *factory* ahead of all others and return its handle."""
        entry = FactoryEntry(id=next(self._ids), factory=factory)
        with self._lock:
            self._entries.insert(0, entry)
        logger.debug("Registered object factory %r as #%d", factory, entry.id)
        return entry.id

    def unregister(self, factory_id: int) -> None:
        """Remove the factory registered as *factory_id*; unknown ids are ignored."""
        with self._lock:
            for index, entry in enumerate(self._entries):
                if entry.id == factory_id:
                    del self._entries[index]
                    return

    def factories(self) -> Iterator[ObjectFactory]:
        with self._lock:
            entries = list(self._entries)
        for entry in entries:
            yield entry.factory

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def create_for_type(self, object_type: str, object_id: Optional[str] = None) -> EnginioObject:
        """Return an object for *object_type*; never ``None``."""
        for factory in self.factories():
            obj = factory.create_object_for_type(object_type, object_id)
            if obj is not None:
                return obj
        return self._fallback.create_object_for_type(object_type, object_id)

    def create_from_json(self, payload: Dict[str, Any]) -> EnginioObject:
        """Build and populate an object from one backend JSON object."""
        object_type = str(payload.get(config.OBJECT_TYPE_KEY) or "")
        raw_id = payload.get(config.OBJECT_ID_KEY)
        obj = self.create_for_type(object_type, str(raw_id) if raw_id else None)
        obj.from_json(payload)
        return obj


__all__ = [
    "EnginioObject",
    "FactoryEntry",
    "JsonObject",
    "JsonObjectFactory",
    "ObjectFactory",
    "ObjectFactoryRegistry",
]
