"""Live, incrementally loaded list over the results of a backend query."""

from __future__ import annotations

import copy
import logging
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from PySide6.QtCore import QAbstractListModel, QModelIndex, QObject, Qt, Signal

from .. import config
from ..network.request_builder import Area
from .objects import EnginioObject
from .roles import DYNAMIC_ROLE_BASE, FIXED_ROLE_FIELDS, Roles, role_names
from .transactions import PendingMutations

if TYPE_CHECKING:  # pragma: no cover - import only for type checking
    from ..client import EnginioClient
    from ..network.reply import EnginioReply


logger = logging.getLogger(__name__)


class EnginioModel(QAbstractListModel):
    """Expose the objects matched by a query to Qt views.

    Pages are fetched on demand through :meth:`fetchMore`, one at a time.
    :meth:`append`, :meth:`remove` and :meth:`set_property` change the cache
    immediately and send the matching backend operation; failures are
    reported through :attr:`operationFailed` and never rolled back.
    """

    clientChanged = Signal(object)
    queryChanged = Signal(object)
    operationChanged = Signal(object)
    operationFailed = Signal(object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._client: Optional["EnginioClient"] = None
        self._query: Dict[str, Any] = {}
        self._operation = Area.OBJECTS
        self._page_size: Optional[int] = None

        self._rows: List[EnginioObject] = []
        self._row_ids: Dict[str, EnginioObject] = {}
        self._offset = 0
        self._loaded_pages = 0
        self._total_count: Optional[int] = None
        self._exhausted = False
        self._fetch_reply: Optional["EnginioReply"] = None
        self._pending = PendingMutations()
        self._dynamic_roles: Dict[str, int] = {}
        # id() of rows delivered by page fetches; they count towards the offset.
        self._paged_rows: Set[int] = set()
        self._generation = 0

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------
    def client(self) -> Optional["EnginioClient"]:
        return self._client

    def set_client(self, client: Optional["EnginioClient"]) -> None:
        if client is self._client:
            return
        if self._client is not None:
            self._client.clientInitialized.disconnect(self.reload)
        self._client = client
        if client is not None:
            client.clientInitialized.connect(self.reload)
        self.clientChanged.emit(client)
        self.reload()

    def query(self) -> Dict[str, Any]:
        return copy.deepcopy(self._query)

    def set_query(self, query: Optional[Dict[str, Any]]) -> None:
        query = dict(query or {})
        if query == self._query:
            return
        self._query = copy.deepcopy(query)
        self.queryChanged.emit(self.query())
        self.reload()

    def operation(self) -> Area:
        return self._operation

    def set_operation(self, operation: Area) -> None:
        """Switch between plain queries (any area) and backend search mode."""
        if operation is self._operation:
            return
        self._operation = operation
        self.operationChanged.emit(operation)
        self.reload()

    def page_size(self) -> int:
        if self._page_size:
            return self._page_size
        limit = self._query.get("limit")
        try:
            size = int(limit) if limit else 0
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric query limit %r", limit)
            size = 0
        return size if size > 0 else config.DEFAULT_PAGE_SIZE

    def set_page_size(self, page_size: Optional[int]) -> None:
        if page_size == self._page_size:
            return
        self._page_size = page_size
        self.reload()

    def is_ready(self) -> bool:
        return self._client is not None and self._client.is_initialized() and bool(self._query)

    def is_fetching(self) -> bool:
        return self._fetch_reply is not None

    def total_count(self) -> Optional[int]:
        return self._total_count

    def loaded_page_count(self) -> int:
        return self._loaded_pages

    def offset(self) -> int:
        return self._offset

    def row_object(self, row: int) -> Optional[EnginioObject]:
        if 0 <= row < len(self._rows):
            return self._rows[row]
        return None

    def reload(self) -> None:
        """Drop the cache and fetch the first page of the bound query again."""
        if self._fetch_reply is not None:
            self._fetch_reply.abandon()
            self._fetch_reply = None

        self._generation += 1
        self.beginResetModel()
        self._rows = []
        self._row_ids = {}
        self._paged_rows = set()
        self._offset = 0
        self._loaded_pages = 0
        self._total_count = None
        self._exhausted = False
        self.endResetModel()

        if self.is_ready():
            self.fetchMore()

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------
    def canFetchMore(self, parent: QModelIndex = QModelIndex()) -> bool:  # noqa: N802  # Qt override
        if parent.isValid() or not self.is_ready():
            return False
        if self._exhausted:
            return False
        return self._total_count is None or self._offset < self._total_count

    def fetchMore(self, parent: QModelIndex = QModelIndex()) -> None:  # noqa: N802  # Qt override
        if self._fetch_reply is not None or not self.canFetchMore(parent):
            return

        query = dict(self._query)
        query["limit"] = self.page_size()
        query["offset"] = self._offset
        reply = self._client.query(query, self._operation)
        if reply is None:
            # The query itself is unusable; retrying would fail the same way.
            self._exhausted = True
            return
        self._fetch_reply = reply
        reply.finished.connect(self._on_page_finished)

    def _on_page_finished(self, reply: "EnginioReply") -> None:
        if reply is not self._fetch_reply:
            return
        self._fetch_reply = None
        if reply.is_error():
            logger.warning("Fetching rows at offset %d failed: %s", self._offset, reply.error_string())
            self._exhausted = True
            self.operationFailed.emit(reply)
            return

        data = reply.data if isinstance(reply.data, dict) else {}
        if isinstance(data.get(config.COUNT_KEY), int):
            self._total_count = data[config.COUNT_KEY]

        received = reply.objects
        self._offset += len(received)
        self._loaded_pages += 1
        self._exhausted = not received or len(received) < self.page_size()

        new_rows: List[EnginioObject] = []
        seen = set(self._row_ids)
        for obj in received:
            if obj.id is not None:
                if obj.id in seen:
                    continue
                seen.add(obj.id)
            new_rows.append(obj)
        if not new_rows:
            return

        first = len(self._rows)
        self.beginInsertRows(QModelIndex(), first, first + len(new_rows) - 1)
        for obj in new_rows:
            self._rows.append(obj)
            self._paged_rows.add(id(obj))
            self._index_row(obj)
        self.endInsertRows()

    # ------------------------------------------------------------------
    # Optimistic mutations
    # ------------------------------------------------------------------
    def append(self, value: Dict[str, Any]) -> Optional["EnginioReply"]:
        """Add *value* as a new row and create it on the backend."""
        if self._client is None or not value:
            return None
        payload = dict(value)
        query_type = self._query.get(config.OBJECT_TYPE_KEY)
        if query_type and not payload.get(config.OBJECT_TYPE_KEY):
            payload[config.OBJECT_TYPE_KEY] = query_type

        reply = self._client.create(payload, self._mutation_area())
        if reply is None:
            return None

        obj = self._client.create_object(str(payload.get(config.OBJECT_TYPE_KEY) or ""))
        obj.from_json(payload)
        row = len(self._rows)
        self.beginInsertRows(QModelIndex(), row, row)
        self._rows.append(obj)
        self._index_row(obj)
        self.endInsertRows()

        self._pending.register(obj, reply)
        reply.finished.connect(partial(self._on_create_finished, obj))
        return reply

    def remove(self, row: int) -> Optional["EnginioReply"]:
        """Remove *row* from the cache and delete its object on the backend."""
        obj = self.row_object(row)
        if self._client is None or obj is None:
            return None
        payload = {config.OBJECT_ID_KEY: obj.id, config.OBJECT_TYPE_KEY: obj.object_type}
        reply = self._client.remove(payload, self._mutation_area())
        if reply is None:
            return None

        paged = id(obj) in self._paged_rows
        self._paged_rows.discard(id(obj))
        self.beginRemoveRows(QModelIndex(), row, row)
        del self._rows[row]
        if obj.id is not None:
            self._row_ids.pop(obj.id, None)
        self.endRemoveRows()

        self._pending.register(obj, reply)
        reply.finished.connect(partial(self._on_remove_finished, paged, self._generation))
        return reply

    def set_property(self, row: int, name: str, value: Any) -> Optional["EnginioReply"]:
        """Set field *name* of *row* and send only that field to the backend."""
        obj = self.row_object(row)
        if self._client is None or obj is None or not name:
            return None
        payload = {
            config.OBJECT_ID_KEY: obj.id,
            config.OBJECT_TYPE_KEY: obj.object_type,
            name: value,
        }
        reply = self._client.update(payload, self._mutation_area())
        if reply is None:
            return None

        obj.set_value(name, value)
        self._register_role(name)
        self._pending.register(obj, reply)
        index = self.index(row, 0)
        roles = [int(Roles.SYNCED)]
        field_role = self.role_for_field(name)
        if field_role is not None:
            roles.insert(0, field_role)
        self.dataChanged.emit(index, index, roles)
        reply.finished.connect(self._on_update_finished)
        return reply

    def _mutation_area(self) -> Area:
        return Area.OBJECTS if self._operation is Area.SEARCH else self._operation

    def _on_create_finished(self, obj: EnginioObject, reply: "EnginioReply") -> None:
        self._pending.resolve(reply)
        row = self._row_of(obj)
        if reply.is_error():
            self._emit_row_changed(row)
            self.operationFailed.emit(reply)
            return
        if row < 0:
            return

        data = reply.data if isinstance(reply.data, dict) else {}
        new_id = data.get(config.OBJECT_ID_KEY)
        existing = self._row_ids.get(str(new_id)) if new_id else None
        if existing is not None and existing is not obj:
            # A page fetch already delivered the created object.
            self.beginRemoveRows(QModelIndex(), row, row)
            del self._rows[row]
            self.endRemoveRows()
            return

        obj.from_json(data)
        self._index_row(obj)
        self._emit_row_changed(row)

    def _on_update_finished(self, reply: "EnginioReply") -> None:
        obj = self._pending.resolve(reply)
        row = self._row_of(obj) if obj is not None else -1
        if reply.is_error():
            self._emit_row_changed(row)
            self.operationFailed.emit(reply)
            return
        if obj is not None and isinstance(reply.data, dict) and self._pending.is_synced(obj):
            obj.from_json(reply.data)
            self._index_row(obj)
        self._emit_row_changed(row)

    def _on_remove_finished(self, paged: bool, generation: int, reply: "EnginioReply") -> None:
        self._pending.resolve(reply)
        if reply.is_error():
            self.operationFailed.emit(reply)
            return
        if not paged or generation != self._generation:
            return
        # The backend collection shifted left by one behind the removed row.
        self._offset = max(0, self._offset - 1)
        if self._total_count is not None:
            self._total_count = max(0, self._total_count - 1)

    # ------------------------------------------------------------------
    # Qt model implementation
    # ------------------------------------------------------------------
    def rowCount(self, parent: QModelIndex | None = None) -> int:  # noqa: N802  # Qt override
        if parent is not None and parent.isValid():
            return 0
        return len(self._rows)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:
        obj = self.row_object(index.row()) if index.isValid() else None
        if obj is None:
            return None
        if role == Qt.DisplayRole:
            return obj.to_json()
        if role == Roles.SYNCED:
            return self._pending.is_synced(obj)
        name = self.field_for_role(role)
        if name is None:
            return None
        return obj.value(name)

    def setData(self, index: QModelIndex, value: Any, role: int = Qt.EditRole) -> bool:  # noqa: N802  # Qt override
        if not index.isValid() or role == Roles.SYNCED:
            return False
        name = self.field_for_role(role)
        if name is None:
            return False
        return self.set_property(index.row(), name, value) is not None

    def flags(self, index: QModelIndex) -> Qt.ItemFlag:
        if not index.isValid():
            return Qt.NoItemFlags
        return Qt.ItemIsEnabled | Qt.ItemIsSelectable | Qt.ItemIsEditable

    def roleNames(self) -> Dict[int, bytes]:  # noqa: N802  # Qt override
        return role_names(super().roleNames(), self._dynamic_roles)

    def field_for_role(self, role: int) -> Optional[str]:
        if role in FIXED_ROLE_FIELDS and role != Roles.SYNCED:
            return FIXED_ROLE_FIELDS[role]
        for name, dynamic_role in self._dynamic_roles.items():
            if dynamic_role == role:
                return name
        return None

    def role_for_field(self, name: str) -> Optional[int]:
        for role, field_name in FIXED_ROLE_FIELDS.items():
            if field_name == name:
                return int(role)
        return self._dynamic_roles.get(name)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _index_row(self, obj: EnginioObject) -> None:
        if obj.id is not None:
            self._row_ids[obj.id] = obj
        for name in obj.keys():
            self._register_role(name)

    def _register_role(self, name: str) -> None:
        if name in FIXED_ROLE_FIELDS.values() or name in self._dynamic_roles:
            return
        self._dynamic_roles[name] = DYNAMIC_ROLE_BASE + len(self._dynamic_roles)

    def _row_of(self, obj: EnginioObject) -> int:
        for row, candidate in enumerate(self._rows):
            if candidate is obj:
                return row
        return -1

    def _emit_row_changed(self, row: int) -> None:
        if 0 <= row < len(self._rows):
            index = self.index(row, 0)
            self.dataChanged.emit(index, index, [])


__all__ = ["EnginioModel"]
