"""Observable handle for one in-flight backend request."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional

from PySide6.QtCore import QObject, Signal

from .. import config
from ..errors import BackendError, EnginioError, PayloadError, TransportError
from ..models.objects import EnginioObject, ObjectFactoryRegistry
from .request_builder import RequestDescriptor
from .serializer import Serializer
from .transport import TransportOutcome

logger = logging.getLogger(__name__)

ReplyCallback = Callable[["EnginioReply"], None]


class ReplyState(Enum):
    PENDING = "pending"
    FINISHED = "finished"


class EnginioReply(QObject):
    """Eventual outcome of one request.

    A reply goes from ``PENDING`` to ``FINISHED`` exactly once.  Consumers
    either connect to :attr:`finished` or attach a single observer with
    :meth:`on_finished`, which is also honoured when the reply has already
    finished.
    """

    finished = Signal(object)
    progress = Signal(object, object)

    def __init__(
        self,
        descriptor: RequestDescriptor,
        registry: ObjectFactoryRegistry,
        serializer: Serializer,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._descriptor = descriptor
        self._registry = registry
        self._serializer = serializer
        self._lock = threading.Lock()
        self._state = ReplyState.PENDING
        self._observer: Optional[ReplyCallback] = None
        self._abandoned = False
        self.handle: Any = None

        self._data: Any = None
        self._objects: List[EnginioObject] = []
        self._error: Optional[EnginioError] = None
        self._status: Optional[int] = None
        self._headers: dict = {}
        self._finished_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Result accessors
    # ------------------------------------------------------------------
    @property
    def descriptor(self) -> RequestDescriptor:
        return self._descriptor

    @property
    def state(self) -> ReplyState:
        return self._state

    def is_finished(self) -> bool:
        return self._state is ReplyState.FINISHED

    def is_error(self) -> bool:
        return self._error is not None

    def is_abandoned(self) -> bool:
        return self._abandoned

    @property
    def data(self) -> Any:
        """Decoded response payload, ``None`` while pending or on error."""
        return self._data

    @property
    def objects(self) -> List[EnginioObject]:
        return list(self._objects)

    @property
    def error(self) -> Optional[EnginioError]:
        return self._error

    @property
    def status(self) -> Optional[int]:
        return self._status

    @property
    def headers(self) -> dict:
        return dict(self._headers)

    @property
    def finished_at(self) -> Optional[datetime]:
        return self._finished_at

    def error_string(self) -> str:
        return str(self._error) if self._error is not None else ""

    def backend_status(self) -> Optional[int]:
        if isinstance(self._error, BackendError):
            return self._error.status
        return self._status

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    def on_finished(self, callback: ReplyCallback) -> None:
        """Call *callback* once with this reply when it has finished.

        Only one pending observer is kept; attaching another before the reply
        finishes replaces it.
        """
        with self._lock:
            if self._abandoned:
                return
            if self._state is ReplyState.PENDING:
                self._observer = callback
                return
        self._deliver(callback)

    def abandon(self) -> None:
        """Drop the caller's interest; the network exchange keeps running."""
        with self._lock:
            self._abandoned = True
            self._observer = None

    # ------------------------------------------------------------------
    # Dispatcher side
    # ------------------------------------------------------------------
    def _report_progress(self, done: Any, total: Any) -> None:
        if not self._abandoned and self._state is ReplyState.PENDING:
            self.progress.emit(done, total)

    def _finish(self, outcome: TransportOutcome) -> bool:
        """Store the outcome; return ``True`` when observers were notified."""
        with self._lock:
            if self._state is ReplyState.FINISHED:
                return False
            self._apply(outcome)
            self._finished_at = datetime.now(timezone.utc)
            self._state = ReplyState.FINISHED
            observer, self._observer = self._observer, None
            abandoned = self._abandoned

        if abandoned:
            logger.debug("Discarding result of abandoned reply %s", self.handle)
            return False
        if observer is not None:
            self._deliver(observer)
        self.finished.emit(self)
        return True

    def _apply(self, outcome: TransportOutcome) -> None:
        self._status = outcome.status
        self._headers = dict(outcome.headers)
        if outcome.is_success:
            try:
                self._data = self._serializer.loads(outcome.body)
            except ValueError as exc:
                self._error = PayloadError(f"undecodable response body: {exc}", outcome.status)
                return
            try:
                self._objects = self._build_objects(self._data)
            except Exception as exc:
                logger.exception("Building objects for reply %s failed", self.handle)
                self._data = None
                self._error = PayloadError(f"cannot build objects: {exc}", outcome.status)
        elif outcome.status is not None:
            self._error = self._backend_error(outcome)
        else:
            self._error = TransportError(
                outcome.transport_error or "transport failure", outcome.network_error
            )

    def _build_objects(self, data: Any) -> List[EnginioObject]:
        if isinstance(data, dict):
            results = data.get(config.RESULTS_KEY)
            if isinstance(results, list):
                items = results
            elif config.OBJECT_TYPE_KEY in data or config.OBJECT_ID_KEY in data:
                items = [data]
            else:
                items = []
        elif isinstance(data, list):
            items = data
        else:
            items = []
        return [self._registry.create_from_json(item) for item in items if isinstance(item, dict)]

    def _backend_error(self, outcome: TransportOutcome) -> BackendError:
        try:
            payload = self._serializer.loads(outcome.body)
        except ValueError:
            payload = None

        message = ""
        reason = None
        if isinstance(payload, dict):
            errors = payload.get("errors")
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                message = str(errors[0].get("message") or "")
                reason = errors[0].get("reason")
            else:
                message = str(payload.get("message") or "")
                reason = payload.get("reason")
        if not message:
            message = outcome.transport_error or f"HTTP status {outcome.status}"
        return BackendError(int(outcome.status), message, reason, payload)

    def _deliver(self, callback: ReplyCallback) -> None:
        try:
            callback(self)
        except Exception:
            logger.exception("Reply observer %r failed", callback)

    def __repr__(self) -> str:
        return (
            f"EnginioReply(handle={self.handle!r}, {self._descriptor.method} "
            f"{self._descriptor.url}, state={self._state.value})"
        )


__all__ = ["EnginioReply", "ReplyCallback", "ReplyState"]
