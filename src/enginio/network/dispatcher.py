"""Route transport completions to the replies waiting for them."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from PySide6.QtCore import QObject, Signal

from ..models.objects import ObjectFactoryRegistry
from .reply import EnginioReply
from .request_builder import RequestDescriptor
from .serializer import JsonSerializer, Serializer
from .transport import Transport, TransportOutcome

logger = logging.getLogger(__name__)

TransportFactory = Callable[[], Transport]


class OperationDispatcher(QObject):
    """Own one transport binding and the table of pending replies.

    The table only maps transport handles to replies; callers own the replies
    they receive.  Completions for handles that are not in the table are
    stale and dropped.
    """

    finished = Signal(object)
    error = Signal(object)
    unauthorized = Signal(object)

    def __init__(
        self,
        registry: ObjectFactoryRegistry,
        serializer: Serializer | None = None,
        transport_factory: Optional[TransportFactory] = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._registry = registry
        self._serializer = serializer or JsonSerializer()
        self._transport_factory = transport_factory
        self._transport: Optional[Transport] = None
        self._owns_transport = False
        self._ignore_ssl_errors = False
        self._pending: Dict[Any, EnginioReply] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Transport binding
    # ------------------------------------------------------------------
    def transport(self) -> Transport:
        """Return the bound transport, creating an owned default on first use."""
        if self._transport is None:
            if self._transport_factory is None:
                raise RuntimeError("no transport bound and no default transport factory")
            transport = self._transport_factory()
            self.set_transport(transport, owned=True)
            return transport
        return self._transport

    def has_transport(self) -> bool:
        return self._transport is not None

    def owns_transport(self) -> bool:
        return self._owns_transport

    def set_transport(self, transport: Transport, owned: bool = False) -> None:
        """Bind *transport*; the previous one is unbound and closed if owned."""
        if transport is self._transport:
            self._owns_transport = owned
            return
        self._release_transport()
        self._transport = transport
        self._owns_transport = owned
        transport.finished.connect(self._on_transport_finished)
        transport.progress.connect(self._on_transport_progress)
        self._apply_ssl_policy()

    def close(self) -> None:
        self._release_transport()

    def _release_transport(self) -> None:
        previous = self._transport
        if previous is None:
            return
        previous.finished.disconnect(self._on_transport_finished)
        previous.progress.disconnect(self._on_transport_progress)
        self._transport = None
        if self._owns_transport:
            previous.close()
        self._owns_transport = False

    # ------------------------------------------------------------------
    # TLS policy
    # ------------------------------------------------------------------
    def set_ignore_ssl_errors(self, ignore: bool) -> None:
        ignore = bool(ignore)
        if ignore == self._ignore_ssl_errors:
            return
        self._ignore_ssl_errors = ignore
        if ignore:
            logger.warning("SSL errors will be ignored")
        self._apply_ssl_policy()

    def ignores_ssl_errors(self) -> bool:
        return self._ignore_ssl_errors

    def _apply_ssl_policy(self) -> None:
        setter = getattr(self._transport, "set_ignore_ssl_errors", None)
        if setter is not None:
            setter(self._ignore_ssl_errors)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def dispatch(self, descriptor: RequestDescriptor) -> EnginioReply:
        """Create a reply for *descriptor* and submit it."""
        reply = EnginioReply(descriptor, self._registry, self._serializer)
        self.submit(descriptor, reply)
        return reply

    def submit(self, descriptor: RequestDescriptor, reply: EnginioReply) -> Any:
        """Hand *descriptor* to the transport and track *reply* under its handle."""
        # Transports report completion later through ``finished``, never from
        # inside ``send``.
        handle = self.transport().send(descriptor)
        reply.handle = handle
        with self._lock:
            self._pending[handle] = reply
        logger.debug("Submitted %s %s as %r", descriptor.method, descriptor.url, handle)
        return handle

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------
    def _on_transport_finished(self, handle: Any, outcome: TransportOutcome) -> None:
        with self._lock:
            reply = self._pending.pop(handle, None)
        if reply is None:
            logger.debug("Dropping stale completion for %r", handle)
            return

        if not reply._finish(outcome):
            return
        if reply.is_error():
            if reply.status == 401:
                self.unauthorized.emit(reply)
            self.error.emit(reply)
        self.finished.emit(reply)

    def _on_transport_progress(self, handle: Any, done: Any, total: Any) -> None:
        with self._lock:
            reply = self._pending.get(handle)
        if reply is not None:
            reply._report_progress(done, total)


__all__ = ["OperationDispatcher", "TransportFactory"]
