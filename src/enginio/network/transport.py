"""Transport interface and the default ``QNetworkAccessManager`` adapter."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

from PySide6.QtCore import QByteArray, QObject, QUrl, Signal
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest

from .request_builder import RequestDescriptor

logger = logging.getLogger(__name__)

_HANDLE_PROPERTY = "enginioHandle"


@dataclass(frozen=True)
class TransportOutcome:
    """Result of one transport exchange.

    ``status`` is ``None`` when no HTTP response was received at all; in that
    case ``transport_error`` describes what went wrong.
    """

    status: Optional[int] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    transport_error: Optional[str] = None
    network_error: int = 0

    @property
    def is_success(self) -> bool:
        return self.status is not None and 200 <= self.status < 300


class Transport(Protocol):
    """What the dispatcher needs from a network backend.

    ``finished`` must be a signal emitting ``(handle, TransportOutcome)`` and
    ``progress`` a signal emitting ``(handle, done, total)``.
    """

    finished: Any
    progress: Any

    def send(self, descriptor: RequestDescriptor) -> Any: ...

    def set_ignore_ssl_errors(self, ignore: bool) -> None: ...

    def close(self) -> None: ...


class QtNetworkTransport(QObject):
    """Send request descriptors through a ``QNetworkAccessManager``."""

    finished = Signal(object, object)
    progress = Signal(object, object, object)

    def __init__(
        self,
        manager: QNetworkAccessManager | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._owns_manager = manager is None
        self._manager = manager or QNetworkAccessManager(self)
        self._manager.finished.connect(self._on_reply_finished)
        self._manager.sslErrors.connect(self._on_ssl_errors)
        self._handles = itertools.count(1)
        self._replies: Dict[int, QNetworkReply] = {}
        self._ignore_ssl_errors = False

    def manager(self) -> QNetworkAccessManager:
        return self._manager

    def set_ignore_ssl_errors(self, ignore: bool) -> None:
        self._ignore_ssl_errors = bool(ignore)

    def send(self, descriptor: RequestDescriptor) -> int:
        handle = next(self._handles)
        request = to_qt_request(descriptor)
        body = QByteArray(descriptor.body)
        method = descriptor.method.upper()
        if method == "GET":
            reply = self._manager.get(request)
        elif method == "POST":
            reply = self._manager.post(request, body)
        elif method == "PUT":
            reply = self._manager.put(request, body)
        elif method == "DELETE" and not descriptor.body:
            reply = self._manager.deleteResource(request)
        else:
            reply = self._manager.sendCustomRequest(request, method.encode("ascii"), body)

        reply.setProperty(_HANDLE_PROPERTY, handle)
        reply.uploadProgress.connect(
            lambda done, total, h=handle: self.progress.emit(h, done, total)
        )
        reply.downloadProgress.connect(
            lambda done, total, h=handle: self.progress.emit(h, done, total)
        )
        self._replies[handle] = reply
        logger.debug("Sent %s %s as transport handle %d", method, descriptor.url, handle)
        return handle

    def close(self) -> None:
        """Abort outstanding exchanges and release the manager if we made it."""
        self._manager.finished.disconnect(self._on_reply_finished)
        self._manager.sslErrors.disconnect(self._on_ssl_errors)
        replies = list(self._replies.values())
        self._replies.clear()
        for reply in replies:
            reply.abort()
            reply.deleteLater()
        if self._owns_manager:
            self._manager.deleteLater()

    # ------------------------------------------------------------------
    # QNetworkAccessManager callbacks
    # ------------------------------------------------------------------
    def _on_reply_finished(self, reply: QNetworkReply) -> None:
        handle = reply.property(_HANDLE_PROPERTY)
        if handle is None or self._replies.pop(int(handle), None) is None:
            return
        self.finished.emit(int(handle), outcome_from_reply(reply))
        reply.deleteLater()

    def _on_ssl_errors(self, reply: QNetworkReply, errors: list) -> None:
        if not self._ignore_ssl_errors:
            return
        for error in errors:
            logger.warning("Ignoring SSL error: %s", error.errorString())
        reply.ignoreSslErrors(errors)


def to_qt_request(descriptor: RequestDescriptor) -> QNetworkRequest:
    request = QNetworkRequest(QUrl(descriptor.url))
    for name, value in descriptor.headers.items():
        request.setRawHeader(QByteArray(name.encode("latin-1")), QByteArray(value.encode("latin-1")))
    return request


def outcome_from_reply(reply: QNetworkReply) -> TransportOutcome:
    status = reply.attribute(QNetworkRequest.Attribute.HttpStatusCodeAttribute)
    headers = {
        name.data().decode("latin-1"): value.data().decode("latin-1")
        for name, value in reply.rawHeaderPairs()
    }
    body = reply.readAll().data()
    transport_error = None
    network_error = 0
    if reply.error() != QNetworkReply.NetworkError.NoError:
        network_error = reply.error().value
        transport_error = reply.errorString()
    return TransportOutcome(
        status=int(status) if status is not None else None,
        headers=headers,
        body=bytes(body),
        transport_error=transport_error,
        network_error=network_error,
    )


__all__ = ["QtNetworkTransport", "Transport", "TransportOutcome", "outcome_from_reply", "to_qt_request"]
