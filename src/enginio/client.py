"""Entry point of the library: backend credentials plus CRUD operations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from PySide6.QtCore import QObject, Signal

from . import config
from .errors import LocalValidationError
from .identity import EnginioIdentity
from .models.objects import EnginioObject, ObjectFactory, ObjectFactoryRegistry
from .network.dispatcher import OperationDispatcher
from .network.reply import EnginioReply
from .network.request_builder import Area, OperationKind, RequestBuilder
from .network.serializer import JsonSerializer, Serializer
from .network.transport import QtNetworkTransport, Transport
from .session import Session

logger = logging.getLogger(__name__)


class EnginioClient(QObject):
    """Handle backend keys, sessions and requests.

    Every operation returns immediately.  ``query``, ``create``, ``update``,
    ``remove`` and ``upload_file`` return an :class:`EnginioReply`, or
    ``None`` when the payload is rejected locally and nothing was sent.
    """

    finished = Signal(object)
    error = Signal(object)
    sessionAuthenticated = Signal(object)
    sessionAuthenticationError = Signal(object)
    sessionTerminated = Signal()
    clientInitialized = Signal()

    def __init__(
        self,
        backend_id: str = "",
        backend_secret: str = "",
        parent: QObject | None = None,
        *,
        api_url: Optional[str] = None,
        serializer: Serializer | None = None,
        transport: Transport | None = None,
        owns_transport: bool = False,
    ) -> None:
        super().__init__(parent)
        self._serializer = serializer or JsonSerializer()
        self._registry = ObjectFactoryRegistry()
        self._builder = RequestBuilder(self._serializer)
        self._session = Session(api_url, self)
        self._dispatcher = OperationDispatcher(
            self._registry,
            self._serializer,
            transport_factory=QtNetworkTransport,
            parent=self,
        )

        self._dispatcher.finished.connect(self.finished)
        self._dispatcher.error.connect(self.error)
        self._dispatcher.unauthorized.connect(self._on_unauthorized)
        self._session.initialized.connect(self._on_session_initialized)
        self._session.identityChanged.connect(self._on_identity_changed)
        self._session.apiUrlChanged.connect(self._update_ssl_policy)

        if transport is not None:
            self._dispatcher.set_transport(transport, owned=owns_transport)
        self._update_ssl_policy(self._session.api_url())

        self._session.set_backend_id(backend_id)
        self._session.set_backend_secret(backend_secret)
        if backend_id:
            logger.info("Client created for backend %s", backend_id)

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------
    def session(self) -> Session:
        return self._session

    def backend_id(self) -> str:
        return self._session.backend_id()

    def set_backend_id(self, backend_id: str) -> None:
        self._session.set_backend_id(backend_id)

    def backend_secret(self) -> str:
        return self._session.backend_secret()

    def set_backend_secret(self, backend_secret: str) -> None:
        self._session.set_backend_secret(backend_secret)

    def api_url(self) -> str:
        return self._session.api_url()

    def set_api_url(self, api_url: str) -> None:
        self._session.set_api_url(api_url)

    def session_token(self) -> bytes:
        return self._session.session_token()

    def set_session_token(self, token: bytes | str | None) -> None:
        self._session.set_session_token(token)

    def identity(self) -> Optional[EnginioIdentity]:
        return self._session.identity()

    def set_identity(self, identity: Optional[EnginioIdentity]) -> None:
        self._session.set_identity(identity)

    def is_initialized(self) -> bool:
        return self._session.is_initialized()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def dispatcher(self) -> OperationDispatcher:
        return self._dispatcher

    def transport(self) -> Transport:
        """Return the transport, creating an owned ``QtNetworkTransport`` if needed."""
        return self._dispatcher.transport()

    def set_transport(self, transport: Transport, owned: bool = False) -> None:
        """Use *transport* for all traffic; it is closed with the client only if *owned*."""
        self._dispatcher.set_transport(transport, owned=owned)

    # ------------------------------------------------------------------
    # Object factories
    # ------------------------------------------------------------------
    def registry(self) -> ObjectFactoryRegistry:
        return self._registry

    def register_object_factory(self, factory: ObjectFactory) -> int:
        """Register *factory* ahead of the existing ones and return its id."""
        return self._registry.register(factory)

    def unregister_object_factory(self, factory_id: int) -> None:
        self._registry.unregister(factory_id)

    def create_object(self, object_type: str, object_id: Optional[str] = None) -> EnginioObject:
        """Create an object of *object_type*; user types carry the ``objects.`` prefix."""
        return self._registry.create_for_type(object_type, object_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def query(self, query: Dict[str, Any], area: Area = Area.OBJECTS) -> Optional[EnginioReply]:
        return self._send(OperationKind.QUERY, query, area)

    def create(self, obj: Dict[str, Any], area: Area = Area.OBJECTS) -> Optional[EnginioReply]:
        return self._send(OperationKind.CREATE, obj, area)

    def update(self, obj: Dict[str, Any], area: Area = Area.OBJECTS) -> Optional[EnginioReply]:
        return self._send(OperationKind.UPDATE, obj, area)

    def remove(self, obj: Dict[str, Any], area: Area = Area.OBJECTS) -> Optional[EnginioReply]:
        return self._send(OperationKind.REMOVE, obj, area)

    def upload_file(
        self, associated_object: Dict[str, Any], file: str | Path
    ) -> Optional[EnginioReply]:
        """Upload *file* and attach it to the object described by *associated_object*.

        ``associated_object["object"]`` must name an existing object with its
        ``objectType``; files without an owning object are eventually deleted
        by the backend.
        """
        return self._send(OperationKind.UPLOAD_FILE, associated_object, Area.FILES, file)

    def _send(
        self,
        kind: OperationKind,
        payload: Dict[str, Any],
        area: Area,
        file: str | Path | None = None,
    ) -> Optional[EnginioReply]:
        try:
            descriptor = self._builder.build(kind, payload, self._session, area, file)
        except LocalValidationError as exc:
            logger.warning("Not sending %s request: %s", kind.value, exc)
            return None
        return self._dispatcher.dispatch(descriptor)

    # ------------------------------------------------------------------
    # Session callbacks
    # ------------------------------------------------------------------
    def _on_session_initialized(self) -> None:
        self.clientInitialized.emit()
        identity = self._session.identity()
        if identity is not None:
            identity.prepare_session_token(self)

    def _on_identity_changed(self, identity: Optional[EnginioIdentity]) -> None:
        if self._session.session_token():
            self._session.set_session_token(b"")
            self.sessionTerminated.emit()
        if identity is not None and self._session.is_initialized():
            identity.prepare_session_token(self)

    def _on_unauthorized(self, reply: EnginioReply) -> None:
        if reply.descriptor.area is Area.SESSION:
            return
        rejected = reply.descriptor.headers.get(config.SESSION_TOKEN_HEADER)
        current = self._session.session_token().decode("latin-1")
        if not rejected or rejected != current:
            return
        logger.info("Session token rejected by the backend")
        self._session.set_session_token(b"")
        self.sessionTerminated.emit()
        identity = self._session.identity()
        if identity is not None:
            identity.prepare_session_token(self)

    def _update_ssl_policy(self, api_url: str) -> None:
        self._dispatcher.set_ignore_ssl_errors(api_url in config.NON_PRODUCTION_API_URLS)


__all__ = ["EnginioClient"]
