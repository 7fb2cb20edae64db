"""Backend identity, credentials and the request headers derived from them."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Optional

from PySide6.QtCore import QObject, Signal

from . import config

if TYPE_CHECKING:  # pragma: no cover - import only for type checking
    from .identity import EnginioIdentity


logger = logging.getLogger(__name__)


class Session(QObject):
    """Hold the backend id/secret, session token and identity provider.

    The header snapshot returned by :meth:`headers` is rebuilt whenever one of
    the values feeding it changes.  Snapshots are read-only mappings, so
    descriptors built from an older snapshot keep the headers they were built
    with.
    """

    backendIdChanged = Signal(str)
    backendSecretChanged = Signal(str)
    sessionTokenChanged = Signal(object)
    identityChanged = Signal(object)
    apiUrlChanged = Signal(str)
    changed = Signal()
    initialized = Signal()

    def __init__(self, api_url: Optional[str] = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._backend_id = ""
        self._backend_secret = ""
        self._session_token = b""
        self._identity: Optional["EnginioIdentity"] = None
        self._api_url = api_url or config.default_api_url()
        self._was_initialized = False
        self._headers: Mapping[str, str] = self._build_headers()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def backend_id(self) -> str:
        return self._backend_id

    def backend_secret(self) -> str:
        return self._backend_secret

    def session_token(self) -> bytes:
        return self._session_token

    def identity(self) -> Optional["EnginioIdentity"]:
        return self._identity

    def api_url(self) -> str:
        return self._api_url

    def is_initialized(self) -> bool:
        return bool(self._backend_id) and bool(self._backend_secret)

    def headers(self) -> Mapping[str, str]:
        """Return the immutable header snapshot for newly built requests."""
        return self._headers

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------
    def set_backend_id(self, backend_id: str) -> None:
        backend_id = backend_id or ""
        if backend_id == self._backend_id:
            return
        self._backend_id = backend_id
        self._headers = self._build_headers()
        self.backendIdChanged.emit(backend_id)
        self._after_change()

    def set_backend_secret(self, backend_secret: str) -> None:
        backend_secret = backend_secret or ""
        if backend_secret == self._backend_secret:
            return
        self._backend_secret = backend_secret
        self._headers = self._build_headers()
        self.backendSecretChanged.emit(backend_secret)
        self._after_change()

    def set_session_token(self, token: bytes | str | None) -> None:
        if isinstance(token, str):
            token = token.encode("latin-1")
        token = bytes(token or b"")
        if token == self._session_token:
            return
        self._session_token = token
        self._headers = self._build_headers()
        self.sessionTokenChanged.emit(token)
        self._after_change()

    def set_identity(self, identity: Optional["EnginioIdentity"]) -> None:
        if identity is self._identity:
            return
        self._identity = identity
        self.identityChanged.emit(identity)
        self._after_change()

    def set_api_url(self, api_url: str) -> None:
        api_url = api_url or config.default_api_url()
        if api_url == self._api_url:
            return
        self._api_url = api_url
        self.apiUrlChanged.emit(api_url)
        self.changed.emit()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _build_headers(self) -> Mapping[str, str]:
        headers = {
            config.BACKEND_ID_HEADER: self._backend_id,
            config.BACKEND_SECRET_HEADER: self._backend_secret,
            config.CONTENT_TYPE_HEADER: config.JSON_CONTENT_TYPE,
        }
        if self._session_token:
            headers[config.SESSION_TOKEN_HEADER] = self._session_token.decode("latin-1")
        return MappingProxyType(headers)

    def _after_change(self) -> None:
        self.changed.emit()
        now_initialized = self.is_initialized()
        if now_initialized and not self._was_initialized:
            self._was_initialized = True
            logger.info("Session initialized for backend %s", self._backend_id)
            self.initialized.emit()
        elif not now_initialized:
            self._was_initialized = False


__all__ = ["Session"]
