"""Identity providers that obtain a session token for the client."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Optional

from PySide6.QtCore import QObject

from . import config
from .network.reply import EnginioReply
from .network.request_builder import Area

if TYPE_CHECKING:  # pragma: no cover - import only for type checking
    from .client import EnginioClient


logger = logging.getLogger(__name__)


class EnginioIdentity(QObject):
    """Base class for pluggable credential providers.

    The client calls :meth:`prepare_session_token` whenever it needs a fresh
    session token: when the identity is attached to an initialized client,
    when the client becomes initialized, and after the backend rejected the
    current token.
    """

    def prepare_session_token(self, client: "EnginioClient") -> Optional[EnginioReply]:
        raise NotImplementedError


class PasswordIdentity(EnginioIdentity):
    """Log in with a username and password."""

    def __init__(self, username: str = "", password: str = "", parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._username = username
        self._password = password
        self._reply: Optional[EnginioReply] = None

    def username(self) -> str:
        return self._username

    def set_username(self, username: str) -> None:
        self._username = username

    def set_password(self, password: str) -> None:
        self._password = password

    def prepare_session_token(self, client: "EnginioClient") -> Optional[EnginioReply]:
        if self._reply is not None and not self._reply.is_finished():
            return self._reply

        reply = client.create(
            {"username": self._username, "password": self._password},
            Area.SESSION,
        )
        if reply is None:
            return None
        self._reply = reply
        reply.finished.connect(partial(self._on_login_finished, client))
        return reply

    def _on_login_finished(self, client: "EnginioClient", reply: EnginioReply) -> None:
        data = reply.data if isinstance(reply.data, dict) else {}
        token = data.get(config.SESSION_TOKEN_KEY)
        if reply.is_error() or not token:
            logger.warning("Authentication of %s failed: %s", self._username, reply.error_string())
            client.sessionAuthenticationError.emit(reply)
            return
        client.set_session_token(token)
        logger.info("Authenticated as %s", self._username)
        client.sessionAuthenticated.emit(reply)


__all__ = ["EnginioIdentity", "PasswordIdentity"]
