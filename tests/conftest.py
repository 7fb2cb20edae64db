import itertools
import json
import os

import pytest
from PySide6.QtCore import QCoreApplication, QObject, Signal

from enginio import EnginioClient
from enginio.network.transport import TransportOutcome

# Headless test runs never need a display server.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


class FakeTransport(QObject):
    """In-memory transport recording every request and completing on demand."""

    finished = Signal(object, object)
    progress = Signal(object, object, object)

    def __init__(self):
        super().__init__()
        self.sent = []
        self.closed = False
        self.ignore_ssl_errors = False
        self._handles = itertools.count(1)

    def send(self, descriptor):
        handle = next(self._handles)
        self.sent.append((handle, descriptor))
        return handle

    def set_ignore_ssl_errors(self, ignore):
        self.ignore_ssl_errors = ignore

    def close(self):
        self.closed = True

    @property
    def last_handle(self):
        return self.sent[-1][0]

    @property
    def last_request(self):
        return self.sent[-1][1]

    def respond(self, handle=None, payload=None, status=200, body=None):
        if handle is None:
            handle = self.last_handle
        if body is None:
            body = json.dumps(payload).encode("utf-8") if payload is not None else b""
        self.finished.emit(handle, TransportOutcome(status=status, body=body))

    def fail(self, handle=None, message="Connection refused", network_error=1):
        if handle is None:
            handle = self.last_handle
        self.finished.emit(
            handle, TransportOutcome(transport_error=message, network_error=network_error)
        )


@pytest.fixture(scope="session")
def qapp_cls():
    return QCoreApplication


@pytest.fixture(autouse=True)
def _qt_application(qapp):
    return qapp


@pytest.fixture
def transport_cls():
    return FakeTransport


@pytest.fixture
def transport(transport_cls):
    return transport_cls()


@pytest.fixture
def client(transport):
    return EnginioClient("backend-id", "backend-secret", transport=transport)
