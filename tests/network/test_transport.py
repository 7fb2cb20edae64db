"""Tests for the QNetworkAccessManager transport adapter."""

from types import MappingProxyType

from PySide6.QtCore import QByteArray
from PySide6.QtNetwork import QNetworkAccessManager

from enginio.network.request_builder import RequestDescriptor
from enginio.network.transport import QtNetworkTransport, TransportOutcome, to_qt_request


def test_outcome_success_range():
    assert TransportOutcome(status=200).is_success
    assert TransportOutcome(status=204).is_success
    assert not TransportOutcome(status=401).is_success
    assert not TransportOutcome(transport_error="timeout").is_success


def test_qt_request_carries_descriptor_headers():
    descriptor = RequestDescriptor(
        method="GET",
        url="https://api.example.test/v1/objects/todos?limit=1",
        headers=MappingProxyType({"Enginio-Backend-Id": "bid", "Content-Type": "application/json"}),
    )

    request = to_qt_request(descriptor)

    assert request.url().toString() == descriptor.url
    assert request.rawHeader(QByteArray(b"Enginio-Backend-Id")).data() == b"bid"
    assert request.rawHeader(QByteArray(b"Content-Type")).data() == b"application/json"


def test_transport_uses_given_manager_and_ssl_flag():
    manager = QNetworkAccessManager()
    transport = QtNetworkTransport(manager)

    assert transport.manager() is manager
    transport.set_ignore_ssl_errors(True)
    assert transport._ignore_ssl_errors is True

    transport.close()
