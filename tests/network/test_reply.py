"""Tests for EnginioReply completion, observers and result decoding."""

import json

import pytest

from enginio.errors import BackendError, PayloadError, TransportError
from enginio.models.objects import JsonObject, ObjectFactoryRegistry
from enginio.network.reply import EnginioReply, ReplyState
from enginio.network.request_builder import RequestDescriptor
from enginio.network.serializer import JsonSerializer
from enginio.network.transport import TransportOutcome


@pytest.fixture
def reply():
    descriptor = RequestDescriptor(method="GET", url="https://api.example.test/v1/objects/todos")
    return EnginioReply(descriptor, ObjectFactoryRegistry(), JsonSerializer())


def _ok(payload, status=200):
    return TransportOutcome(status=status, body=json.dumps(payload).encode())


def test_pending_reply_has_no_result(reply):
    assert reply.state is ReplyState.PENDING
    assert reply.data is None
    assert reply.error is None
    assert reply.finished_at is None


def test_observer_attached_before_finish_is_called_once(reply):
    calls = []
    reply.on_finished(calls.append)

    reply._finish(_ok({"results": []}))
    reply._finish(_ok({"results": []}))

    assert calls == [reply]
    assert reply.is_finished()


def test_observer_attached_after_finish_is_called_immediately(reply):
    reply._finish(_ok({"results": []}))
    calls = []

    reply.on_finished(calls.append)

    assert calls == [reply]


def test_finished_signal_emitted_once(reply):
    emitted = []
    reply.finished.connect(emitted.append)

    reply._finish(_ok({}))
    reply._finish(_ok({}))

    assert emitted == [reply]


def test_success_builds_objects_from_results(reply):
    reply._finish(_ok({"results": [{"objectType": "objects.todos", "id": "1", "title": "a"}]}))

    assert not reply.is_error()
    assert reply.status == 200
    objects = reply.objects
    assert len(objects) == 1
    assert isinstance(objects[0], JsonObject)
    assert objects[0].value("title") == "a"
    assert reply.finished_at is not None


def test_single_object_payload(reply):
    reply._finish(_ok({"objectType": "objects.todos", "id": "9"}, status=201))

    assert [obj.id for obj in reply.objects] == ["9"]


def test_result_is_idempotent(reply):
    reply._finish(_ok({"results": [{"objectType": "objects.todos", "id": "1"}]}))

    assert reply.data == reply.data
    assert [o.id for o in reply.objects] == [o.id for o in reply.objects]
    assert reply.finished_at == reply.finished_at


def test_backend_error_carries_status_and_message(reply):
    body = json.dumps({"errors": [{"message": "Unauthorized", "reason": "BadCredentials"}]})
    reply._finish(TransportOutcome(status=401, body=body.encode()))

    assert reply.is_error()
    assert isinstance(reply.error, BackendError)
    assert reply.error.status == 401
    assert reply.error.reason == "BadCredentials"
    assert reply.backend_status() == 401
    assert reply.error_string() == "Unauthorized"


def test_backend_error_without_body(reply):
    reply._finish(TransportOutcome(status=500, body=b"<html>oops</html>"))

    assert isinstance(reply.error, BackendError)
    assert reply.error.status == 500
    assert reply.error_string() == "HTTP status 500"


def test_transport_error(reply):
    reply._finish(TransportOutcome(transport_error="Host not found", network_error=3))

    assert isinstance(reply.error, TransportError)
    assert reply.error.network_error == 3
    assert reply.status is None


def test_undecodable_success_body(reply):
    reply._finish(TransportOutcome(status=200, body=b"{not json"))

    assert isinstance(reply.error, PayloadError)


def test_abandoned_reply_discards_result(reply):
    calls = []
    emitted = []
    reply.on_finished(calls.append)
    reply.finished.connect(emitted.append)

    reply.abandon()
    delivered = reply._finish(_ok({}))

    assert delivered is False
    assert calls == []
    assert emitted == []
    assert reply.is_finished()


def test_failing_observer_does_not_break_finish(reply):
    def boom(_reply):
        raise RuntimeError("observer failure")

    emitted = []
    reply.finished.connect(emitted.append)
    reply.on_finished(boom)

    assert reply._finish(_ok({})) is True
    assert emitted == [reply]


class _BrokenFactory:
    def create_object_for_type(self, object_type, object_id=None):
        raise RuntimeError("factory exploded")


def test_failing_factory_finishes_with_payload_error(caplog):
    registry = ObjectFactoryRegistry()
    registry.register(_BrokenFactory())
    descriptor = RequestDescriptor(method="GET", url="https://api.example.test/v1/objects/todos")
    reply = EnginioReply(descriptor, registry, JsonSerializer())
    emitted = []
    reply.finished.connect(emitted.append)

    with caplog.at_level("ERROR", logger="enginio.network.reply"):
        assert reply._finish(_ok({"results": [{"objectType": "objects.todos", "id": "1"}]}))

    assert reply.is_finished()
    assert emitted == [reply]
    assert isinstance(reply.error, PayloadError)
    assert "factory exploded" in reply.error_string()
    assert reply.objects == []
    assert reply.data is None
    assert "Building objects" in caplog.text
