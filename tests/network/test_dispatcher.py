"""Tests for OperationDispatcher routing and transport binding."""

import pytest

from enginio.models.objects import ObjectFactoryRegistry
from enginio.network.dispatcher import OperationDispatcher
from enginio.network.request_builder import RequestDescriptor


@pytest.fixture
def dispatcher(transport):
    dispatcher = OperationDispatcher(ObjectFactoryRegistry())
    dispatcher.set_transport(transport)
    return dispatcher


def _descriptor():
    return RequestDescriptor(method="GET", url="https://api.example.test/v1/objects/todos")


def test_submit_records_pending_entry(dispatcher, transport):
    reply = dispatcher.dispatch(_descriptor())

    assert len(transport.sent) == 1
    assert reply.handle == transport.last_handle
    assert dispatcher.pending_count() == 1


def test_completion_routed_to_matching_reply(dispatcher, transport):
    first = dispatcher.dispatch(_descriptor())
    second = dispatcher.dispatch(_descriptor())

    transport.respond(second.handle, {"results": []})

    assert second.is_finished()
    assert not first.is_finished()
    assert dispatcher.pending_count() == 1


def test_stale_completion_is_dropped(dispatcher, transport):
    reply = dispatcher.dispatch(_descriptor())
    finished = []
    dispatcher.finished.connect(finished.append)

    transport.respond(reply.handle, {"results": []})
    transport.respond(reply.handle, {"results": [{"id": "late"}]})
    transport.respond(999, {"results": []})

    assert finished == [reply]
    assert reply.objects == []


def test_error_signals(dispatcher, transport):
    errors = []
    unauthorized = []
    dispatcher.error.connect(errors.append)
    dispatcher.unauthorized.connect(unauthorized.append)

    failed = dispatcher.dispatch(_descriptor())
    transport.fail(failed.handle)
    rejected = dispatcher.dispatch(_descriptor())
    transport.respond(rejected.handle, {"message": "no"}, status=401)

    assert errors == [failed, rejected]
    assert unauthorized == [rejected]


def test_abandoned_reply_is_cleaned_up_without_notification(dispatcher, transport):
    reply = dispatcher.dispatch(_descriptor())
    finished = []
    dispatcher.finished.connect(finished.append)

    reply.abandon()
    transport.respond(reply.handle, {})

    assert dispatcher.pending_count() == 0
    assert finished == []


def test_progress_routed_to_reply(dispatcher, transport):
    reply = dispatcher.dispatch(_descriptor())
    progress = []
    reply.progress.connect(lambda done, total: progress.append((done, total)))

    transport.progress.emit(reply.handle, 10, 100)
    transport.progress.emit(12345, 1, 1)

    assert progress == [(10, 100)]


def test_replacing_transport_unbinds_previous(dispatcher, transport, transport_cls):
    reply = dispatcher.dispatch(_descriptor())
    replacement = transport_cls()

    dispatcher.set_transport(replacement)
    transport.respond(reply.handle, {})

    assert not reply.is_finished()
    assert transport.closed is False


def test_owned_transport_is_closed_on_replacement(transport_cls):
    dispatcher = OperationDispatcher(ObjectFactoryRegistry())
    owned = transport_cls()
    dispatcher.set_transport(owned, owned=True)

    dispatcher.set_transport(transport_cls())

    assert owned.closed is True


def test_default_transport_created_lazily(transport_cls):
    created = []

    def factory():
        created.append(transport_cls())
        return created[-1]

    dispatcher = OperationDispatcher(ObjectFactoryRegistry(), transport_factory=factory)
    assert not dispatcher.has_transport()

    dispatcher.dispatch(_descriptor())

    assert len(created) == 1
    assert dispatcher.owns_transport()
    assert dispatcher.transport() is created[0]
    assert len(created) == 1


def test_ssl_policy_forwarded_to_transport(dispatcher, transport, caplog):
    assert transport.ignore_ssl_errors is False

    dispatcher.set_ignore_ssl_errors(True)

    assert transport.ignore_ssl_errors is True
    assert "SSL errors will be ignored" in caplog.text


def test_failing_factory_still_completes_reply(transport):
    class BrokenFactory:
        def create_object_for_type(self, object_type, object_id=None):
            raise RuntimeError("boom")

    registry = ObjectFactoryRegistry()
    registry.register(BrokenFactory())
    dispatcher = OperationDispatcher(registry)
    dispatcher.set_transport(transport)
    errors = []
    dispatcher.error.connect(errors.append)

    reply = dispatcher.dispatch(_descriptor())
    transport.respond(payload={"results": [{"objectType": "objects.todos", "id": "1"}]})

    assert reply.is_finished()
    assert reply.is_error()
    assert errors == [reply]
    assert dispatcher.pending_count() == 0
