"""Tests for identity providers and session token handling."""

from enginio import EnginioClient, PasswordIdentity, config
from enginio.network.request_builder import Area


def test_identity_logs_in_when_set_on_initialized_client(client, transport):
    authenticated = []
    client.sessionAuthenticated.connect(authenticated.append)

    client.set_identity(PasswordIdentity("alice", "secret"))

    request = transport.last_request
    assert request.area is Area.SESSION
    assert request.url.endswith("/v1/auth/identity")

    transport.respond(payload={"sessionToken": "tok-1", "user": {"id": "u1"}})

    assert client.session_token() == b"tok-1"
    assert len(authenticated) == 1

    client.query({"objectType": "objects.todos"})
    assert transport.last_request.headers[config.SESSION_TOKEN_HEADER] == "tok-1"


def test_identity_waits_for_initialization(transport):
    client = EnginioClient(transport=transport)
    client.set_identity(PasswordIdentity("alice", "secret"))
    assert transport.sent == []

    client.set_backend_id("id")
    client.set_backend_secret("secret")

    assert len(transport.sent) == 1
    assert transport.last_request.area is Area.SESSION


def test_failed_login_reports_error(client, transport):
    failures = []
    client.sessionAuthenticationError.connect(failures.append)

    client.set_identity(PasswordIdentity("alice", "wrong"))
    transport.respond(payload={"errors": [{"message": "bad credentials"}]}, status=401)

    assert len(failures) == 1
    assert client.session_token() == b""
    # The rejected login itself does not trigger another attempt.
    assert len(transport.sent) == 1


def test_rejected_token_is_refreshed(client, transport):
    terminated = []
    client.sessionTerminated.connect(lambda: terminated.append(True))
    client.set_identity(PasswordIdentity("alice", "secret"))
    transport.respond(payload={"sessionToken": "old"})

    client.query({"objectType": "objects.todos"})
    transport.respond(payload={"message": "expired"}, status=401)

    assert terminated == [True]
    assert client.session_token() == b""
    assert transport.last_request.area is Area.SESSION

    transport.respond(payload={"sessionToken": "new"})
    assert client.session_token() == b"new"


def test_removing_identity_terminates_session(client, transport):
    terminated = []
    client.sessionTerminated.connect(lambda: terminated.append(True))
    client.set_identity(PasswordIdentity("alice", "secret"))
    transport.respond(payload={"sessionToken": "tok"})

    client.set_identity(None)

    assert terminated == [True]
    assert client.session_token() == b""
