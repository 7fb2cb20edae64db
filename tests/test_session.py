"""Tests for Session header snapshots and initialization tracking."""

from PySide6.QtTest import QSignalSpy

from enginio import config
from enginio.session import Session


def test_new_session_is_not_initialized():
    session = Session()

    assert not session.is_initialized()
    assert session.api_url() == config.DEFAULT_API_URL
    assert session.headers()[config.CONTENT_TYPE_HEADER] == "application/json"


def test_api_url_honours_environment_override(monkeypatch):
    monkeypatch.setenv(config.API_URL_ENV_VAR, "https://example.test")

    assert Session().api_url() == "https://example.test"


def test_headers_follow_latest_id_and_secret():
    session = Session()
    session.set_backend_id("first")
    session.set_backend_secret("s1")
    session.set_backend_id("second")

    headers = session.headers()
    assert headers[config.BACKEND_ID_HEADER] == "second"
    assert headers[config.BACKEND_SECRET_HEADER] == "s1"
    assert config.SESSION_TOKEN_HEADER not in headers


def test_old_header_snapshot_is_not_altered():
    session = Session()
    session.set_backend_id("first")
    snapshot = session.headers()

    session.set_backend_id("second")
    session.set_session_token(b"token")

    assert snapshot[config.BACKEND_ID_HEADER] == "first"
    assert config.SESSION_TOKEN_HEADER not in snapshot
    assert session.headers()[config.SESSION_TOKEN_HEADER] == "token"


def test_setting_same_value_is_a_no_op():
    session = Session()
    session.set_backend_id("abc")
    changed = QSignalSpy(session.changed)
    id_changed = QSignalSpy(session.backendIdChanged)

    session.set_backend_id("abc")

    assert changed.count() == 0
    assert id_changed.count() == 0


def test_initialized_fires_once_per_transition():
    session = Session()
    initialized = QSignalSpy(session.initialized)

    session.set_backend_id("id")
    assert initialized.count() == 0
    session.set_backend_secret("secret")
    assert initialized.count() == 1

    # Same values again and a further change while initialized do not re-fire.
    session.set_backend_id("id")
    session.set_backend_secret("secret")
    session.set_backend_id("other-id")
    assert initialized.count() == 1
    assert session.is_initialized()

    # Leaving the initialized state re-arms the notification.
    session.set_backend_secret("")
    assert not session.is_initialized()
    session.set_backend_secret("secret")
    assert initialized.count() == 2


def test_session_token_accepts_text_and_clears():
    session = Session()
    tokens = []
    session.sessionTokenChanged.connect(tokens.append)

    session.set_session_token("abc")
    session.set_session_token(b"abc")
    session.set_session_token(None)

    assert tokens == [b"abc", b""]
    assert session.session_token() == b""
