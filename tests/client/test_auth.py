"""Tests for request signing and credential storage."""

from __future__ import annotations

import hashlib
import hmac
import json
import re
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from uploadagent.client.auth import (
    KEYRING_SERVICE,
    Credentials,
    CredentialsError,
    CredentialStore,
    create_auth_headers,
    sign_request,
    utc_timestamp,
)


def make_credentials(server_url: str = "http://test") -> Credentials:
    """Create Credentials for testing."""
    return Credentials(
        api_key="key-123",
        api_secret="s3cret",
        organization_id="org-1",
        server_url=server_url,
    )


@pytest.fixture
def fake_keyring() -> Iterator[MagicMock]:
    """Patch keyring with an in-memory password store."""
    passwords: dict[tuple[str, str], str] = {}

    def set_password(service: str, user: str, secret: str) -> None:
        passwords[(service, user)] = secret

    def get_password(service: str, user: str) -> str | None:
        return passwords.get((service, user))

    def delete_password(service: str, user: str) -> None:
        if (service, user) not in passwords:
            raise PasswordDeleteError("not found")
        del passwords[(service, user)]

    with patch("uploadagent.client.auth.keyring") as mock_keyring:
        mock_keyring.set_password.side_effect = set_password
        mock_keyring.get_password.side_effect = get_password
        mock_keyring.delete_password.side_effect = delete_password
        mock_keyring.passwords = passwords
        yield mock_keyring


class TestCredentials:
    """Tests for Credentials dataclass."""

    def test_trailing_slash_removed(self) -> None:
        """Should strip trailing slash from server URL."""
        assert make_credentials("http://test/").server_url == "http://test"

    def test_repr_hides_secret(self) -> None:
        """The secret must not appear in the representation."""
        assert "s3cret" not in repr(make_credentials())


class TestSignRequest:
    """Tests for HMAC request signing."""

    def test_signature_payload(self) -> None:
        """Should sign METHOD, PATH, TIMESTAMP and BODY joined by newlines."""
        timestamp = "2025-01-01T10:00:00.000Z"
        body = '{"name":"a.pdf"}'
        expected = hmac.new(
            b"s3cret",
            f"POST\n/api/documents\n{timestamp}\n{body}".encode(),
            hashlib.sha256,
        ).hexdigest()

        assert sign_request("s3cret", "POST", "/api/documents", timestamp, body) == expected

    def test_method_upper_cased(self) -> None:
        """Lower-case methods should produce the same signature."""
        timestamp = "2025-01-01T10:00:00.000Z"
        assert sign_request("k", "get", "/x", timestamp) == sign_request("k", "GET", "/x", timestamp)

    def test_body_changes_signature(self) -> None:
        """Different bodies must produce different signatures."""
        timestamp = "2025-01-01T10:00:00.000Z"
        assert sign_request("k", "POST", "/x", timestamp, "a") != sign_request(
            "k", "POST", "/x", timestamp, "b"
        )


class TestCreateAuthHeaders:
    """Tests for create_auth_headers."""

    def test_headers(self) -> None:
        """Should include key, timestamp, signature and organization."""
        creds = make_credentials()
        headers = create_auth_headers(
            creds, "POST", "/api/documents", "{}", timestamp="2025-01-01T10:00:00.000Z"
        )

        assert headers["X-API-Key"] == "key-123"
        assert headers["X-Timestamp"] == "2025-01-01T10:00:00.000Z"
        assert headers["X-Organization-Id"] == "org-1"
        assert headers["X-Signature"] == sign_request(
            "s3cret", "POST", "/api/documents", "2025-01-01T10:00:00.000Z", "{}"
        )

    def test_timestamp_format(self) -> None:
        """Timestamps are UTC ISO-8601 with milliseconds and a Z suffix."""
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", utc_timestamp())


class TestCredentialStore:
    """Tests for CredentialStore."""

    def test_save_and_load(self, tmp_path: Path, fake_keyring: MagicMock) -> None:
        """Saved credentials should load back, secret from keyring."""
        CredentialStore(tmp_path).save(make_credentials())

        loaded = CredentialStore(tmp_path).load()

        assert loaded == make_credentials()
        assert fake_keyring.passwords[(KEYRING_SERVICE, "key-123")] == "s3cret"

    def test_secret_not_written_to_config(self, tmp_path: Path, fake_keyring: MagicMock) -> None:
        """The config file must not contain the secret."""
        store = CredentialStore(tmp_path)
        store.save(make_credentials())

        config = json.loads(store.config_file.read_text())
        assert config["api_key"] == "key-123"
        assert config["organization_id"] == "org-1"
        assert "s3cret" not in store.config_file.read_text()

    def test_load_without_config(self, tmp_path: Path, fake_keyring: MagicMock) -> None:
        """Should return None when nothing is stored."""
        store = CredentialStore(tmp_path)
        assert store.load() is None
        assert store.has_credentials() is False

    def test_load_without_secret(self, tmp_path: Path, fake_keyring: MagicMock) -> None:
        """Should return None when the keyring lost the secret."""
        CredentialStore(tmp_path).save(make_credentials())
        fake_keyring.passwords.clear()

        assert CredentialStore(tmp_path).load() is None

    def test_require_raises(self, tmp_path: Path, fake_keyring: MagicMock) -> None:
        """require() should raise CredentialsError without credentials."""
        with pytest.raises(CredentialsError):
            CredentialStore(tmp_path).require()

    def test_save_keyring_failure(self, tmp_path: Path, fake_keyring: MagicMock) -> None:
        """Keyring errors should surface as CredentialsError."""
        fake_keyring.set_password.side_effect = KeyringError("locked")

        with pytest.raises(CredentialsError):
            CredentialStore(tmp_path).save(make_credentials())

    def test_clear(self, tmp_path: Path, fake_keyring: MagicMock) -> None:
        """clear() should remove config fields and the keyring entry."""
        store = CredentialStore(tmp_path)
        store.save(make_credentials())

        store.clear()

        assert store.has_credentials() is False
        assert store.load() is None
        assert fake_keyring.passwords == {}

    def test_clear_twice(self, tmp_path: Path, fake_keyring: MagicMock) -> None:
        """Clearing without a keyring entry should not raise."""
        store = CredentialStore(tmp_path)
        store.save(make_credentials())
        fake_keyring.passwords.clear()

        store.clear()

        assert store.has_credentials() is False

    def test_corrupted_config(self, tmp_path: Path, fake_keyring: MagicMock) -> None:
        """A corrupted config file should raise CredentialsError."""
        (tmp_path / "config.json").write_text("{not json")

        with pytest.raises(CredentialsError):
            CredentialStore(tmp_path).load()
