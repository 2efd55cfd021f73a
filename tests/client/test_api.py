"""Tests for the document server HTTP client."""

from __future__ import annotations

import json

import httpx
import pytest

from uploadagent.client.api import (
    AuthenticationError,
    CreatedDocument,
    DocumentClient,
    NetworkError,
    NotFoundError,
)
from uploadagent.client.auth import Credentials, sign_request


def make_credentials(server_url: str = "http://test") -> Credentials:
    """Create Credentials for testing."""
    return Credentials(
        api_key="key-123",
        api_secret="s3cret",
        organization_id="org-1",
        server_url=server_url,
    )


CREATE_RESPONSE = {
    "document": {"id": "doc-1"},
    "uploadUrl": "http://storage.test/bucket",
    "uploadFields": {"key": "org-1/doc-1", "policy": "abc"},
}


class TestCreatedDocument:
    """Tests for CreatedDocument parsing."""

    def test_from_dict(self) -> None:
        """Should parse id, upload URL and fields."""
        doc = CreatedDocument.from_dict(CREATE_RESPONSE)

        assert doc.document_id == "doc-1"
        assert doc.upload_url == "http://storage.test/bucket"
        assert doc.upload_fields == {"key": "org-1/doc-1", "policy": "abc"}

    def test_missing_fields_default_empty(self) -> None:
        """uploadFields is optional."""
        doc = CreatedDocument.from_dict({"document": {"id": 7}, "uploadUrl": "http://u"})

        assert doc.document_id == "7"
        assert doc.upload_fields == {}

    def test_malformed(self) -> None:
        """A response without document id should raise NetworkError."""
        with pytest.raises(NetworkError):
            CreatedDocument.from_dict({"uploadUrl": "http://u"})


class TestDocumentClient:
    """Tests for DocumentClient."""

    def test_health_check_success(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return True when server is healthy."""
        httpx_mock.add_response(url="http://test/health", json={"status": "ok"})

        with DocumentClient(make_credentials()) as client:
            assert client.health_check() is True

    def test_health_check_failure(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return False when server is down."""
        httpx_mock.add_response(url="http://test/health", status_code=500)

        with DocumentClient(make_credentials()) as client:
            assert client.health_check() is False

    def test_create_document(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should POST compact JSON with signed headers."""
        httpx_mock.add_response(
            url="http://test/api/documents", method="POST", json=CREATE_RESPONSE
        )

        with DocumentClient(make_credentials()) as client:
            doc = client.create_document(
                name="scan.pdf",
                mime_type="application/pdf",
                size_bytes=1024,
                checksum="abc",
                folder_id="folder-9",
            )

        assert doc.document_id == "doc-1"
        request = httpx_mock.get_request()
        body = request.read().decode()
        assert body == (
            '{"name":"scan.pdf","mimeType":"application/pdf",'
            '"sizeBytes":1024,"checksum":"abc","folderId":"folder-9"}'
        )
        assert request.headers["X-API-Key"] == "key-123"
        assert request.headers["X-Organization-Id"] == "org-1"
        assert request.headers["X-Signature"] == sign_request(
            "s3cret", "POST", "/api/documents", request.headers["X-Timestamp"], body
        )

    def test_create_document_without_folder(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """folderId should be omitted when no folder is given."""
        httpx_mock.add_response(
            url="http://test/api/documents", method="POST", json=CREATE_RESPONSE
        )

        with DocumentClient(make_credentials()) as client:
            client.create_document("a.txt", "text/plain", 3, "abc")

        payload = json.loads(httpx_mock.get_request().read())
        assert "folderId" not in payload

    def test_create_document_auth_error(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """401 should raise AuthenticationError with the status code."""
        httpx_mock.add_response(
            url="http://test/api/documents",
            method="POST",
            status_code=401,
            json={"message": "Invalid signature"},
        )

        with DocumentClient(make_credentials()) as client:
            with pytest.raises(AuthenticationError) as exc_info:
                client.create_document("a.txt", "text/plain", 3, "abc")

        assert exc_info.value.status_code == 401
        assert "Invalid signature" in str(exc_info.value)

    def test_create_document_server_error(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """5xx should raise NetworkError."""
        httpx_mock.add_response(
            url="http://test/api/documents", method="POST", status_code=503, text="down"
        )

        with DocumentClient(make_credentials()) as client:
            with pytest.raises(NetworkError) as exc_info:
                client.create_document("a.txt", "text/plain", 3, "abc")

        assert exc_info.value.status_code == 503

    def test_transport_error(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Connection failures should raise NetworkError without status code."""
        httpx_mock.add_exception(httpx.ConnectError("refused"))

        with DocumentClient(make_credentials()) as client:
            with pytest.raises(NetworkError) as exc_info:
                client.create_document("a.txt", "text/plain", 3, "abc")

        assert exc_info.value.status_code is None

    def test_transfer(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should POST the streamed body unsigned with explicit length."""
        httpx_mock.add_response(url="http://storage.test/bucket", method="POST", status_code=204)

        with DocumentClient(make_credentials()) as client:
            client.transfer(
                "http://storage.test/bucket",
                [b"abc", b"def"],
                content_type="multipart/form-data; boundary=xyz",
                content_length=6,
            )

        request = httpx_mock.get_request()
        assert request.read() == b"abcdef"
        assert request.headers["Content-Type"] == "multipart/form-data; boundary=xyz"
        assert request.headers["Content-Length"] == "6"
        assert "X-Signature" not in request.headers

    def test_transfer_rejected(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Non-2xx from the upload target should raise NetworkError."""
        httpx_mock.add_response(url="http://storage.test/bucket", method="POST", status_code=400)

        with DocumentClient(make_credentials()) as client:
            with pytest.raises(NetworkError):
                client.transfer("http://storage.test/bucket", [b"x"], "text/plain", 1)

    def test_confirm_upload(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should POST to the confirm endpoint."""
        httpx_mock.add_response(
            url="http://test/api/documents/doc-1/confirm", method="POST", json={"ok": True}
        )

        with DocumentClient(make_credentials()) as client:
            client.confirm_upload("doc-1")

        assert httpx_mock.get_request().headers["X-API-Key"] == "key-123"

    def test_confirm_upload_not_found(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """404 should raise NotFoundError."""
        httpx_mock.add_response(
            url="http://test/api/documents/doc-1/confirm", method="POST", status_code=404
        )

        with DocumentClient(make_credentials()) as client:
            with pytest.raises(NotFoundError):
                client.confirm_upload("doc-1")

    def test_validate_credentials(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return True when the server accepts the key."""
        httpx_mock.add_response(url="http://test/api/auth/validate", method="GET", json={})

        with DocumentClient(make_credentials()) as client:
            assert client.validate_credentials() is True

    def test_validate_credentials_rejected(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return False when the server rejects the key."""
        httpx_mock.add_response(
            url="http://test/api/auth/validate", method="GET", status_code=401
        )

        with DocumentClient(make_credentials()) as client:
            assert client.validate_credentials() is False
