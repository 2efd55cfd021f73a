"""HTTP client for the document server API.

This module provides:
- DocumentClient: HTTP client for the three upload operations
- CreatedDocument: Result of the register phase
- NetworkError and subclasses: Errors raised for failed requests

Upload protocol (per file):
    1. POST /api/documents                 -> document id + pre-signed upload target
    2. POST <uploadUrl> (multipart)        -> file content, unauthenticated
    3. POST /api/documents/{id}/confirm    -> server acknowledges receipt
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx

from uploadagent.client.auth import Credentials, create_auth_headers
from uploadagent.core.config import ServerConfig

logger = logging.getLogger(__name__)


class NetworkError(Exception):
    """Base exception for failed requests (transport errors and non-2xx responses)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(NetworkError):
    """Authentication failed (invalid key, signature or clock skew)."""


class NotFoundError(NetworkError):
    """Resource not found."""


@dataclass
class CreatedDocument:
    """Remote document created by the register phase.

    Attributes:
        document_id: Identifier of the remote document record.
        upload_url: Pre-signed URL receiving the file content.
        upload_fields: Extra form fields to send with the file.
    """

    document_id: str
    upload_url: str
    upload_fields: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CreatedDocument:
        """Create from API response dictionary."""
        try:
            document_id = str(data["document"]["id"])
            upload_url = data["uploadUrl"]
        except (KeyError, TypeError) as e:
            raise NetworkError(f"Malformed create document response: missing {e}") from e
        fields = data.get("uploadFields") or {}
        return cls(
            document_id=document_id,
            upload_url=upload_url,
            upload_fields={str(k): str(v) for k, v in fields.items()},
        )


class DocumentClient:
    """HTTP client for the document server API."""

    def __init__(
        self,
        credentials: Credentials,
        config: ServerConfig | None = None,
    ) -> None:
        """Initialize the document client.

        Args:
            credentials: Credentials used to sign requests.
            config: Connection settings (defaults derived from credentials).
        """
        self._credentials = credentials
        self._config = config or ServerConfig(server_url=credentials.server_url)
        self._client = httpx.Client(
            base_url=self._config.server_url,
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
        )

    @property
    def server_url(self) -> str:
        """Base URL of the server."""
        return self._config.server_url

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> DocumentClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response, action: str) -> httpx.Response:
        """Raise the appropriate exception for non-2xx responses."""
        if response.is_success:
            return response

        detail = _error_detail(response)
        message = f"{action} failed ({response.status_code}): {detail}"
        if response.status_code in (401, 403):
            raise AuthenticationError(message, response.status_code)
        if response.status_code == 404:
            raise NotFoundError(message, response.status_code)
        raise NetworkError(message, response.status_code)

    def _signed_post(self, path: str, action: str, body: str = "") -> httpx.Response:
        """Send an authenticated POST with an exact JSON body."""
        headers = create_auth_headers(self._credentials, "POST", path, body)
        headers["Content-Type"] = "application/json"
        try:
            response = self._client.post(path, content=body.encode("utf-8"), headers=headers)
        except httpx.RequestError as e:
            raise NetworkError(f"{action} failed: {e}") from e
        return self._handle_response(response, action)

    # === Health / credentials ===

    def health_check(self) -> bool:
        """Check if the server is reachable and healthy."""
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    def validate_credentials(self) -> bool:
        """Check that the stored credentials are accepted by the server."""
        path = "/api/auth/validate"
        headers = create_auth_headers(self._credentials, "GET", path)
        headers["Content-Type"] = "application/json"
        try:
            response = self._client.get(path, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"Credential validation failed: {e}")
            return False
        return response.is_success

    # === Upload protocol ===

    def create_document(
        self,
        name: str,
        mime_type: str,
        size_bytes: int,
        checksum: str,
        folder_id: str | None = None,
    ) -> CreatedDocument:
        """Register a new document and obtain its upload target.

        Args:
            name: File name.
            mime_type: Content type of the file.
            size_bytes: File size in bytes.
            checksum: SHA-256 of the file content.
            folder_id: Optional target folder.

        Returns:
            CreatedDocument with the remote id and upload target.
        """
        payload: dict[str, Any] = {
            "name": name,
            "mimeType": mime_type,
            "sizeBytes": size_bytes,
            "checksum": checksum,
        }
        if folder_id is not None:
            payload["folderId"] = folder_id

        body = json.dumps(payload, separators=(",", ":"))
        response = self._signed_post("/api/documents", "Create document", body)
        return CreatedDocument.from_dict(response.json())

    def transfer(
        self,
        upload_url: str,
        content: Iterable[bytes],
        content_type: str,
        content_length: int,
    ) -> None:
        """Send the file body to the pre-signed upload URL.

        The request is not signed: authorization is embedded in the
        upload URL and form fields.

        Args:
            upload_url: Absolute pre-signed URL.
            content: Body chunks (consumed once).
            content_type: Content-Type header, including the multipart boundary.
            content_length: Exact body length in bytes.
        """
        headers = {
            "Content-Type": content_type,
            "Content-Length": str(content_length),
        }
        try:
            response = self._client.post(upload_url, content=content, headers=headers)
        except httpx.RequestError as e:
            raise NetworkError(f"Upload transfer failed: {e}") from e
        self._handle_response(response, "Upload transfer")

    def confirm_upload(self, document_id: str) -> None:
        """Tell the server the file content has been transferred.

        Args:
            document_id: Remote document id returned by create_document.
        """
        self._signed_post(f"/api/documents/{document_id}/confirm", "Confirm upload")


def _error_detail(response: httpx.Response) -> str:
    """Extract a human readable error from a response body."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(data, dict):
        for key in ("detail", "message", "error"):
            if data.get(key):
                return str(data[key])
    return response.text.strip() or response.reason_phrase
