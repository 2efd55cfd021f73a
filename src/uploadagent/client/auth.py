"""API key authentication for the document server.

This module provides:
- Credentials: API key, secret and organization of this agent
- sign_request / create_auth_headers: HMAC-SHA256 request signing
- CredentialStore: Credential persistence (secret kept in the OS keyring)

Every authenticated request carries four headers:
    X-API-Key:         the API key identifier
    X-Timestamp:       ISO-8601 UTC timestamp of the request
    X-Signature:       hex HMAC-SHA256 over "METHOD\\nPATH\\nTIMESTAMP\\nBODY"
    X-Organization-Id: the organization the key belongs to
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"
KEYRING_SERVICE = "uploadagent"


class CredentialsError(Exception):
    """Exception raised for missing or unusable credentials."""


@dataclass
class Credentials:
    """Credentials used to sign requests to the document server.

    Attributes:
        api_key: Public API key identifier.
        api_secret: Shared secret used as the HMAC key.
        organization_id: Organization the API key belongs to.
        server_url: Base URL of the document server.
    """

    api_key: str
    api_secret: str
    organization_id: str
    server_url: str

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    def __repr__(self) -> str:
        """Representation without the secret."""
        return (
            f"Credentials(api_key={self.api_key!r}, "
            f"organization_id={self.organization_id!r}, "
            f"server_url={self.server_url!r})"
        )


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision (e.g. 2025-01-01T10:00:00.000Z)."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sign_request(
    secret: str,
    method: str,
    path: str,
    timestamp: str,
    body: str = "",
) -> str:
    """Compute the HMAC-SHA256 signature of a request.

    Args:
        secret: API secret used as the HMAC key.
        method: HTTP method (upper-cased before signing).
        path: Request path, without scheme and host.
        timestamp: Value sent in the X-Timestamp header.
        body: Exact request body sent on the wire ("" when there is none).

    Returns:
        Lowercase hex signature.
    """
    payload = "\n".join([method.upper(), path, timestamp, body])
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def create_auth_headers(
    credentials: Credentials,
    method: str,
    path: str,
    body: str = "",
    timestamp: str | None = None,
) -> dict[str, str]:
    """Create the authenticated header set for one request.

    Args:
        credentials: Credentials of this agent.
        method: HTTP method.
        path: Request path.
        body: Exact request body.
        timestamp: Override for the request timestamp (defaults to now).

    Returns:
        Headers to merge into the request.
    """
    timestamp = timestamp or utc_timestamp()
    return {
        "X-API-Key": credentials.api_key,
        "X-Timestamp": timestamp,
        "X-Signature": sign_request(credentials.api_secret, method, path, timestamp, body),
        "X-Organization-Id": credentials.organization_id,
    }


class CredentialStore:
    """Persists credentials across runs.

    Non-secret fields live in config.json inside the config directory.
    The API secret is stored in the OS keyring, keyed by API key.
    """

    def __init__(self, config_dir: Path) -> None:
        """Initialize the store.

        Args:
            config_dir: Directory holding config.json.
        """
        self._config_dir = Path(config_dir)
        self._cached: Credentials | None = None

    @property
    def config_file(self) -> Path:
        """Path to the config file."""
        return self._config_dir / CONFIG_FILE_NAME

    def _read_config(self) -> dict[str, str]:
        if not self.config_file.exists():
            return {}
        try:
            return dict(json.loads(self.config_file.read_text(encoding="utf-8")))
        except json.JSONDecodeError as e:
            raise CredentialsError(f"Corrupted config file {self.config_file}: {e}") from e

    def _write_config(self, config: dict[str, str]) -> None:
        self._config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")

    def save(self, credentials: Credentials) -> None:
        """Save credentials.

        Raises:
            CredentialsError: If the OS keyring rejects the secret.
        """
        try:
            keyring.set_password(KEYRING_SERVICE, credentials.api_key, credentials.api_secret)
        except KeyringError as e:
            raise CredentialsError(f"Unable to store API secret in keyring: {e}") from e

        config = self._read_config()
        config.update(
            {
                "server_url": credentials.server_url,
                "api_key": credentials.api_key,
                "organization_id": credentials.organization_id,
                "saved_at": utc_timestamp(),
            }
        )
        self._write_config(config)
        self._cached = credentials
        logger.info("Saved credentials for API key %s", credentials.api_key)

    def load(self) -> Credentials | None:
        """Load stored credentials.

        Returns:
            Credentials, or None if nothing (or no secret) is stored.
        """
        if self._cached is not None:
            return self._cached

        config = self._read_config()
        api_key = config.get("api_key")
        if not api_key or not config.get("server_url"):
            return None

        try:
            secret = keyring.get_password(KEYRING_SERVICE, api_key)
        except KeyringError as e:
            logger.warning("Unable to read API secret from keyring: %s", e)
            return None
        if secret is None:
            logger.warning("No API secret in keyring for API key %s", api_key)
            return None

        self._cached = Credentials(
            api_key=api_key,
            api_secret=secret,
            organization_id=config.get("organization_id", ""),
            server_url=config["server_url"],
        )
        return self._cached

    def require(self) -> Credentials:
        """Load credentials or raise.

        Raises:
            CredentialsError: If no credentials are stored.
        """
        credentials = self.load()
        if credentials is None:
            raise CredentialsError("No credentials available. Run 'uploadagent login' first.")
        return credentials

    def has_credentials(self) -> bool:
        """Check if credentials are stored (without touching the keyring)."""
        config = self._read_config()
        return bool(config.get("api_key") and config.get("server_url"))

    def clear(self) -> None:
        """Remove stored credentials."""
        config = self._read_config()
        api_key = config.pop("api_key", None)
        for key in ("server_url", "organization_id", "saved_at"):
            config.pop(key, None)
        self._write_config(config)
        self._cached = None

        if api_key:
            try:
                keyring.delete_password(KEYRING_SERVICE, api_key)
            except PasswordDeleteError:
                logger.debug("No keyring entry to delete for %s", api_key)
