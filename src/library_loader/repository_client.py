"""
HTTP client for Maven-layout artifact repositories.

Wraps a synchronous httpx client: metadata documents are fetched as text and
artifacts are streamed straight to disk. Requests block with no retry; the
timeout defaults to none so callers impose their own deadline.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx

from .cli_config import NetworkConfig, get_config
from .error_handling import log_credential_error

CREDENTIAL_PATTERN = re.compile(r"^[a-zA-Z0-9_\-+=/.~]+$")
MIN_CREDENTIAL_LENGTH = 8
MAX_CREDENTIAL_LENGTH = 500


def _validate_credential(credential: str, credential_type: str = "token") -> str:
    """
    Validate and sanitize credential inputs.

    Raises:
        ValueError: If credential is invalid or unsafe
    """
    if not credential or not isinstance(credential, str):
        raise ValueError(f"Invalid {credential_type}: must be a non-empty string")

    credential = credential.strip()

    if len(credential) > MAX_CREDENTIAL_LENGTH:
        raise ValueError(
            f"{credential_type} too long: {len(credential)} chars (max: {MAX_CREDENTIAL_LENGTH})"
        )
    if not CREDENTIAL_PATTERN.match(credential):
        raise ValueError(f"Invalid {credential_type}: contains unsafe characters")
    if len(credential) < MIN_CREDENTIAL_LENGTH:
        raise ValueError(
            f"{credential_type} too short (minimum {MIN_CREDENTIAL_LENGTH} characters)"
        )

    return credential


def sanitize_url_for_logging(url: str) -> str:
    """Remove user info from a URL so it can be logged."""
    try:
        parsed = urlparse(url)
        if parsed.username or parsed.password:
            netloc = parsed.hostname or "unknown-host"
            if parsed.port:
                netloc += f":{parsed.port}"
            sanitized = f"{parsed.scheme}://{netloc}{parsed.path}"
            if parsed.query:
                sanitized += f"?{parsed.query}"
            return sanitized
        return url
    except ValueError:
        return "[REDACTED_URL]"


@dataclass(frozen=True)
class RepositoryCredentials:
    """Credentials sent to every repository request."""

    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self):
        if self.token:
            object.__setattr__(self, "token", _validate_credential(self.token, "token"))
        if bool(self.username) != bool(self.password):
            raise ValueError("username and password must be given together")

    def get_auth_headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def get_auth(self) -> Optional[httpx.BasicAuth]:
        if self.username and self.password and not self.token:
            return httpx.BasicAuth(self.username, self.password)
        return None

    @classmethod
    def from_env(cls) -> Optional["RepositoryCredentials"]:
        """
        Load credentials from ``LIBRARY_LOADER_REPO_TOKEN`` or
        ``LIBRARY_LOADER_REPO_USERNAME`` / ``LIBRARY_LOADER_REPO_PASSWORD``.

        Invalid values are reported and ignored.
        """
        token = os.getenv("LIBRARY_LOADER_REPO_TOKEN")
        username = os.getenv("LIBRARY_LOADER_REPO_USERNAME")
        password = os.getenv("LIBRARY_LOADER_REPO_PASSWORD")
        if not (token or username or password):
            return None
        try:
            return cls(token=token, username=username, password=password)
        except ValueError as e:
            log_credential_error(
                "Invalid repository credentials in environment",
                "repository_client",
                "from_env",
                credential_type="environment_variable",
                exception=e,
            )
            return None


class RepositoryClient:
    """
    Synchronous client for a Maven-layout repository.

    The underlying httpx client is created lazily and released by
    :meth:`close` or on context exit.
    """

    def __init__(
        self,
        network_config: Optional[NetworkConfig] = None,
        credentials: Optional[RepositoryCredentials] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.network_config = network_config or get_config().network
        self.credentials = credentials if credentials is not None else RepositoryCredentials.from_env()
        self.transport = transport
        self._client: Optional[httpx.Client] = None

        self._headers = {"User-Agent": self.network_config.user_agent}
        if self.credentials:
            self._headers.update(self.credentials.get_auth_headers())

    def __enter__(self) -> "RepositoryClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            timeout = httpx.Timeout(
                None,
                connect=self.network_config.connect_timeout,
                read=self.network_config.read_timeout,
            )
            self._client = httpx.Client(
                headers=self._headers,
                timeout=timeout,
                follow_redirects=self.network_config.follow_redirects,
                auth=self.credentials.get_auth() if self.credentials else None,
                transport=self.transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def get_text(self, url: str) -> str:
        """
        GET a document and return its body.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx status
        """
        response = self.client.get(url)
        response.raise_for_status()
        return response.text

    def download(self, url: str, destination: Path) -> int:
        """
        Stream ``url`` into ``destination``.

        Returns:
            Number of bytes written

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx status
            OSError: If the destination cannot be written
        """
        written = 0
        with self.client.stream("GET", url) as response:
            response.raise_for_status()
            with open(destination, "wb") as f:
                for chunk in response.iter_bytes(self.network_config.chunk_size):
                    f.write(chunk)
                    written += len(chunk)
        return written
