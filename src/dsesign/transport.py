"""HTTP client selection for credentials.

Every credential owns a ClientProvider.  The provider either wraps an
``httpx.AsyncClient`` supplied by the caller or lazily creates one from an
HTTPClientConfig, so there is no hidden package-level default client.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class HTTPClientConfig(BaseModel):
    """Configuration for the default httpx client."""

    connect_timeout: float = Field(default=10.0, description="Connect timeout in seconds")
    read_timeout: float = Field(default=30.0, description="Read timeout in seconds")
    write_timeout: float = Field(default=30.0, description="Write timeout in seconds")
    pool_timeout: float = Field(default=5.0, description="Pool timeout in seconds")
    max_connections: int = Field(default=10, description="Total connections")
    max_keepalive_connections: int = Field(
        default=5, description="Keepalive connections"
    )
    keepalive_expiry: float = Field(
        default=30.0, description="Keepalive expiry in seconds"
    )
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")
    verify: bool = Field(default=True, description="Verify TLS certificates")

    def create_client(self) -> httpx.AsyncClient:
        """Build an AsyncClient with this configuration."""
        timeouts = httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.write_timeout,
            pool=self.pool_timeout,
        )
        limits = httpx.Limits(
            max_connections=self.max_connections,
            max_keepalive_connections=self.max_keepalive_connections,
            keepalive_expiry=self.keepalive_expiry,
        )
        return httpx.AsyncClient(
            timeout=timeouts,
            limits=limits,
            follow_redirects=self.follow_redirects,
            verify=self.verify,
        )


class ClientProvider:
    """Supplies the httpx client a credential sends requests with."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        config: Optional[HTTPClientConfig] = None,
    ):
        """Initialize provider.

        Args:
            client: Caller-owned client; never closed by the provider
            config: Configuration for a provider-owned client, used when
                client is None
        """
        self._client = client
        self._owned = client is None
        self._config = config or HTTPClientConfig()

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or (self._owned and self._client.is_closed):
            logger.debug("Creating default DocuSign HTTP client")
            self._client = self._config.create_client()
        return self._client

    @property
    def owns_client(self) -> bool:
        return self._owned

    async def aclose(self) -> None:
        """Close the client if this provider created it."""
        if self._owned and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        if self._owned:
            self._client = None
