"""API version descriptors and URL resolution.

DocuSign serves several API families from the same account base URI.  Each
family is described by a prefix (``restapi``, ``clickapi``), a version
segment and whether calls are scoped to an account id.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from .errors import ConfigurationError


@dataclass(frozen=True)
class APIVersion:
    """Describes how a relative operation path becomes a full URL."""

    prefix: str = "restapi"
    version: str = "v2"
    account_id_in_path: bool = True
    # Default host for the family when the credential supplies none
    host: Optional[str] = None
    # Host used for sandbox (demo) credentials
    demo_host: Optional[str] = None

    def select_host(
        self,
        host: Optional[str],
        is_demo: bool,
        host_override: Optional[str] = None,
    ) -> str:
        """Pick the request host.

        Priority: explicit override, demo host, credential base URI host,
        the version's own default host.

        Raises:
            ConfigurationError: If no host can be determined
        """
        if host_override:
            return host_override
        if is_demo and self.demo_host:
            return self.demo_host
        if host:
            return host
        if self.host:
            return self.host
        raise ConfigurationError(
            f"no host available to resolve {self.prefix}/{self.version} call"
        )

    def resolve_path(self, path: str, account_id: str) -> str:
        """Complete a relative path with the prefix, version and account id.

        A path beginning with ``/`` only receives the prefix.
        """
        if path.startswith("/"):
            return f"/{self.prefix}{path}"
        if self.account_id_in_path:
            return f"/{self.prefix}/{self.version}/accounts/{account_id}/{path}"
        return f"/{self.prefix}/{self.version}/{path}"

    def resolve_url(
        self,
        path_and_query: str,
        *,
        host: Optional[str],
        account_id: str,
        is_demo: bool = False,
        host_override: Optional[str] = None,
    ) -> httpx.URL:
        """Resolve an operation path (optionally with a query) to an https URL.

        Args:
            path_and_query: Operation path, may include ``?query``
            host: Host taken from the credential's account base URI
            account_id: Account id injected into relative paths
            is_demo: Whether the credential targets the sandbox
            host_override: Explicit host that wins over everything else

        Returns:
            Absolute URL
        """
        path, sep, query = path_and_query.partition("?")
        selected = self.select_host(host, is_demo, host_override)
        return httpx.URL(
            f"https://{selected}{self.resolve_path(path, account_id)}{sep}{query}"
        )


VERSION_V2 = APIVersion(prefix="restapi", version="v2")
VERSION_V21 = APIVersion(prefix="restapi", version="v2.1")
CLICK_V1 = APIVersion(prefix="clickapi", version="v1")
