"""OAuth2 authorization code grant and the refreshing OAuth2Credential.

Implements DocuSign's authorization code flow:
https://developers.docusign.com/platform/auth/authcode/

The OAuth2Credential also backs JWT and fixed-token credentials; they differ
only in how (or whether) a new token is obtained.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

import httpx
from pydantic import BaseModel, Field, ValidationError

from .api_version import VERSION_V2, APIVersion
from .credential import Credential, send_request
from .errors import (
    ConfigurationError,
    CredentialFailedError,
    ResponseDecodeError,
    ResponseError,
)
from .op import CallRequest, Op
from .response import SUCCESS_STATUSES, check_response_status
from .token import DEFAULT_EXPIRY_DELTA, Token, token_from_response
from .transport import ClientProvider, HTTPClientConfig
from .userinfo import UserInfo
from .values import Values

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoints:
    """DocuSign account server endpoints."""

    auth_url: str
    token_url: str
    userinfo_url: str
    revoke_url: str

    @property
    def host(self) -> str:
        """Host of the token endpoint, used as the JWT audience."""
        return urlsplit(self.token_url).netloc


PRODUCTION_ENDPOINTS = Endpoints(
    auth_url="https://account.docusign.com/oauth/auth",
    token_url="https://account.docusign.com/oauth/token",
    userinfo_url="https://account.docusign.com/oauth/userinfo",
    revoke_url="https://account.docusign.com/oauth/revoke",
)

DEMO_ENDPOINTS = Endpoints(
    auth_url="https://account-d.docusign.com/oauth/auth",
    token_url="https://account-d.docusign.com/oauth/token",
    userinfo_url="https://account-d.docusign.com/oauth/userinfo",
    revoke_url="https://account-d.docusign.com/oauth/revoke",
)


def endpoints(is_demo: bool) -> Endpoints:
    return DEMO_ENDPOINTS if is_demo else PRODUCTION_ENDPOINTS


TokenRefresher = Callable[[httpx.AsyncClient, Optional[Token]], Awaitable[Token]]
CacheFunc = Callable[[Token, UserInfo], Any]


def auth_url_with_params(auth_url: str, params: Values) -> str:
    """Append params to auth_url, encoding spaces as ``%20``."""
    return f"{auth_url}?{params.encode().replace('+', '%20')}"


def _decode_token_body(response: httpx.Response) -> dict:
    content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
    if content_type in ("application/x-www-form-urlencoded", "text/plain"):
        return dict(parse_qsl(response.text))
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError("token response is not a JSON object")
    return data


async def request_token(
    client: httpx.AsyncClient,
    token_url: str,
    form: Values,
    auth: Optional[Tuple[str, str]] = None,
    expiry_delta: int = DEFAULT_EXPIRY_DELTA,
) -> Token:
    """POST a grant to the token endpoint.

    Args:
        client: HTTP client
        token_url: Token endpoint URL
        form: Grant parameters
        auth: Optional HTTP Basic credentials (integrator key, secret)
        expiry_delta: Seconds subtracted from the reported lifetime

    Returns:
        Newly issued Token

    Raises:
        ResponseError: If the token endpoint rejects the grant
        ResponseDecodeError: If the response is not a usable token
    """
    response = await client.post(
        token_url,
        content=form.encode().encode("utf-8"),
        headers={
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        },
        auth=auth,
    )
    if response.status_code not in SUCCESS_STATUSES:
        raise ResponseError.from_body(response.status_code, response.content, response)

    try:
        token = token_from_response(_decode_token_body(response), expiry_delta)
    except ValueError as e:
        raise ResponseDecodeError(f"invalid token response: {e}", response.content) from e
    if not token.access_token:
        raise ResponseDecodeError("server response missing access_token", response.content)
    return token


async def fetch_user_info(
    client: httpx.AsyncClient, userinfo_url: str, token: Token
) -> UserInfo:
    """Fetch the identity and accounts of the token's user.

    Raises:
        ResponseError: If the endpoint returns an error status
        ResponseDecodeError: If the body is not valid user info
    """
    logger.debug("Fetching DocuSign user info")
    response = await client.get(
        userinfo_url,
        headers={"Authorization": token.auth_header(), "Accept": "application/json"},
    )
    if response.status_code not in SUCCESS_STATUSES:
        raise ResponseError.from_body(response.status_code, response.content, response)
    try:
        return UserInfo.model_validate_json(response.content)
    except ValidationError as e:
        raise ResponseDecodeError(f"invalid user info: {e}", response.content) from e


class CredentialState(str, Enum):
    """Lifecycle of an OAuth2Credential's token."""

    UNVALIDATED = "unvalidated"
    VALID = "valid"
    EXPIRED = "expired"
    FAILED = "failed"


class OAuth2Credential(Credential):
    """Credential that refreshes its token and resolves the account base URI.

    All token and user info access is serialized by one asyncio.Lock, so
    concurrent callers racing on an expired token cause exactly one refresh.
    A refresh rejected by the token endpoint is terminal.
    """

    def __init__(
        self,
        *,
        endpoints: Endpoints,
        provider: ClientProvider,
        token: Optional[Token] = None,
        user_info: Optional[UserInfo] = None,
        refresher: Optional[TokenRefresher] = None,
        account_id: str = "",
        is_demo: bool = False,
        host_override: Optional[str] = None,
        cache_func: Optional[CacheFunc] = None,
    ):
        self._endpoints = endpoints
        self._provider = provider
        self._token = token
        self._user_info = user_info
        self._refresher = refresher
        self._requested_account_id = account_id
        self._is_demo = is_demo
        self._host_override = host_override
        self._cache_func = cache_func

        self._lock = asyncio.Lock()
        self._state = CredentialState.UNVALIDATED
        self._failure: Optional[ResponseError] = None
        self._account_id = ""
        self._base_host: Optional[str] = None

    @property
    def state(self) -> CredentialState:
        return self._state

    @property
    def account_id(self) -> str:
        """Resolved account id, or the requested one before first use."""
        return self._account_id or self._requested_account_id

    @property
    def is_demo(self) -> bool:
        return self._is_demo

    @property
    def client(self) -> httpx.AsyncClient:
        return self._provider.client

    async def token(self) -> Token:
        """Return a valid token, refreshing it if necessary.

        Also fetches user info on first use and resolves the account id and
        base host from it.

        Returns:
            Valid Token

        Raises:
            CredentialFailedError: If an earlier refresh was rejected
            ConfigurationError: If the token expired and cannot be refreshed
            ResponseError: If the token endpoint rejects the refresh
            AccountResolutionError: If the account id is not available
        """
        async with self._lock:
            if self._state is CredentialState.FAILED:
                raise CredentialFailedError(
                    f"credential unusable after failed refresh: {self._failure}",
                    self._failure,
                ) from self._failure

            token = self._token
            issued = False
            if token is None or not token.valid():
                if self._state is CredentialState.VALID:
                    self._state = CredentialState.EXPIRED
                if self._refresher is None:
                    raise ConfigurationError(
                        "token is expired and no refresh mechanism is available"
                    )
                logger.debug("Refreshing DocuSign access token")
                try:
                    token = await self._refresher(self.client, self._token)
                except ResponseError as e:
                    logger.warning(f"Token refresh rejected: {e}")
                    self._state = CredentialState.FAILED
                    self._failure = e
                    raise
                issued = True

            user_info = self._user_info
            if user_info is None:
                user_info = await fetch_user_info(
                    self.client, self._endpoints.userinfo_url, token
                )
            account_id, base_host = user_info.resolve_account(
                self._requested_account_id
            )

            self._token = token
            self._user_info = user_info
            self._account_id = account_id
            self._base_host = base_host
            self._state = CredentialState.VALID

            if issued and self._cache_func is not None:
                result = self._cache_func(token, user_info)
                if inspect.isawaitable(result):
                    await result
            return token

    async def user_info(self) -> UserInfo:
        """Return the cached user info, fetching it if absent."""
        if self._user_info is None:
            await self.token()
        return self._user_info

    async def authorize(
        self, call_request: CallRequest, version: Optional[APIVersion] = None
    ) -> None:
        """Set the Authorization header and resolve the request URL."""
        token = await self.token()
        call_request.headers["Authorization"] = token.auth_header()
        call_request.url = (version or VERSION_V2).resolve_url(
            call_request.path,
            host=self._base_host,
            account_id=self._account_id,
            is_demo=self._is_demo,
            host_override=self._host_override,
        )

    async def auth_do(self, op: Op) -> httpx.Response:
        call_request = await op.create_request()
        try:
            await self.authorize(call_request, op.version)
            response = await send_request(self.client, call_request)
        except BaseException:
            await call_request.aclose()
            raise
        error = await check_response_status(response)
        if error is not None:
            raise error
        return response

    def _copy(self, account_id: str, provider: ClientProvider) -> "OAuth2Credential":
        return OAuth2Credential(
            endpoints=self._endpoints,
            provider=provider,
            token=self._token,
            user_info=self._user_info,
            refresher=self._refresher,
            account_id=account_id,
            is_demo=self._is_demo,
            host_override=self._host_override,
            cache_func=self._cache_func,
        )

    def with_account_id(self, account_id: str) -> "OAuth2Credential":
        """Return a credential for another of the user's accounts.

        The copy shares the token, user info, refresher and client but has
        its own lock.  No request is made until it is used.
        """
        return self._copy(account_id, self._provider)

    def with_client(self, client: httpx.AsyncClient) -> "OAuth2Credential":
        return self._copy(self._requested_account_id, ClientProvider(client=client))

    async def aclose(self) -> None:
        await self._provider.aclose()


class OAuth2Config(BaseModel):
    """Settings for an integration using the authorization code grant."""

    integrator_key: str = Field(default="", description="Integration (client) key")
    secret: str = Field(default="", description="Integration secret key")
    redirect_url: str = Field(default="", description="Registered redirect URI")
    account_id: str = Field(default="", description="Account id; blank for default")
    prompt: bool = Field(default=False, description="Force the login prompt")
    ui_locales: List[str] = Field(default_factory=list, description="UI locales")
    extended_lifetime: bool = Field(
        default=False, description="Request the extended scope"
    )
    is_demo: bool = Field(default=False, description="Use the demo environment")
    host_override: Optional[str] = Field(
        default=None, description="Host used for every API call"
    )
    expiry_delta: int = Field(
        default=DEFAULT_EXPIRY_DELTA, description="Seconds to expire tokens early"
    )
    http: HTTPClientConfig = Field(default_factory=HTTPClientConfig)
    cache_func: Optional[Callable[..., Any]] = Field(
        default=None, exclude=True, description="Called with each new token"
    )

    @property
    def endpoints(self) -> Endpoints:
        return endpoints(self.is_demo)

    def _require_key(self) -> None:
        if not self.integrator_key:
            raise ConfigurationError("integrator key may not be empty")

    def _provider(self, client: Optional[httpx.AsyncClient]) -> ClientProvider:
        return ClientProvider(client=client, config=self.http)

    def authorization_url(self, state: str, *scopes: str) -> str:
        """Build the URL that starts the authorization code grant.

        Args:
            state: Opaque value returned to the redirect URI
            scopes: Requested scopes; defaults to ``signature`` (plus
                ``extended`` for extended lifetime)

        Returns:
            Consent URL
        """
        if not scopes:
            scopes = ("signature", "extended") if self.extended_lifetime else ("signature",)
        params = Values(
            {
                "client_id": self.integrator_key,
                "redirect_uri": self.redirect_url,
                "response_type": "code",
                "scope": " ".join(scopes),
                "state": state,
            }
        )
        if self.prompt:
            params.set("prompt", "login")
        if self.ui_locales:
            params.set("ui_locales", " ".join(self.ui_locales))
        return auth_url_with_params(self.endpoints.auth_url, params)

    async def _refresh(
        self, client: httpx.AsyncClient, token: Optional[Token]
    ) -> Token:
        if token is None or not token.refresh_token:
            raise ConfigurationError("no refresh token available")
        form = Values(
            {"grant_type": "refresh_token", "refresh_token": token.refresh_token}
        )
        new_token = await request_token(
            client,
            self.endpoints.token_url,
            form,
            auth=(self.integrator_key, self.secret),
            expiry_delta=self.expiry_delta,
        )
        if not new_token.refresh_token:
            new_token = new_token.model_copy(
                update={"refresh_token": token.refresh_token}
            )
        return new_token

    async def exchange(
        self, code: str, client: Optional[httpx.AsyncClient] = None
    ) -> OAuth2Credential:
        """Exchange an authorization code for a credential.

        The user's info is fetched immediately so account resolution errors
        surface here.

        Args:
            code: Code received at the redirect URI
            client: Optional caller-owned HTTP client

        Returns:
            Validated OAuth2Credential

        Raises:
            ConfigurationError: If the integrator key is empty
            ResponseError: If DocuSign rejects the code
        """
        self._require_key()
        provider = self._provider(client)
        form = Values(
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_url,
            }
        )
        try:
            token = await request_token(
                provider.client,
                self.endpoints.token_url,
                form,
                auth=(self.integrator_key, self.secret),
                expiry_delta=self.expiry_delta,
            )
            user_info = await fetch_user_info(
                provider.client, self.endpoints.userinfo_url, token
            )
            credential = self._credential(token, user_info, provider)
            await credential.token()
            if self.cache_func is not None:
                result = self.cache_func(token, user_info)
                if inspect.isawaitable(result):
                    await result
        except BaseException:
            await provider.aclose()
            raise
        return credential

    def credential(
        self,
        token: Optional[Token],
        user_info: Optional[UserInfo] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> OAuth2Credential:
        """Build a credential from a previously saved token.

        Raises:
            ConfigurationError: If token is None or the integrator key is empty
            AccountResolutionError: If user_info lacks the configured account
        """
        if token is None:
            raise ConfigurationError("token may not be nil")
        self._require_key()
        if user_info is not None:
            user_info.resolve_account(self.account_id)
        return self._credential(token, user_info, self._provider(client))

    def _credential(
        self,
        token: Token,
        user_info: Optional[UserInfo],
        provider: ClientProvider,
    ) -> OAuth2Credential:
        return OAuth2Credential(
            endpoints=self.endpoints,
            provider=provider,
            token=token,
            user_info=user_info,
            refresher=self._refresh,
            account_id=self.account_id,
            is_demo=self.is_demo,
            host_override=self.host_override,
            cache_func=self.cache_func,
        )

    async def revoke(
        self, token: Token, client: Optional[httpx.AsyncClient] = None
    ) -> None:
        """Revoke a token at DocuSign's revoke endpoint.

        Raises:
            ResponseError: If DocuSign rejects the revocation
        """
        self._require_key()
        provider = self._provider(client)
        try:
            response = await provider.client.post(
                self.endpoints.revoke_url,
                content=Values({"token": token.access_token}).encode().encode("utf-8"),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                auth=(self.integrator_key, self.secret),
            )
        finally:
            await provider.aclose()
        if response.status_code not in SUCCESS_STATUSES:
            raise ResponseError.from_body(
                response.status_code, response.content, response
            )


def token_credential(
    access_token: str,
    is_demo: bool = False,
    account_id: str = "",
    user_info: Optional[UserInfo] = None,
    host_override: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> OAuth2Credential:
    """Credential around a fixed access token that is never refreshed.

    Raises:
        ConfigurationError: If access_token is empty
    """
    if not access_token:
        raise ConfigurationError("access token may not be empty")
    return OAuth2Credential(
        endpoints=endpoints(is_demo),
        provider=ClientProvider(client=client),
        token=Token(access_token=access_token),
        user_info=user_info,
        account_id=account_id,
        is_demo=is_demo,
        host_override=host_override,
    )
