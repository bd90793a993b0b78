"""JWT bearer grant for service integrations.

The integration signs an RS256 assertion for an API user who has granted
consent, and exchanges it for an access token:
https://developers.docusign.com/platform/auth/jwt/
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx
import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from pydantic import BaseModel, Field, field_validator

from .errors import ConfigurationError
from .oauth2 import (
    Endpoints,
    OAuth2Credential,
    auth_url_with_params,
    endpoints,
    request_token,
)
from .token import DEFAULT_EXPIRY_DELTA, Token
from .transport import ClientProvider, HTTPClientConfig
from .userinfo import UserInfo
from .values import Values

logger = logging.getLogger(__name__)

JWT_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
JWT_ALGORITHM = "RS256"
MAX_ASSERTION_LIFETIME = 3600
DEFAULT_SCOPES = ("signature", "impersonation")


class JWTConfig(BaseModel):
    """Settings for a JWT (service account) integration."""

    integrator_key: str = Field(default="", description="Integration (client) key")
    private_key: str = Field(default="", description="RSA private key in PEM format")
    key_pair_id: str = Field(default="", description="Id of the RSA key pair")
    expires: int = Field(
        default=MAX_ASSERTION_LIFETIME, description="Assertion lifetime in seconds"
    )
    account_id: str = Field(default="", description="Account id; blank for default")
    is_demo: bool = Field(default=False, description="Use the demo environment")
    host_override: Optional[str] = Field(
        default=None, description="Host used for every API call"
    )
    expiry_delta: int = Field(
        default=DEFAULT_EXPIRY_DELTA, description="Seconds to expire tokens early"
    )
    iat_offset: int = Field(
        default=10, description="Seconds to backdate iat for clock skew"
    )
    user_info: Optional[UserInfo] = Field(
        default=None, description="Known user info, skips the userinfo call"
    )
    http: HTTPClientConfig = Field(default_factory=HTTPClientConfig)
    cache_func: Optional[Callable[..., Any]] = Field(
        default=None, exclude=True, description="Called with each new token"
    )

    @field_validator("expires")
    @classmethod
    def clamp_expires(cls, v: int) -> int:
        """Assertions may live at most one hour; 0 means the maximum."""
        if v <= 0 or v > MAX_ASSERTION_LIFETIME:
            return MAX_ASSERTION_LIFETIME
        return v

    @property
    def endpoints(self) -> Endpoints:
        return endpoints(self.is_demo)

    def user_consent_url(self, redirect_url: str, *scopes: str) -> str:
        """URL where an API user grants the integration consent.

        Args:
            redirect_url: Registered redirect URI
            scopes: Requested scopes, ``signature impersonation`` by default
        """
        params = Values(
            {
                "client_id": self.integrator_key,
                "redirect_uri": redirect_url,
                "response_type": "code",
                "scope": " ".join(scopes or DEFAULT_SCOPES),
            }
        )
        return auth_url_with_params(self.endpoints.auth_url, params)

    def validate_key(self) -> None:
        """Check the integrator key and private key.

        Raises:
            ConfigurationError: If either is missing or the key is unparsable
        """
        if not self.integrator_key:
            raise ConfigurationError("integrator key may not be empty")
        try:
            serialization.load_pem_private_key(
                self.private_key.encode("utf-8"), password=None
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ConfigurationError(f"invalid private key: {e}") from e

    def assertion(self, api_username: str, now: Optional[datetime] = None) -> str:
        """Sign a JWT assertion for api_username.

        Args:
            api_username: GUID of the user to impersonate
            now: Reference time, defaults to the current UTC time

        Returns:
            Encoded RS256 JWT
        """
        now = now or datetime.now(timezone.utc)
        issued_at = int(now.timestamp()) - self.iat_offset
        claims = {
            "iss": self.integrator_key,
            "sub": api_username,
            "aud": self.endpoints.host,
            "iat": issued_at,
            "exp": issued_at + self.expires,
            "scope": " ".join(DEFAULT_SCOPES),
        }
        headers = {"kid": self.key_pair_id} if self.key_pair_id else None
        return jwt.encode(
            claims, self.private_key, algorithm=JWT_ALGORITHM, headers=headers
        )

    def credential(
        self,
        api_username: str,
        token: Optional[Token] = None,
        user_info: Optional[UserInfo] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> OAuth2Credential:
        """Build a credential that obtains tokens with JWT assertions.

        A missing token makes the first call perform the grant.

        Args:
            api_username: GUID of the user to impersonate
            token: Previously saved token, if any
            user_info: Previously saved user info; falls back to the config's
            client: Optional caller-owned HTTP client

        Raises:
            ConfigurationError: If the integrator key or private key is invalid
        """
        self.validate_key()
        user_info = user_info or self.user_info
        if user_info is not None:
            user_info.resolve_account(self.account_id)

        async def refresh(client: httpx.AsyncClient, _: Optional[Token]) -> Token:
            logger.debug("Requesting DocuSign token with JWT assertion")
            form = Values(
                {
                    "grant_type": JWT_GRANT_TYPE,
                    "assertion": self.assertion(api_username),
                }
            )
            return await request_token(
                client,
                self.endpoints.token_url,
                form,
                expiry_delta=self.expiry_delta,
            )

        return OAuth2Credential(
            endpoints=self.endpoints,
            provider=ClientProvider(client=client, config=self.http),
            token=token,
            user_info=user_info,
            refresher=refresh,
            account_id=self.account_id,
            is_demo=self.is_demo,
            host_override=self.host_override,
            cache_func=self.cache_func,
        )
