"""OAuth2 access tokens."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Seconds a token is treated as expired before the server-reported expiry,
# absorbing clock skew and request latency.
DEFAULT_EXPIRY_DELTA = 10


class Token(BaseModel):
    """An OAuth2 token issued by DocuSign's account server.

    Tokens are immutable; a refresh produces a new instance.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(default="", description="Bearer access token")
    token_type: str = Field(default="Bearer", description="Token type")
    refresh_token: str = Field(default="", description="Refresh token, if issued")
    expiry: Optional[datetime] = Field(
        default=None, description="Expiry time; None means the token never expires"
    )

    @field_validator("expiry")
    @classmethod
    def expiry_must_be_aware(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expiry <= now

    def valid(self, now: Optional[datetime] = None) -> bool:
        """Return True if the token has an access token and is not expired."""
        return bool(self.access_token) and not self.expired(now)

    def normalized_type(self) -> str:
        lowered = self.token_type.lower()
        if not lowered or lowered == "bearer":
            return "Bearer"
        if lowered == "mac":
            return "MAC"
        if lowered == "basic":
            return "Basic"
        return self.token_type

    def auth_header(self) -> str:
        """Value for the ``Authorization`` header."""
        return f"{self.normalized_type()} {self.access_token}"


def token_from_response(
    data: Dict[str, Any],
    expiry_delta: int = DEFAULT_EXPIRY_DELTA,
    now: Optional[datetime] = None,
) -> Token:
    """Create a Token from a token endpoint response.

    Args:
        data: Decoded JSON or form-encoded response values
        expiry_delta: Seconds subtracted from ``expires_in``
        now: Reference time, defaults to the current UTC time

    Returns:
        New Token

    Raises:
        ValueError: If a field has the wrong type
    """
    fields: Dict[str, Any] = {}
    for name in ("access_token", "refresh_token", "token_type"):
        value = data.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValueError(f"{name} must be a string")
        fields[name] = value
    if not fields.get("token_type"):
        fields.pop("token_type", None)

    expires_in = data.get("expires_in")
    if expires_in is not None:
        if isinstance(expires_in, bool):
            raise ValueError("unable to convert expires_in to int")
        try:
            seconds = int(float(expires_in))
        except (TypeError, ValueError):
            raise ValueError(f"unable to convert expires_in to int: {expires_in!r}")
        now = now or datetime.now(timezone.utc)
        fields["expiry"] = now + timedelta(seconds=seconds - expiry_delta)

    return Token(**fields)
