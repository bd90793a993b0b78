"""User and account data returned by the ``/oauth/userinfo`` endpoint.

See https://developers.docusign.com/platform/auth/reference/user-info/
"""

from typing import List, Tuple
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from .errors import AccountResolutionError, ConfigurationError


class UserInfoAccount(BaseModel):
    """One account the authenticated user belongs to."""

    model_config = ConfigDict(frozen=True)

    account_id: str = Field(..., description="Account GUID")
    is_default: bool = Field(default=False, description="User's default account")
    account_name: str = Field(default="", description="Account display name")
    base_uri: str = Field(default="", description="Base URI for API calls")


class UserInfo(BaseModel):
    """Identity of the authenticated user and their accounts."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_username: str = Field(default="", alias="sub", description="User GUID")
    name: str = Field(default="")
    given_name: str = Field(default="")
    family_name: str = Field(default="")
    email: str = Field(default="")
    accounts: List[UserInfoAccount] = Field(default_factory=list)

    def resolve_account(self, account_id: str = "") -> Tuple[str, str]:
        """Find the account id and base host for account_id.

        A blank account_id selects the user's default account.

        Args:
            account_id: Requested account id, or "" for the default

        Returns:
            Tuple of (account id, host of the account's base URI)

        Raises:
            AccountResolutionError: If no matching account exists
            ConfigurationError: If the matching account has no usable base URI
        """
        for account in self.accounts:
            if (not account_id and account.is_default) or account.account_id == account_id:
                host = urlsplit(account.base_uri).netloc
                if not host:
                    raise ConfigurationError(
                        f"account {account.account_id} has invalid base uri {account.base_uri!r}"
                    )
                return account.account_id, host
        raise AccountResolutionError(account_id, self.email)
