"""Exception classes for DocuSign API operations.

Transport failures (``httpx.TransportError`` and friends) and task
cancellation are never wrapped; they reach the caller unchanged so they can
be told apart from errors reported by DocuSign itself.
"""

import json
from typing import Optional

import httpx


class ESignError(Exception):
    """Base exception for all dsesign errors."""

    pass


class ConfigurationError(ESignError):
    """Exception raised when required configuration is missing or invalid.

    Always raised before any network call is made.
    """

    pass


class ResponseError(ESignError):
    """Exception raised when DocuSign returns a status other than 200/201.

    Attributes:
        status: HTTP status code of the response
        error_code: DocuSign error code (``errorCode`` or OAuth ``error``)
        description: Human-readable message
        raw: Raw response body
        response: The closed httpx response, when one was received
    """

    def __init__(
        self,
        status: int,
        error_code: str = "",
        description: str = "",
        raw: bytes = b"",
        response: Optional[httpx.Response] = None,
    ):
        self.status = status
        self.response = response
        self.error_code = error_code
        self.description = description
        self.raw = raw
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"Status: {self.status}  {self.error_code}: {self.description}"

    @classmethod
    def from_body(
        cls, status: int, raw: bytes, response: Optional[httpx.Response] = None
    ) -> "ResponseError":
        """Build a ResponseError from a response body.

        Understands both the eSignature error shape
        (``{"errorCode": ..., "message": ...}``) and the OAuth error shape
        (``{"error": ..., "error_description": ...}``).  A body that is not a
        JSON object is kept as the description.

        Args:
            status: HTTP status code
            raw: Response body bytes
            response: Response the body was read from

        Returns:
            ResponseError instance
        """
        try:
            data = json.loads(raw) if raw else {}
        except (ValueError, UnicodeDecodeError):
            data = None

        if not isinstance(data, dict):
            return cls(
                status,
                description=raw.decode("utf-8", errors="replace"),
                raw=raw,
                response=response,
            )

        error_code = data.get("errorCode") or data.get("error") or ""
        description = data.get("message") or data.get("error_description") or ""
        return cls(status, str(error_code), str(description), raw, response)


class AccountResolutionError(ESignError):
    """Exception raised when an account id is not in the user's account list."""

    def __init__(self, account_id: str, email: str):
        self.account_id = account_id
        self.email = email
        super().__init__(f"no account {account_id} for {email}")


class CredentialFailedError(ESignError):
    """Exception raised when a credential's token refresh was rejected.

    The credential is unusable afterwards; build a new one.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ResponseDecodeError(ESignError):
    """Exception raised when a successful response body cannot be decoded."""

    def __init__(self, message: str, raw: bytes = b""):
        super().__init__(message)
        self.raw = raw
