"""
dsesign - asynchronous client core for the DocuSign eSignature REST API.

Provides operation descriptors, request building (JSON, form and streaming
multipart), OAuth2 and JWT credentials with a serialized token cache, and
structured DocuSign errors.
"""

__version__ = "0.1.0"

from .api_version import CLICK_V1, VERSION_V2, VERSION_V21, APIVersion
from .credential import (
    CallLog,
    Credential,
    LoggingCredential,
    with_http_client,
    with_logger,
)
from .errors import (
    AccountResolutionError,
    ConfigurationError,
    CredentialFailedError,
    ESignError,
    ResponseDecodeError,
    ResponseError,
)
from .jwt_grant import JWTConfig
from .oauth2 import (
    CredentialState,
    OAuth2Config,
    OAuth2Credential,
    endpoints,
    token_credential,
)
from .op import CallRequest, Download, Op, UploadFile
from .ratelimit import RateLimitCredential, Report, capture_report
from .token import Token
from .transport import ClientProvider, HTTPClientConfig
from .userinfo import UserInfo, UserInfoAccount
from .values import Values

__all__ = [
    "APIVersion",
    "AccountResolutionError",
    "CLICK_V1",
    "CallLog",
    "CallRequest",
    "ClientProvider",
    "ConfigurationError",
    "Credential",
    "CredentialFailedError",
    "CredentialState",
    "Download",
    "ESignError",
    "HTTPClientConfig",
    "JWTConfig",
    "LoggingCredential",
    "OAuth2Config",
    "OAuth2Credential",
    "Op",
    "RateLimitCredential",
    "Report",
    "ResponseDecodeError",
    "ResponseError",
    "Token",
    "UploadFile",
    "UserInfo",
    "UserInfoAccount",
    "VERSION_V2",
    "VERSION_V21",
    "Values",
    "capture_report",
    "endpoints",
    "token_credential",
    "with_http_client",
    "with_logger",
]
