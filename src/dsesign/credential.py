"""Credential interface and credential decorators.

A Credential turns an Op into an authorized HTTP exchange.  Decorators such
as LoggingCredential wrap another credential and forward every call to it.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx

from .errors import ResponseError

if TYPE_CHECKING:
    from .op import CallRequest, Op

logger = logging.getLogger(__name__)


class Credential(ABC):
    """Authorizes and sends DocuSign operations."""

    @abstractmethod
    async def auth_do(self, op: "Op") -> httpx.Response:
        """Create, authorize and send the op's request.

        Returns:
            The open response for a 200/201 status

        Raises:
            ResponseError: For any other status; the response is closed
        """

    @abstractmethod
    def with_client(self, client: httpx.AsyncClient) -> "Credential":
        """Return a copy of this credential that sends through client."""

    async def aclose(self) -> None:
        """Release resources owned by the credential."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


async def send_request(
    client: httpx.AsyncClient, call_request: "CallRequest"
) -> httpx.Response:
    """Send an authorized request, leaving the response body unread.

    A streaming request body is closed if the send fails.
    """
    request = call_request.build(client)
    logger.debug(f"Sending {request.method} {request.url.path}")
    try:
        return await client.send(request, stream=True)
    except BaseException:
        await call_request.aclose()
        raise


@dataclass
class CallLog:
    """Everything known about one completed call."""

    op: "Op"
    request: Optional[httpx.Request] = None
    response: Optional[httpx.Response] = None
    body: bytes = b""
    error: Optional[BaseException] = None

    @property
    def payload(self) -> Any:
        return self.op.payload

    @property
    def status(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


LogFunc = Callable[[CallLog], None]


class LoggingCredential(Credential):
    """Reports every call made through the wrapped credential to log_func.

    JSON responses are read so the body can be reported; the body stays
    available to the caller.  Downloads are reported without a body.
    """

    def __init__(self, credential: Credential, log_func: LogFunc):
        self.credential = credential
        self.log_func = log_func

    async def auth_do(self, op: "Op") -> httpx.Response:
        log = CallLog(op=op)
        try:
            response = await self.credential.auth_do(op)
        except ResponseError as e:
            log.error = e
            log.body = e.raw
            if e.response is not None:
                log.response = e.response
                log.request = e.response.request
            self.log_func(log)
            raise
        except Exception as e:
            log.error = e
            self.log_func(log)
            raise

        log.response = response
        log.request = response.request
        if response.request.headers.get("Accept", "") == "application/json":
            try:
                log.body = await response.aread()
            except BaseException:
                await response.aclose()
                raise
        self.log_func(log)
        return response

    def with_client(self, client: httpx.AsyncClient) -> "LoggingCredential":
        return LoggingCredential(self.credential.with_client(client), self.log_func)

    async def aclose(self) -> None:
        await self.credential.aclose()


def with_logger(
    credential: Credential, log_func: Optional[LogFunc]
) -> Credential:
    """Wrap credential with a LoggingCredential unless log_func is None."""
    if log_func is None:
        return credential
    return LoggingCredential(credential, log_func)


def with_http_client(
    credential: Credential, client: httpx.AsyncClient
) -> Credential:
    """Return a copy of credential that sends through client."""
    return credential.with_client(client)
