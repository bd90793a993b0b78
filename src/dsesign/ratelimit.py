"""Rate-limit reporting from DocuSign response headers.

DocuSign reports hourly and burst quotas on every API response:
https://developers.docusign.com/docs/esign-rest-api/esign101/rules-and-limits/

Reports are informational; no request is ever delayed or retried.
"""

import contextvars
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterator, List, Optional, Protocol

import httpx

from .credential import Credential
from .errors import ConfigurationError

if TYPE_CHECKING:
    from .op import Op

logger = logging.getLogger(__name__)


def _int_header(headers: httpx.Headers, name: str) -> int:
    try:
        return int(headers.get(name, "0"))
    except ValueError:
        return 0


@dataclass(frozen=True)
class Report:
    """Quota state reported with one response."""

    rate_limit: int = 0
    rate_remaining: int = 0
    rate_reset: int = 0
    burst_limit: int = 0
    burst_remaining: int = 0

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> "Report":
        """Parse the rate-limit headers; missing or invalid values are 0."""
        return cls(
            rate_limit=_int_header(headers, "X-RateLimit-Limit"),
            rate_remaining=_int_header(headers, "X-RateLimit-Remaining"),
            rate_reset=_int_header(headers, "X-RateLimit-Reset"),
            burst_limit=_int_header(headers, "X-BurstLimit-Limit"),
            burst_remaining=_int_header(headers, "X-BurstLimit-Remaining"),
        )

    @property
    def reset_at(self) -> Optional[datetime]:
        """When the hourly quota resets (UTC), if reported."""
        if not self.rate_reset:
            return None
        return datetime.fromtimestamp(self.rate_reset, tz=timezone.utc)

    @property
    def is_empty(self) -> bool:
        return self == Report()


class ReportHandler(Protocol):
    async def handle(self, response: httpx.Response) -> None: ...


_captured: contextvars.ContextVar[Optional[List[Report]]] = contextvars.ContextVar(
    "dsesign_rate_limit_reports", default=None
)


@contextmanager
def capture_report() -> Iterator[List[Report]]:
    """Collect the reports of calls made inside the block.

    Example:
        with capture_report() as reports:
            await op.do(dict)
        print(reports[-1].rate_remaining)
    """
    reports: List[Report] = []
    reset_token = _captured.set(reports)
    try:
        yield reports
    finally:
        _captured.reset(reset_token)


class RateLimitCredential(Credential):
    """Records the rate-limit report of every successful call."""

    def __init__(
        self, credential: Optional[Credential], handler: Optional[ReportHandler] = None
    ):
        """Initialize decorator.

        Args:
            credential: Credential to wrap
            handler: Optional callback given each successful response

        Raises:
            ConfigurationError: If credential is None
        """
        if credential is None:
            raise ConfigurationError("rate limit credential requires a credential")
        self.credential = credential
        self.handler = handler

    async def auth_do(self, op: "Op") -> httpx.Response:
        response = await self.credential.auth_do(op)
        report = Report.from_headers(response.headers)
        reports = _captured.get()
        if reports is not None:
            reports.append(report)
        if report.burst_limit and report.burst_remaining == 0:
            logger.warning("DocuSign burst limit exhausted")
        if self.handler is not None:
            try:
                await self.handler.handle(response)
            except BaseException:
                await response.aclose()
                raise
        return response

    def with_client(self, client: httpx.AsyncClient) -> "RateLimitCredential":
        return RateLimitCredential(self.credential.with_client(client), self.handler)

    async def aclose(self) -> None:
        await self.credential.aclose()
