"""
Tests for LoggingCredential, RateLimitCredential and the client helpers.
"""

from datetime import datetime, timezone

import httpx
import pytest

from dsesign.credential import LoggingCredential, with_http_client, with_logger
from dsesign.errors import ConfigurationError, ResponseError
from dsesign.oauth2 import token_credential
from dsesign.op import Download, Op
from dsesign.ratelimit import RateLimitCredential, Report, capture_report

ENVELOPE_PATH = "/restapi/v2/accounts/acct-default/envelopes/env-1"
DOCUMENT_PATH = "/restapi/v2/accounts/acct-default/envelopes/env-1/documents/combined"

RATE_HEADERS = {
    "X-RateLimit-Limit": "1000",
    "X-RateLimit-Remaining": "999",
    "X-RateLimit-Reset": "1714564800",
    "X-BurstLimit-Limit": "500",
    "X-BurstLimit-Remaining": "499",
}


@pytest.fixture
def credential(server, http_client):
    return token_credential(server.add_access_token(), is_demo=True, client=http_client)


class TestLoggingCredential:
    """The log hook sees requests, responses and bodies."""

    async def test_logs_json_body_and_keeps_it_readable(self, server, credential):
        server.set_response("GET", ENVELOPE_PATH, body=b'{"status":"sent"}')
        logs = []

        logged = with_logger(credential, logs.append)
        result = await Op(credential=logged, path="envelopes/env-1").do(dict)

        assert result == {"status": "sent"}
        assert len(logs) == 1
        assert logs[0].body == b'{"status":"sent"}'
        assert logs[0].status == 200
        assert logs[0].request.url.path == ENVELOPE_PATH
        assert logs[0].error is None

    async def test_logs_payload(self, server, credential):
        server.set_response("POST", "/restapi/v2/accounts/acct-default/envelopes", status=201)
        logs = []

        op = Op(
            credential=LoggingCredential(credential, logs.append),
            method="POST",
            path="envelopes",
            payload={"emailSubject": "Hi"},
        )
        await op.do(dict)

        assert logs[0].payload == {"emailSubject": "Hi"}

    async def test_logs_failures(self, server, credential):
        logs = []

        with pytest.raises(ResponseError):
            await Op(
                credential=LoggingCredential(credential, logs.append),
                path="envelopes/missing",
            ).do(dict)

        assert logs[0].status == 404
        assert b"NOT_FOUND" in logs[0].body
        assert isinstance(logs[0].error, ResponseError)

    async def test_download_logged_without_body(self, server, credential):
        server.set_response(
            "GET", DOCUMENT_PATH, body=b"%PDF-1.4", media_type="application/pdf"
        )
        logs = []

        download = await Op(
            credential=LoggingCredential(credential, logs.append),
            path="envelopes/env-1/documents/combined",
        ).do(Download)
        async with download:
            assert await download.aread() == b"%PDF-1.4"

        assert logs[0].body == b""

    def test_none_log_func_returns_credential_unchanged(self, credential):
        assert with_logger(credential, None) is credential


class TestWithHTTPClient:
    async def test_decorators_pass_client_through(self, server):
        credential = token_credential(server.add_access_token(), is_demo=True)
        wrapped = RateLimitCredential(LoggingCredential(credential, lambda log: None))
        server.set_response("GET", ENVELOPE_PATH)

        async with server.client() as client:
            routed = with_http_client(wrapped, client)
            await Op(credential=routed, path="envelopes/env-1").do(None)

        assert isinstance(routed, RateLimitCredential)
        assert len(server.api_requests) == 1


class TestRateLimit:
    """Rate-limit report capture."""

    def test_report_from_headers(self):
        report = Report.from_headers(httpx.Headers(RATE_HEADERS))

        assert report == Report(1000, 999, 1714564800, 500, 499)
        assert report.reset_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert not report.is_empty

    def test_missing_and_invalid_headers_are_zero(self):
        report = Report.from_headers(httpx.Headers({"X-RateLimit-Limit": "lots"}))

        assert report.is_empty
        assert report.reset_at is None

    async def test_capture_report(self, server, credential):
        server.set_response("GET", ENVELOPE_PATH, headers=RATE_HEADERS)
        limited = RateLimitCredential(credential)

        with capture_report() as reports:
            await Op(credential=limited, path="envelopes/env-1").do(dict)

        assert reports[0].rate_remaining == 999
        assert reports[0].burst_remaining == 499

    async def test_handler_called(self, server, credential):
        server.set_response("GET", ENVELOPE_PATH, headers=RATE_HEADERS)
        seen = []

        class Handler:
            async def handle(self, response):
                seen.append(response.headers["X-RateLimit-Limit"])

        await Op(credential=RateLimitCredential(credential, Handler()), path="envelopes/env-1").do(None)

        assert seen == ["1000"]

    async def test_handler_error_propagates(self, server, credential):
        server.set_response("GET", ENVELOPE_PATH)

        class Handler:
            async def handle(self, response):
                raise RuntimeError("quota exceeded")

        with pytest.raises(RuntimeError, match="quota exceeded"):
            await Op(
                credential=RateLimitCredential(credential, Handler()),
                path="envelopes/env-1",
            ).do(None)

    def test_requires_credential(self):
        with pytest.raises(ConfigurationError):
            RateLimitCredential(None)
