"""
Tests for Op.create_request: path resolution and body encoding.
"""

import json
from typing import Optional

import pytest
from pydantic import BaseModel, ConfigDict, Field

from dsesign.errors import ConfigurationError
from dsesign.op import Op, UploadFile
from dsesign.values import Values

from tests.infrastructure.request_helpers import (
    TrackingFile,
    parse_multipart,
    read_content,
)


class EnvelopeDefinition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email_subject: str = Field(alias="emailSubject")
    status: Optional[str] = None


class TestPathResolution:
    """Placeholder substitution and query encoding."""

    def test_placeholders_substituted_from_either_key_form(self):
        op = Op(
            path="envelopes/{envelopeId}/recipients/{recipientId}",
            path_parameters={"envelopeId": "env-1", "{recipientId}": "7"},
        )

        assert op.resolved_path() == "envelopes/env-1/recipients/7"

    def test_unresolved_placeholder_left_verbatim(self):
        op = Op(path="envelopes/{envelopeId}/documents/{documentId}",
                path_parameters={"envelopeId": "env-1"})

        assert op.resolved_path() == "envelopes/env-1/documents/{documentId}"

    def test_query_options_sorted_and_repeated(self):
        op = Op(path="envelopes")
        op.add_query("status", "sent", "delivered").set_query("from_date", "2024-01-01")

        assert op.resolved_path() == (
            "envelopes?from_date=2024-01-01&status=sent&status=delivered"
        )


class TestBodyEncoding:
    """Content selection by payload type."""

    async def test_no_payload_has_no_body(self):
        call_request = await Op(method="GET", path="envelopes").create_request()

        assert call_request.content is None
        assert "Content-Type" not in call_request.headers

    async def test_json_payload(self):
        call_request = await Op(
            method="POST", path="envelopes", payload={"emailSubject": "Hi"}
        ).create_request()

        assert call_request.headers["Content-Type"] == "application/json"
        assert json.loads(await read_content(call_request)) == {"emailSubject": "Hi"}

    async def test_pydantic_payload_uses_aliases_and_drops_none(self):
        call_request = await Op(
            method="POST",
            path="envelopes",
            payload=EnvelopeDefinition(email_subject="Please sign"),
        ).create_request()

        assert json.loads(await read_content(call_request)) == {
            "emailSubject": "Please sign"
        }

    async def test_values_payload_is_form_encoded(self):
        call_request = await Op(
            method="POST", path="x", payload=Values({"b": "2", "a": "1 2"})
        ).create_request()

        assert call_request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert await read_content(call_request) == b"a=1+2&b=2"

    async def test_upload_file_payload_streams_raw(self):
        data = TrackingFile(b"<xml/>")
        call_request = await Op(
            method="PUT",
            path="x",
            payload=UploadFile(data, content_type="application/xml"),
        ).create_request()

        assert call_request.headers["Content-Type"] == "application/xml"
        assert await read_content(call_request) == b"<xml/>"
        assert data.close_calls == 1

    async def test_accept_header(self):
        call_request = await Op(path="x", accept="application/pdf").create_request()

        assert call_request.headers["Accept"] == "application/pdf"

    async def test_method_is_upper_cased(self):
        call_request = await Op(method="post", path="x").create_request()

        assert call_request.method == "POST"


class TestMultipart:
    """Streaming multipart bodies for document uploads."""

    async def test_json_part_first_then_files_in_order(self):
        first = TrackingFile(b"%PDF-1.4 first")

        async def second_chunks():
            yield b"second "
            yield b"document"

        op = Op(
            method="POST",
            path="envelopes",
            payload={"emailSubject": "Sign these"},
            files=[
                UploadFile(first, "application/pdf", "first.pdf", "1"),
                UploadFile(second_chunks(), "text/plain", "second.txt", "2"),
            ],
        )

        call_request = await op.create_request()
        content_type = call_request.headers["Content-Type"]
        assert content_type.startswith("multipart/form-data; boundary=")

        parts = parse_multipart(content_type, await read_content(call_request))
        assert len(parts) == 3

        assert parts[0].get_content_type() == "application/json"
        assert parts[0]["Content-Disposition"] == "form-data"
        assert json.loads(parts[0].get_payload(decode=True)) == {
            "emailSubject": "Sign these"
        }

        assert parts[1].get_content_type() == "application/pdf"
        assert parts[1]["Content-Disposition"] == 'file; filename="first.pdf";documentid=1'
        assert parts[1].get_payload(decode=True) == b"%PDF-1.4 first"

        assert parts[2].get_content_type() == "text/plain"
        assert parts[2].get_param("documentid", header="content-disposition") == "2"
        assert parts[2].get_payload(decode=True) == b"second document"

    async def test_files_closed_once_stream_consumed(self):
        data = TrackingFile(b"abc")
        upload = UploadFile(data, "application/pdf", "a.pdf", "1")

        call_request = await Op(method="POST", path="x", files=[upload]).create_request()
        await read_content(call_request)
        await upload.aclose()

        assert upload.closed
        assert data.close_calls == 1

    async def test_large_file_read_in_chunks(self):
        payload = b"x" * (200 * 1024)
        upload = UploadFile(TrackingFile(payload), "application/pdf", "big.pdf", "1")

        chunks = [chunk async for chunk in upload.chunks()]

        assert len(chunks) > 1
        assert b"".join(chunks) == payload


class TestBuildFailures:
    """Every failure path closes the upload files."""

    async def test_invalid_method_closes_files(self):
        data = TrackingFile(b"abc")
        op = Op(method="PO ST", path="x", files=[UploadFile(data, file_name="a")])

        with pytest.raises(ConfigurationError):
            await op.create_request()

        assert data.close_calls == 1

    async def test_unencodable_payload_closes_files(self):
        data = TrackingFile(b"abc")
        op = Op(
            method="POST",
            path="x",
            payload={"bad": object()},
            files=[UploadFile(data, file_name="a")],
        )

        with pytest.raises(ValueError):
            await op.create_request()

        assert data.close_calls == 1

    async def test_missing_credential_closes_files(self):
        data = TrackingFile(b"abc")
        op = Op(method="POST", path="x", files=[UploadFile(data, file_name="a")])

        with pytest.raises(ConfigurationError, match="nil credential"):
            await op.do(dict)

        assert data.close_calls == 1
