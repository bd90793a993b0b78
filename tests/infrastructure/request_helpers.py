"""Helpers shared by request builder and executor tests."""

import io
from email.message import Message
from email.parser import BytesParser
from typing import List

from dsesign.op import CallRequest


class TrackingFile(io.BytesIO):
    """BytesIO that counts close calls."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.close_calls = 0

    def close(self):
        self.close_calls += 1
        super().close()


async def read_content(call_request: CallRequest) -> bytes:
    content = call_request.content
    if content is None:
        return b""
    if isinstance(content, bytes):
        return content
    return b"".join([chunk async for chunk in content])


def parse_multipart(content_type: str, body: bytes) -> List[Message]:
    """Split a multipart body into its parts with the stdlib email parser."""
    message = BytesParser().parsebytes(
        b"Content-Type: " + content_type.encode("utf-8") + b"\r\n\r\n" + body
    )
    assert message.is_multipart()
    return message.get_payload()
