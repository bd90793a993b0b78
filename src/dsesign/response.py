"""Response status checking and result decoding."""

import logging
from typing import Any, Optional, Type, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import ResponseDecodeError, ResponseError
from .op import Download

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUCCESS_STATUSES = frozenset({200, 201})


async def _read_body(response: httpx.Response) -> bytes:
    """Read the body, stopping at Content-Length when the server sent one.

    Content-Length counts encoded bytes, so the bound only applies to bodies
    sent without a Content-Encoding.
    """
    limit: Optional[int] = None
    length = response.headers.get("Content-Length")
    encoding = response.headers.get("Content-Encoding", "identity").strip().lower()
    if length is not None and encoding in ("", "identity"):
        try:
            limit = int(length)
        except ValueError:
            limit = None

    chunks = []
    size = 0
    async for chunk in response.aiter_bytes():
        chunks.append(chunk)
        size += len(chunk)
        if limit is not None and size >= limit:
            break
    body = b"".join(chunks)
    return body[:limit] if limit is not None else body


async def check_response_status(response: httpx.Response) -> Optional[ResponseError]:
    """Map a non-success response to a ResponseError.

    On error the body is read fully and the response is closed.

    Args:
        response: Open streaming response

    Returns:
        None for 200/201, otherwise the decoded ResponseError
    """
    if response.status_code in SUCCESS_STATUSES:
        return None
    try:
        raw = await _read_body(response)
    finally:
        await response.aclose()
    logger.debug(f"DocuSign returned status {response.status_code}")
    return ResponseError.from_body(response.status_code, raw, response)


async def resolve_response(
    response: httpx.Response, result_type: Optional[Type[T]] = None
) -> Any:
    """Turn a successful response into the caller's result.

    Args:
        response: Open 2xx response
        result_type: ``Download`` to hand back the open stream, None to
            discard the body, or any type pydantic can validate JSON into

    Returns:
        Download, decoded result, or None

    Raises:
        ResponseDecodeError: If the body cannot be decoded into result_type
    """
    if result_type is Download:
        return Download(response)

    try:
        if result_type is None:
            return None
        raw = await _read_body(response)
    finally:
        await response.aclose()

    try:
        return TypeAdapter(result_type).validate_json(raw)
    except ValidationError as e:
        raise ResponseDecodeError(
            f"unable to decode response into {getattr(result_type, '__name__', result_type)}: {e}",
            raw=raw,
        ) from e
