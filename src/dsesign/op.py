"""Operation descriptors and request building.

An Op describes one DocuSign call: method, path template, parameters,
payload and file attachments.  ``Op.create_request`` serializes it into a
CallRequest which a Credential authorizes, resolves and sends.
"""

import inspect
import logging
import re
import secrets
from dataclasses import dataclass, field, replace
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Dict,
    Iterable,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
)

import httpx
from pydantic import BaseModel, TypeAdapter

from .api_version import APIVersion
from .errors import ConfigurationError
from .values import Values

if TYPE_CHECKING:
    from .credential import Credential

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHUNK_SIZE = 64 * 1024

_PLACEHOLDER = re.compile(r"\{([^{}/]+)\}")
_METHOD_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_JSON = TypeAdapter(Any)


class UploadFile:
    """A document attachment sent as one part of a multipart request.

    ``data`` may be bytes, a binary file-like object (sync or async
    ``read``) or an async iterable of bytes.  The SDK closes the underlying
    object exactly once when the call finishes, whatever the outcome.
    """

    def __init__(
        self,
        data: Any,
        content_type: str = "application/octet-stream",
        file_name: str = "",
        document_id: str = "",
        order: str = "",
    ):
        self.data = data
        self.content_type = content_type
        self.file_name = file_name
        self.document_id = document_id
        self.order = order
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield the file contents in chunks without buffering it whole."""
        data = self.data
        if isinstance(data, (bytes, bytearray, memoryview)):
            yield bytes(data)
            return
        if hasattr(data, "__aiter__"):
            async for chunk in data:
                yield chunk
            return
        while True:
            chunk = data.read(CHUNK_SIZE)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                break
            yield chunk

    async def aclose(self) -> None:
        """Close the underlying data source; later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        closer = getattr(self.data, "aclose", None) or getattr(self.data, "close", None)
        if closer is None:
            return
        result = closer()
        if inspect.isawaitable(result):
            await result


async def close_uploads(files: Iterable[UploadFile]) -> None:
    """Close every upload file, continuing past individual close failures."""
    first_error: Optional[BaseException] = None
    for f in files:
        try:
            await f.aclose()
        except Exception as e:
            logger.warning(f"Failed to close upload file {f.file_name!r}: {e}")
            if first_error is None:
                first_error = e
    if first_error is not None:
        raise first_error


class Download:
    """An open binary response, e.g. a PDF or an image.

    The caller must close it (``aclose`` or ``async with``) on every path.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self.content_type = response.headers.get("Content-Type", "")
        self.content_disposition = response.headers.get("Content-Disposition", "")
        length = response.headers.get("Content-Length")
        try:
            self.content_length = int(length) if length is not None else -1
        except ValueError:
            self.content_length = -1

    @property
    def response(self) -> httpx.Response:
        return self._response

    def aiter_bytes(self, chunk_size: Optional[int] = None) -> AsyncIterator[bytes]:
        return self._response.aiter_bytes(chunk_size)

    async def aread(self) -> bytes:
        return await self._response.aread()

    async def aclose(self) -> None:
        await self._response.aclose()

    async def __aenter__(self) -> "Download":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


@dataclass
class CallRequest:
    """A serialized operation awaiting authorization.

    ``path`` is relative (with query string) until a credential resolves
    ``url``.
    """

    method: str
    path: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: Union[bytes, AsyncIterator[bytes], None] = None
    payload: Any = None
    url: Optional[httpx.URL] = None

    def build(self, client: httpx.AsyncClient) -> httpx.Request:
        """Create the transport request.

        Raises:
            ConfigurationError: If no credential has resolved the URL
        """
        if self.url is None:
            raise ConfigurationError(f"url for {self.path} has not been resolved")
        return client.build_request(
            self.method, self.url, headers=self.headers, content=self.content
        )

    async def aclose(self) -> None:
        """Close a streaming body that was not fully consumed."""
        closer = getattr(self.content, "aclose", None)
        if closer is not None:
            await closer()


def encode_json(payload: Any) -> bytes:
    """JSON-encode a payload; pydantic models use their aliases."""
    if isinstance(payload, BaseModel):
        return payload.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    return _JSON.dump_json(payload)


async def _multipart_body(
    boundary: str, payload: Optional[bytes], files: List[UploadFile]
) -> AsyncIterator[bytes]:
    try:
        if payload is not None:
            yield (
                f"--{boundary}\r\n"
                "Content-Disposition: form-data\r\n"
                "Content-Type: application/json\r\n\r\n"
            ).encode("utf-8") + payload + b"\r\n"
        for f in files:
            yield (
                f"--{boundary}\r\n"
                f'Content-Disposition: file; filename="{f.file_name}";documentid={f.document_id}\r\n'
                f"Content-Type: {f.content_type}\r\n\r\n"
            ).encode("utf-8")
            async for chunk in f.chunks():
                yield chunk
            yield b"\r\n"
        yield f"--{boundary}--\r\n".encode("utf-8")
    finally:
        await close_uploads(files)


async def _raw_body(upload: UploadFile) -> AsyncIterator[bytes]:
    try:
        async for chunk in upload.chunks():
            yield chunk
    finally:
        await upload.aclose()


@dataclass
class Op:
    """Describes a single DocuSign API call.

    A path beginning with ``/`` is resolved without the account id segment
    (e.g. ``/v2.1/accounts``); otherwise the credential prepends
    ``/<prefix>/<version>/accounts/<accountId>/``.
    """

    credential: Optional["Credential"] = None
    method: str = "GET"
    path: str = ""
    path_parameters: Dict[str, str] = field(default_factory=dict)
    query_opts: Values = field(default_factory=Values)
    payload: Any = None
    files: List[UploadFile] = field(default_factory=list)
    accept: str = ""
    version: Optional[APIVersion] = None

    def set_query(self, key: str, value: Any) -> "Op":
        self.query_opts.set(key, str(value))
        return self

    def add_query(self, key: str, *values: Any) -> "Op":
        for value in values:
            self.query_opts.add(key, str(value))
        return self

    def upload_files(self) -> List[UploadFile]:
        """Every upload source owned by this op, including a raw payload."""
        files = list(self.files)
        if isinstance(self.payload, UploadFile):
            files.append(self.payload)
        return files

    def resolved_path(self) -> str:
        """Substitute path parameters and append the encoded query options.

        Placeholders without a value are left untouched.
        """

        def substitute(match: re.Match) -> str:
            name = match.group(1)
            if name in self.path_parameters:
                return str(self.path_parameters[name])
            if match.group(0) in self.path_parameters:
                return str(self.path_parameters[match.group(0)])
            return match.group(0)

        path = _PLACEHOLDER.sub(substitute, self.path)
        if len(self.query_opts) > 0:
            return f"{path}?{self.query_opts.encode()}"
        return path

    async def create_request(self) -> CallRequest:
        """Serialize the op into a CallRequest.

        On any failure all upload files are closed before the exception
        propagates.

        Raises:
            ConfigurationError: If the method is not a valid HTTP token
            ValueError: If the payload cannot be JSON-encoded
        """
        try:
            return self._build()
        except BaseException:
            await close_uploads(self.upload_files())
            raise

    def _build(self) -> CallRequest:
        if not _METHOD_TOKEN.match(self.method or ""):
            raise ConfigurationError(f"invalid method {self.method!r}")

        headers = httpx.Headers()
        content: Union[bytes, AsyncIterator[bytes], None] = None

        if self.files:
            payload = encode_json(self.payload) if self.payload is not None else None
            boundary = secrets.token_hex(16)
            content = _multipart_body(boundary, payload, list(self.files))
            headers["Content-Type"] = f"multipart/form-data; boundary={boundary}"
        elif isinstance(self.payload, Values):
            content = self.payload.encode().encode("utf-8")
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        elif isinstance(self.payload, UploadFile):
            content = _raw_body(self.payload)
            headers["Content-Type"] = self.payload.content_type
        elif self.payload is not None:
            content = encode_json(self.payload)
            headers["Content-Type"] = "application/json"

        if self.accept:
            headers["Accept"] = self.accept

        return CallRequest(
            method=self.method.upper(),
            path=self.resolved_path(),
            headers=headers,
            content=content,
            payload=self.payload,
        )

    async def do(self, result_type: Optional[Type[T]] = None) -> Optional[T]:
        """Execute the op and decode the response.

        Args:
            result_type: Type to decode the JSON response into (dict, list,
                a pydantic model, ...).  ``Download`` returns the open
                response stream; None discards the body.

        Returns:
            Decoded result, a Download, or None

        Raises:
            ConfigurationError: If the op has no credential
            ResponseError: If DocuSign returns a non-2xx status
            ResponseDecodeError: If the body does not match result_type
        """
        from .response import resolve_response

        files = self.upload_files()
        try:
            if self.credential is None:
                raise ConfigurationError("nil credential")
            op = self
            wants_json = result_type is not None and result_type is not Download
            if wants_json and not self.accept:
                op = replace(self, accept="application/json")
            response = await self.credential.auth_do(op)
        finally:
            await close_uploads(files)
        return await resolve_response(response, result_type)
