from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import IO, Any
from urllib.parse import urlencode

import httpx

from .errors import RequestBuildError
from .logging import get_logger
from .params import (
    EncodeDiagnostic,
    InputFile,
    ValueEncodeError,
    carries_file_content,
    encode_value,
    extension_for_mime,
    guess_mime_for_path,
    sniff_mime,
)

logger = get_logger(__name__)

FORM_URLENCODED = "application/x-www-form-urlencoded"

FilePart = tuple[str, IO[bytes] | bytes, str]


@dataclass(slots=True)
class RequestBody:
    fields: dict[str, str] = field(default_factory=dict)
    files: dict[str, FilePart] = field(default_factory=dict)
    diagnostics: list[EncodeDiagnostic] = field(default_factory=list)
    multipart: bool = False

    def build_request(self, client: httpx.AsyncClient, url: str) -> httpx.Request:
        if self.multipart:
            # httpx picks the boundary and sets the multipart content type
            return client.build_request(
                "POST", url, data=self.fields, files=self.files
            )
        encoded = urlencode(self.fields).encode("ascii")
        return client.build_request(
            "POST",
            url,
            content=encoded,
            headers={
                "Content-Type": FORM_URLENCODED,
                "Content-Length": str(len(encoded)),
            },
        )


def needs_multipart(params: Mapping[str, Any]) -> bool:
    return any(carries_file_content(value) for value in params.values())


def _drop(body: RequestBody, name: str, value: Any, reason: str) -> None:
    diagnostic = EncodeDiagnostic(
        name=name, value_type=type(value).__name__, reason=reason
    )
    body.diagnostics.append(diagnostic)
    logger.warning(
        "request.param_dropped",
        param=name,
        value_type=diagnostic.value_type,
        reason=reason,
    )


def _bytes_part(name: str, content: bytes) -> FilePart:
    mime = sniff_mime(content)
    return (f"{name}.{extension_for_mime(mime)}", content, mime)


def _add_file(
    body: RequestBody, stack: ExitStack, name: str, value: InputFile | bytes
) -> None:
    if isinstance(value, (bytes, bytearray)):
        body.files[name] = _bytes_part(name, bytes(value))
        return
    if value.content is not None:
        body.files[name] = _bytes_part(name, value.content)
        return
    path = value.path
    if path is None:
        raise RequestBuildError(f"parameter {name!r} has no file content")
    try:
        handle = stack.enter_context(path.open("rb"))
    except OSError as exc:
        raise RequestBuildError(
            f"cannot open file for parameter {name!r}: {exc}"
        ) from exc
    body.files[name] = (path.name, handle, guess_mime_for_path(path))


def _fill(body: RequestBody, stack: ExitStack, params: Mapping[str, Any]) -> None:
    for name, value in params.items():
        if value is None:
            continue
        if body.multipart and carries_file_content(value):
            _add_file(body, stack, name, value)
            continue
        try:
            body.fields[name] = encode_value(value)
        except ValueEncodeError as exc:
            _drop(body, name, value, str(exc))


@contextmanager
def open_request_body(params: Mapping[str, Any]) -> Iterator[RequestBody]:
    """Encode a parameter bag, keeping local files open for the block.

    Every file opened here is closed when the block exits, whether the body
    was sent, failed to build, or the send raised.
    """
    with ExitStack() as stack:
        body = RequestBody(multipart=needs_multipart(params))
        _fill(body, stack, params)
        yield body
