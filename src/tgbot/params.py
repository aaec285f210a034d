"""Conversion of single outbound parameter values.

A parameter value ends up either as a form field string or, for file
content, as a multipart file part. This module owns the first decision and
the string conversion; `tgbot.request` assembles whole bodies.
"""

from __future__ import annotations

import enum
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import msgspec

__all__ = [
    "ChatAction",
    "EncodeDiagnostic",
    "InputFile",
    "ParseMode",
    "ValueEncodeError",
    "carries_file_content",
    "encode_value",
    "extension_for_mime",
    "guess_mime_for_path",
    "sniff_mime",
]


class ParseMode(str, enum.Enum):
    MARKDOWN = "Markdown"
    MARKDOWN_V2 = "MarkdownV2"
    HTML = "HTML"


class ChatAction(str, enum.Enum):
    TYPING = "typing"
    UPLOAD_PHOTO = "upload_photo"
    RECORD_VIDEO = "record_video"
    UPLOAD_VIDEO = "upload_video"
    RECORD_VOICE = "record_voice"
    UPLOAD_VOICE = "upload_voice"
    UPLOAD_DOCUMENT = "upload_document"
    CHOOSE_STICKER = "choose_sticker"
    FIND_LOCATION = "find_location"
    RECORD_VIDEO_NOTE = "record_video_note"
    UPLOAD_VIDEO_NOTE = "upload_video_note"


@dataclass(frozen=True, slots=True)
class InputFile:
    """A file to send: a local path, a remote URL, raw bytes, or a file id.

    Only the path and bytes variants are uploaded; URL and file id are sent
    as plain string fields and the platform resolves them.
    """

    path: Path | None = None
    url: str | None = None
    content: bytes | None = None
    file_id: str | None = None

    def __post_init__(self) -> None:
        populated = sum(
            value is not None
            for value in (self.path, self.url, self.content, self.file_id)
        )
        if populated != 1:
            raise ValueError(
                "InputFile needs exactly one of path, url, content, file_id"
            )

    @classmethod
    def from_path(cls, path: str | Path) -> InputFile:
        return cls(path=Path(path).expanduser())

    @classmethod
    def from_url(cls, url: str) -> InputFile:
        return cls(url=url)

    @classmethod
    def from_bytes(cls, content: bytes | bytearray) -> InputFile:
        return cls(content=bytes(content))

    @classmethod
    def from_file_id(cls, file_id: str) -> InputFile:
        return cls(file_id=file_id)

    @property
    def has_content(self) -> bool:
        return self.path is not None or self.content is not None

    def __repr__(self) -> str:
        if self.content is not None:
            return f"InputFile(content=<{len(self.content)} bytes>)"
        if self.path is not None:
            return f"InputFile(path={str(self.path)!r})"
        if self.url is not None:
            return f"InputFile(url={self.url!r})"
        return f"InputFile(file_id={self.file_id!r})"


@dataclass(frozen=True, slots=True)
class EncodeDiagnostic:
    """A parameter that was dropped from an outbound call."""

    name: str
    value_type: str
    reason: str


class ValueEncodeError(ValueError):
    pass


def carries_file_content(value: Any) -> bool:
    if isinstance(value, InputFile):
        return value.has_content
    return isinstance(value, (bytes, bytearray))


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(item) for item in value]
    return value


def encode_value(value: Any) -> str:
    """Convert one parameter value into its form field string.

    Raises `ValueEncodeError` when the value has no string form (raw
    bytes, uploadable files, objects that do not serialize to JSON).
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        inner = value.value
        if isinstance(inner, str):
            return inner
        return encode_value(inner)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return f"{value:.8f}"
    if isinstance(value, str):
        return value
    if isinstance(value, InputFile):
        if value.url is not None:
            return value.url
        if value.file_id is not None:
            return value.file_id
        raise ValueEncodeError("file content cannot be sent as a form field")
    if isinstance(value, (bytes, bytearray)):
        raise ValueEncodeError("raw bytes cannot be sent as a form field")
    try:
        builtins = msgspec.to_builtins(value, enc_hook=_reject)
        return msgspec.json.encode(_drop_none(builtins)).decode("utf-8")
    except (TypeError, ValueError, msgspec.EncodeError) as exc:
        raise ValueEncodeError(f"not JSON serializable: {exc}") from exc


def _reject(obj: Any) -> Any:
    raise TypeError(f"unsupported type {type(obj).__name__}")


# (offset, signature, mime)
_SIGNATURES: tuple[tuple[int, bytes, str], ...] = (
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"BM", "image/bmp"),
    (0, b"%PDF-", "application/pdf"),
    (0, b"PK\x03\x04", "application/zip"),
    (0, b"\x1f\x8b\x08", "application/gzip"),
    (0, b"OggS\x00", "audio/ogg"),
    (0, b"ID3", "audio/mpeg"),
    (0, b"\xff\xfb", "audio/mpeg"),
    (0, b"\x1a\x45\xdf\xa3", "video/webm"),
    (4, b"ftyp", "video/mp4"),
)

_EXTENSIONS: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "application/pdf": "pdf",
    "application/zip": "zip",
    "application/gzip": "gz",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "text/plain": "txt",
    "application/octet-stream": "bin",
}

_SNIFF_LEN = 512


def sniff_mime(data: bytes) -> str:
    head = data[:_SNIFF_LEN]
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    if head[:4] == b"RIFF" and head[8:12] == b"WAVE":
        return "audio/wav"
    for offset, signature, mime in _SIGNATURES:
        if head[offset : offset + len(signature)] == signature:
            return mime
    if not head or b"\x00" in head:
        return "application/octet-stream"
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as exc:
        # a multibyte sequence may be cut at the sniff boundary
        if len(data) <= _SNIFF_LEN or exc.start < len(head) - 3:
            return "application/octet-stream"
    return "text/plain"


def extension_for_mime(mime: str) -> str:
    ext = _EXTENSIONS.get(mime)
    if ext is not None:
        return ext
    guessed = mimetypes.guess_extension(mime)
    return guessed.lstrip(".") if guessed else "bin"


def guess_mime_for_path(path: Path) -> str:
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"
