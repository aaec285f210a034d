from __future__ import annotations

from pathlib import Path

import msgspec
import pytest

from tgbot.api_models import BotCommand
from tgbot.params import (
    ChatAction,
    InputFile,
    ParseMode,
    ValueEncodeError,
    carries_file_content,
    encode_value,
    extension_for_mime,
    guess_mime_for_path,
    sniff_mime,
)

PNG_HEADER = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class Button(msgspec.Struct):
    text: str
    url: str | None = None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (True, "true"),
        (False, "false"),
        (42, "42"),
        (-7, "-7"),
        (1.5, "1.50000000"),
        (37.7749295, "37.77492950"),
        ("plain text", "plain text"),
        (ParseMode.MARKDOWN_V2, "MarkdownV2"),
        (ChatAction.TYPING, "typing"),
    ],
)
def test_encode_value_primitives(value: object, expected: str) -> None:
    assert encode_value(value) == expected


def test_encode_value_structured_as_json() -> None:
    markup = {"inline_keyboard": [[{"text": "Go", "callback_data": "go"}]]}
    assert msgspec.json.decode(encode_value(markup)) == markup
    assert encode_value(["message", "callback_query"]) == '["message","callback_query"]'


def test_encode_value_struct_drops_none_fields() -> None:
    assert encode_value([Button(text="Go")]) == '[{"text":"Go"}]'
    commands = [BotCommand(command="start", description="Start")]
    assert encode_value(commands) == '[{"command":"start","description":"Start"}]'


def test_encode_value_file_reference_without_content() -> None:
    assert encode_value(InputFile.from_file_id("AgADBAAD")) == "AgADBAAD"
    assert (
        encode_value(InputFile.from_url("https://example.com/cat.png"))
        == "https://example.com/cat.png"
    )


@pytest.mark.parametrize(
    "value",
    [
        b"raw",
        InputFile.from_bytes(b"raw"),
        object(),
        {"when": object()},
    ],
)
def test_encode_value_rejects_unencodable(value: object) -> None:
    with pytest.raises(ValueEncodeError):
        encode_value(value)


def test_input_file_requires_exactly_one_variant() -> None:
    with pytest.raises(ValueError):
        InputFile()
    with pytest.raises(ValueError):
        InputFile(url="https://example.com/a.png", file_id="abc")


def test_input_file_repr_hides_content() -> None:
    assert repr(InputFile.from_bytes(b"x" * 2048)) == "InputFile(content=<2048 bytes>)"


def test_carries_file_content(tmp_path: Path) -> None:
    assert carries_file_content(InputFile.from_path(tmp_path / "a.png"))
    assert carries_file_content(InputFile.from_bytes(b"data"))
    assert carries_file_content(b"data")
    assert not carries_file_content(InputFile.from_file_id("abc"))
    assert not carries_file_content(InputFile.from_url("https://example.com"))
    assert not carries_file_content("abc")


@pytest.mark.parametrize(
    ("data", "mime"),
    [
        (PNG_HEADER, "image/png"),
        (b"\xff\xd8\xff\xe0" + b"\x00" * 8, "image/jpeg"),
        (b"GIF89a" + b"\x00" * 8, "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"RIFF\x00\x00\x00\x00WAVEfmt ", "audio/wav"),
        (b"%PDF-1.7\n", "application/pdf"),
        (b"\x00\x00\x00\x18ftypmp42", "video/mp4"),
        (b"hello, world\n", "text/plain"),
        ("привет".encode(), "text/plain"),
        (b"\x00\x01\x02\x03", "application/octet-stream"),
        (b"", "application/octet-stream"),
    ],
)
def test_sniff_mime(data: bytes, mime: str) -> None:
    assert sniff_mime(data) == mime


def test_sniff_mime_tolerates_multibyte_cut_at_boundary() -> None:
    data = b"a" * 511 + "é".encode() + b"tail"
    assert sniff_mime(data) == "text/plain"


def test_extension_for_mime() -> None:
    assert extension_for_mime("image/jpeg") == "jpg"
    assert extension_for_mime("application/octet-stream") == "bin"
    assert extension_for_mime("application/x-not-a-type") == "bin"


def test_guess_mime_for_path() -> None:
    assert guess_mime_for_path(Path("photo.png")) == "image/png"
    assert guess_mime_for_path(Path("noext")) == "application/octet-stream"
