from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from tgbot.api_models import BotCommand, File, User
from tgbot.bot import Bot
from tgbot.errors import ChatNotFound, TransportError, UnclassifiedError
from tgbot.params import ChatAction, InputFile, ParseMode
from tgbot.redact import REDACTED, hash_token
from tgbot.responses import Acknowledged, EditedMessage

from tests.telegram_fakes import TOKEN, FakeTelegramAPI, error, make_bot, ok

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

MESSAGE = {
    "message_id": 10,
    "date": 1700000000,
    "chat": {"id": 42, "type": "private"},
    "text": "hello",
}


def test_empty_token_is_rejected() -> None:
    with pytest.raises(ValueError):
        Bot("")


def test_urls_embed_token() -> None:
    bot = make_bot()

    assert bot.method_url("getMe") == f"https://api.telegram.org/bot{TOKEN}/getMe"
    assert bot.file_url("photos/file_1.jpg") == (
        f"https://api.telegram.org/file/bot{TOKEN}/photos/file_1.jpg"
    )
    assert TOKEN not in repr(bot)


def test_webhook_url_requires_host() -> None:
    with pytest.raises(ValueError, match="host"):
        _ = make_bot().webhook_url


@pytest.mark.anyio
async def test_get_me() -> None:
    api = FakeTelegramAPI()
    api.route("getMe", ok({"id": 1, "is_bot": True, "first_name": "Bot"}))
    bot = make_bot(api)

    response = await bot.get_me()

    assert response.unwrap() == User(id=1, is_bot=True, first_name="Bot")
    assert str(api.requests[0].url) == f"https://api.telegram.org/bot{TOKEN}/getMe"


@pytest.mark.anyio
async def test_send_message_omits_unset_options() -> None:
    api = FakeTelegramAPI()
    api.route("sendMessage", ok(MESSAGE))
    bot = make_bot(api)

    response = await bot.send_message(
        42,
        "*hi*",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup={"inline_keyboard": [[{"text": "A", "callback_data": "a"}]]},
    )

    assert response.ok
    assert response.result is not None
    assert response.result.message_id == 10
    assert api.form() == {
        "chat_id": "42",
        "text": "*hi*",
        "parse_mode": "Markdown",
        "reply_markup": '{"inline_keyboard":[[{"text":"A","callback_data":"a"}]]}',
    }


@pytest.mark.anyio
async def test_send_photo_from_path_is_multipart(tmp_path: Path) -> None:
    photo = tmp_path / "cat.png"
    photo.write_bytes(PNG)
    api = FakeTelegramAPI()
    api.route("sendPhoto", ok(MESSAGE))
    bot = make_bot(api)

    response = await bot.send_photo(42, InputFile.from_path(photo), caption="cat")

    assert response.ok
    request = api.requests[0]
    assert request.headers["content-type"].startswith("multipart/form-data")
    assert b'name="photo"; filename="cat.png"' in request.content
    assert b'name="caption"' in request.content


@pytest.mark.anyio
async def test_send_photo_by_file_id_is_urlencoded() -> None:
    api = FakeTelegramAPI()
    api.route("sendPhoto", ok(MESSAGE))
    bot = make_bot(api)

    await bot.send_photo(42, "AgACAgIAAxkBAAIB")

    assert api.requests[0].headers["content-type"] == (
        "application/x-www-form-urlencoded"
    )
    assert api.form() == {"chat_id": "42", "photo": "AgACAgIAAxkBAAIB"}


@pytest.mark.anyio
async def test_send_document_from_bytes() -> None:
    api = FakeTelegramAPI()
    api.route("sendDocument", ok(MESSAGE))
    bot = make_bot(api)

    await bot.send_document(42, b"plain report\n")

    assert b'filename="document.txt"' in api.requests[0].content
    assert b"Content-Type: text/plain" in api.requests[0].content


@pytest.mark.anyio
async def test_missing_local_file_becomes_failure_envelope(tmp_path: Path) -> None:
    api = FakeTelegramAPI()
    bot = make_bot(api)

    response = await bot.send_photo(42, InputFile.from_path(tmp_path / "gone.png"))

    assert not response.ok
    assert (response.description or "").startswith("sendPhoto failed: ")
    assert api.requests == []


@pytest.mark.anyio
async def test_network_failure_is_redacted_failure_envelope() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(
            f"failed to connect to {request.url} ({hash_token(TOKEN)})",
            request=request,
        )

    bot = Bot(
        TOKEN,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    response = await bot.send_chat_action(42, ChatAction.TYPING)

    assert not response.ok
    description = response.description or ""
    assert description.startswith("sendChatAction failed: ConnectError")
    assert TOKEN not in description
    assert hash_token(TOKEN) not in description
    assert REDACTED in description
    assert isinstance(response.error(), UnclassifiedError)


@pytest.mark.anyio
async def test_platform_error_is_returned_not_raised() -> None:
    api = FakeTelegramAPI()
    api.route("sendMessage", error("Bad Request: chat not found"))
    bot = make_bot(api)

    response = await bot.send_message(1, "hi")

    assert not response.ok
    assert isinstance(response.error(), ChatNotFound)
    with pytest.raises(ChatNotFound):
        response.unwrap()


@pytest.mark.anyio
async def test_edit_message_text_returns_edited_message() -> None:
    api = FakeTelegramAPI()
    api.route("editMessageText", ok({**MESSAGE, "text": "edited"}))
    bot = make_bot(api)

    response = await bot.edit_message_text("edited", chat_id=42, message_id=10)

    assert isinstance(response.result, EditedMessage)
    assert response.result.message.text == "edited"


@pytest.mark.anyio
async def test_edit_inline_message_returns_acknowledgement() -> None:
    api = FakeTelegramAPI()
    api.route("editMessageReplyMarkup", ok(True))
    bot = make_bot(api)

    response = await bot.edit_message_reply_markup(inline_message_id="inline-1")

    assert response.result == Acknowledged(True)
    assert api.form() == {"inline_message_id": "inline-1"}


@pytest.mark.anyio
async def test_set_webhook_registers_hashed_url_and_secret(tmp_path: Path) -> None:
    cert = tmp_path / "cert.pem"
    cert.write_bytes(b"-----BEGIN CERTIFICATE-----\n")
    api = FakeTelegramAPI()
    api.route("setWebhook", ok(True))
    bot = make_bot(
        api,
        webhook_host="bot.example.com",
        webhook_auth="secret_token",
        webhook_secret_token="s3cret",
    )

    response = await bot.set_webhook(certificate=cert, drop_pending_updates=True)

    assert response.unwrap() is True
    content = api.requests[0].content
    url = (
        f"https://bot.example.com:443/telegram/bot/webhook/{hash_token(TOKEN)}"
    ).encode()
    assert url in content
    assert b'name="certificate"; filename="cert.pem"' in content
    assert b"s3cret" in content
    assert b'name="drop_pending_updates"\r\n\r\ntrue' in content


@pytest.mark.anyio
async def test_delete_webhook_and_info() -> None:
    api = FakeTelegramAPI()
    api.route("deleteWebhook", ok(True))
    api.route(
        "getWebhookInfo",
        ok({"url": "", "has_custom_certificate": False, "pending_update_count": 3}),
    )
    bot = make_bot(api)

    assert (await bot.delete_webhook(drop_pending_updates=False)).unwrap() is True
    assert api.form() == {"drop_pending_updates": "false"}
    info = (await bot.get_webhook_info()).unwrap()
    assert info.pending_update_count == 3


@pytest.mark.anyio
async def test_get_file_and_download() -> None:
    api = FakeTelegramAPI()
    api.route(
        "getFile",
        ok({"file_id": "f1", "file_unique_id": "u1", "file_path": "photos/a.jpg"}),
    )
    api.route("a.jpg", httpx.Response(200, content=b"JPEGDATA"))
    bot = make_bot(api)

    file = (await bot.get_file("f1")).unwrap()
    assert file == File(file_id="f1", file_unique_id="u1", file_path="photos/a.jpg")

    assert file.file_path is not None
    assert await bot.download_file(file.file_path) == b"JPEGDATA"
    assert str(api.requests[-1].url) == bot.file_url("photos/a.jpg")


@pytest.mark.anyio
async def test_download_failure_raises_redacted_error() -> None:
    api = FakeTelegramAPI()
    bot = make_bot(api)

    with pytest.raises(TransportError) as exc_info:
        await bot.download_file("photos/missing.jpg")

    assert TOKEN not in str(exc_info.value)


@pytest.mark.anyio
async def test_set_my_commands_encodes_json() -> None:
    api = FakeTelegramAPI()
    api.route("setMyCommands", ok(True))
    bot = make_bot(api)

    await bot.set_my_commands([BotCommand(command="start", description="Start")])

    assert api.form() == {
        "commands": '[{"command":"start","description":"Start"}]'
    }


@pytest.mark.anyio
async def test_answer_callback_query() -> None:
    api = FakeTelegramAPI()
    api.route("answerCallbackQuery", ok(True))
    bot = make_bot(api)

    response = await bot.answer_callback_query("cq-1", text="done", show_alert=True)

    assert response.unwrap() is True
    assert api.form() == {
        "callback_query_id": "cq-1",
        "text": "done",
        "show_alert": "true",
    }


@pytest.mark.anyio
async def test_send_location_formats_floats() -> None:
    api = FakeTelegramAPI()
    api.route("sendLocation", ok(MESSAGE))
    bot = make_bot(api)

    await bot.send_location(42, 37.5, -122.25)

    assert api.form() == {
        "chat_id": "42",
        "latitude": "37.50000000",
        "longitude": "-122.25000000",
    }


@pytest.mark.anyio
async def test_verbose_bot_still_succeeds() -> None:
    api = FakeTelegramAPI()
    api.route("getMe", ok({"id": 1, "first_name": "Bot"}))
    bot = make_bot(api, verbose=True)

    assert (await bot.get_me()).ok


@pytest.mark.anyio
async def test_send_document_accepts_plain_path(tmp_path: Path) -> None:
    report = tmp_path / "report.pdf"
    report.write_bytes(b"%PDF-1.4 fake")
    api = FakeTelegramAPI()
    api.route("sendDocument", ok(MESSAGE))
    bot = make_bot(api)

    response = await bot.send_document(42, report)

    assert response.ok
    content = api.requests[0].content
    assert b'name="document"; filename="report.pdf"' in content
    assert b"%PDF-1.4 fake" in content


@pytest.mark.anyio
async def test_unparseable_body_does_not_leak_token() -> None:
    api = FakeTelegramAPI()
    page = (
        f"<html>502 Bad Gateway for /bot{TOKEN}/getMe {hash_token(TOKEN)}</html>"
    )
    api.route("getMe", httpx.Response(502, text=page))
    api.route("editMessageText", httpx.Response(502, text=page))
    bot = make_bot(api)

    response = await bot.get_me()
    edited = await bot.edit_message_text("x", chat_id=1, message_id=2)

    for failed in (response, edited):
        assert not failed.ok
        description = failed.description or ""
        assert description.startswith("json parse error")
        assert TOKEN not in description
        assert hash_token(TOKEN) not in description
        assert REDACTED in description
