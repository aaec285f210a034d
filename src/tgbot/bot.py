from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import anyio
import httpx
import msgspec

from .api_models import (
    BotCommand,
    File,
    Message,
    Update,
    UpdateType,
    User,
    WebhookInfo,
)
from .dispatch import Dispatcher, Handler, HandlerPool
from .errors import RequestBuildError, TransportError
from .logging import get_logger
from .params import ChatAction, InputFile, ParseMode
from .polling import Cursor, Poller, PollerState
from .redact import Redactor, hash_token, register_secret
from .request import open_request_body
from .responses import (
    APIResponse,
    EditResult,
    decode_edit_response,
    decode_response,
    failure,
)
from .transport import HttpTransport
from .webhook import WebhookAuth, serve_webhook

if TYPE_CHECKING:
    from .settings import BotSettings


logger = get_logger(__name__)

API_BASE_URL = "https://api.telegram.org/bot"
FILE_BASE_URL = "https://api.telegram.org/file/bot"
WEBHOOK_PATH_PREFIX = "/telegram/bot/webhook"
DEFAULT_WEBHOOK_PORT = 443

FileArg = InputFile | Path | bytes | str


class Bot:
    """Bot API client plus the routing table for inbound updates.

    Use as an async context manager to start the handler pool and release
    the HTTP client on exit. Outbound methods never raise for network,
    decode, or platform errors; they return an `APIResponse` with
    `ok=False` instead.
    """

    def __init__(
        self,
        token: str,
        *,
        verbose: bool = False,
        webhook_host: str | None = None,
        webhook_port: int = DEFAULT_WEBHOOK_PORT,
        webhook_auth: WebhookAuth | str = WebhookAuth.PATH,
        webhook_secret_token: str | None = None,
        max_concurrent_handlers: int = 64,
        request_timeout_s: float = 120,
        cursor: Cursor | None = None,
        http_client: httpx.AsyncClient | None = None,
        api_base_url: str = API_BASE_URL,
        file_base_url: str = FILE_BASE_URL,
    ) -> None:
        if not token:
            raise ValueError("bot token is empty")
        self._token = token
        self._redact = Redactor(token)
        register_secret(*self._redact.secrets)
        if webhook_secret_token:
            register_secret(webhook_secret_token)
        self.verbose = verbose
        self.webhook_host = webhook_host
        self.webhook_port = webhook_port
        self.webhook_auth = WebhookAuth(webhook_auth)
        self.webhook_secret_token = webhook_secret_token
        self.cursor = cursor if cursor is not None else Cursor()
        self._api_base = f"{api_base_url}{token}"
        self._file_base = f"{file_base_url}{token}"
        self._transport = HttpTransport(
            self._redact, timeout_s=request_timeout_s, http_client=http_client
        )
        self.dispatcher = Dispatcher(
            self, pool=HandlerPool(max_concurrent_handlers)
        )
        self._poller: Poller | None = None

    @classmethod
    def from_settings(
        cls, settings: BotSettings, *, http_client: httpx.AsyncClient | None = None
    ) -> Bot:
        webhook = settings.webhook
        return cls(
            settings.bot_token.get_secret_value(),
            verbose=settings.verbose,
            webhook_host=webhook.host,
            webhook_port=webhook.port,
            webhook_auth=webhook.auth,
            webhook_secret_token=(
                webhook.secret_token.get_secret_value()
                if webhook.secret_token is not None
                else None
            ),
            max_concurrent_handlers=settings.max_concurrent_handlers,
            request_timeout_s=settings.request_timeout_s,
            cursor=Cursor(settings.polling.offset),
            http_client=http_client,
        )

    def __repr__(self) -> str:
        return f"Bot(token={self._redact(self._token)!r})"

    async def __aenter__(self) -> Bot:
        await self.dispatcher.pool.__aenter__()
        return self

    async def __aexit__(self, *exc_info: Any) -> bool | None:
        try:
            return await self.dispatcher.pool.__aexit__(*exc_info)
        finally:
            await self.close()

    async def close(self) -> None:
        await self._transport.close()

    def redact(self, text: str) -> str:
        return self._redact(text)

    def method_url(self, method: str) -> str:
        return f"{self._api_base}/{method}"

    def file_url(self, file_path: str) -> str:
        return f"{self._file_base}/{file_path}"

    @property
    def webhook_path(self) -> str:
        return f"{WEBHOOK_PATH_PREFIX}/{hash_token(self._token)}"

    @property
    def webhook_url(self) -> str:
        if not self.webhook_host:
            raise ValueError("webhook host is not configured")
        return f"https://{self.webhook_host}:{self.webhook_port}{self.webhook_path}"

    # handler registration

    def add_command_handler(self, command: str, handler: Handler) -> None:
        self.dispatcher.add_command_handler(command, handler)

    def set_no_matching_command_handler(self, handler: Handler | None) -> None:
        self.dispatcher.set_no_matching_command_handler(handler)

    def set_update_handler(self, handler: Handler | None) -> None:
        self.dispatcher.set_update_handler(handler)

    def set_message_handler(self, handler: Handler | None) -> None:
        self.dispatcher.set_message_handler(handler)

    def set_media_group_handler(self, handler: Handler | None) -> None:
        self.dispatcher.set_media_group_handler(handler)

    def set_channel_post_handler(self, handler: Handler | None) -> None:
        self.dispatcher.set_channel_post_handler(handler)

    def set_chat_member_update_handler(self, handler: Handler | None) -> None:
        self.dispatcher.set_chat_member_update_handler(handler)

    def on_update_type(self, update_type: UpdateType | str, handler: Handler | None) -> None:
        self.dispatcher.on_update_type(update_type, handler)

    # update sources

    async def start_polling(
        self,
        *,
        update_handler: Handler | None = None,
        interval_s: float = 1.0,
        timeout_s: int = 1,
        limit: int = 100,
        allowed_updates: Sequence[UpdateType | str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        """Poll until `stop_polling()`; resumes from `self.cursor`."""
        if self._poller is not None and self._poller.state is PollerState.RUNNING:
            raise RuntimeError("polling is already running")
        if update_handler is not None:
            self.set_update_handler(update_handler)
        poller = Poller(
            self,
            cursor=self.cursor,
            interval_s=interval_s,
            timeout_s=timeout_s,
            limit=limit,
            allowed_updates=allowed_updates,
            sleep=sleep,
        )
        self._poller = poller
        await poller.run()

    def stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.stop()

    async def serve_webhook(
        self,
        cert_path: str | Path,
        key_path: str | Path,
        *,
        update_handler: Handler | None = None,
    ) -> None:
        if update_handler is not None:
            self.set_update_handler(update_handler)
        await serve_webhook(self, cert_path, key_path)

    # transport

    async def _post(self, method: str, params: dict[str, Any]) -> bytes:
        with open_request_body(params) as body:
            if self.verbose:
                logger.debug(
                    "bot.request",
                    method=method,
                    multipart=body.multipart,
                    fields=sorted(body.fields),
                    files=sorted(body.files),
                )
            return await self._transport.send(
                self.method_url(method), body, method=method
            )

    def _failed(self, method: str, exc: Exception) -> APIResponse[Any]:
        return failure(self._redact(f"{method} failed: {exc}"))

    def _scrub(self, response: APIResponse[Any]) -> APIResponse[Any]:
        # failure text may quote the raw body, which can echo the request URL
        if response.ok or response.description is None:
            return response
        return msgspec.structs.replace(
            response, description=self._redact(response.description)
        )

    def _log_response(self, method: str, response: APIResponse[Any]) -> None:
        if self.verbose:
            logger.debug(
                "bot.response",
                method=method,
                ok=response.ok,
                description=response.description,
            )

    async def request(
        self, method: str, params: dict[str, Any], result_type: Any = Any
    ) -> APIResponse[Any]:
        """Call any Bot API method and decode its result as `result_type`."""
        try:
            content = await self._post(method, params)
        except (TransportError, RequestBuildError) as exc:
            return self._failed(method, exc)
        response = self._scrub(decode_response(content, result_type))
        self._log_response(method, response)
        return response

    async def _edit(self, method: str, params: dict[str, Any]) -> APIResponse[EditResult]:
        try:
            content = await self._post(method, params)
        except (TransportError, RequestBuildError) as exc:
            return self._failed(method, exc)
        response = self._scrub(decode_edit_response(content))
        self._log_response(method, response)
        return response

    # updates and webhook

    async def get_me(self) -> APIResponse[User]:
        return await self.request("getMe", {}, User)

    async def get_updates(
        self,
        *,
        offset: int | None = None,
        limit: int | None = None,
        timeout: int | None = None,
        allowed_updates: Sequence[UpdateType | str] | None = None,
    ) -> APIResponse[list[Update]]:
        params = {
            "offset": offset,
            "limit": limit,
            "timeout": timeout,
            "allowed_updates": _update_types(allowed_updates),
        }
        return await self.request("getUpdates", params, list[Update])

    async def set_webhook(
        self,
        *,
        certificate: InputFile | str | Path | None = None,
        ip_address: str | None = None,
        max_connections: int | None = None,
        allowed_updates: Sequence[UpdateType | str] | None = None,
        drop_pending_updates: bool | None = None,
    ) -> APIResponse[bool]:
        """Register `webhook_url`, sending the secret token if one is set."""
        if isinstance(certificate, (str, Path)):
            certificate = InputFile.from_path(certificate)
        params = {
            "url": self.webhook_url,
            "certificate": certificate,
            "ip_address": ip_address,
            "max_connections": max_connections,
            "allowed_updates": _update_types(allowed_updates),
            "drop_pending_updates": drop_pending_updates,
            "secret_token": self.webhook_secret_token,
        }
        return await self.request("setWebhook", params, bool)

    async def delete_webhook(
        self, *, drop_pending_updates: bool | None = None
    ) -> APIResponse[bool]:
        return await self.request(
            "deleteWebhook", {"drop_pending_updates": drop_pending_updates}, bool
        )

    async def get_webhook_info(self) -> APIResponse[WebhookInfo]:
        return await self.request("getWebhookInfo", {}, WebhookInfo)

    # messages

    async def send_message(
        self,
        chat_id: int | str,
        text: str,
        *,
        parse_mode: ParseMode | str | None = None,
        entities: list[Any] | None = None,
        disable_notification: bool | None = None,
        reply_to_message_id: int | None = None,
        message_thread_id: int | None = None,
        reply_markup: Any = None,
    ) -> APIResponse[Message]:
        params = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "entities": entities,
            "disable_notification": disable_notification,
            "reply_to_message_id": reply_to_message_id,
            "message_thread_id": message_thread_id,
            "reply_markup": reply_markup,
        }
        return await self.request("sendMessage", params, Message)

    async def _send_media(
        self,
        method: str,
        field: str,
        chat_id: int | str,
        media: FileArg,
        extra: dict[str, Any],
    ) -> APIResponse[Message]:
        if isinstance(media, Path):
            media = InputFile.from_path(media)
        params = {"chat_id": chat_id, field: media, **extra}
        return await self.request(method, params, Message)

    async def send_photo(
        self,
        chat_id: int | str,
        photo: FileArg,
        *,
        caption: str | None = None,
        parse_mode: ParseMode | str | None = None,
        disable_notification: bool | None = None,
        reply_to_message_id: int | None = None,
        message_thread_id: int | None = None,
        reply_markup: Any = None,
    ) -> APIResponse[Message]:
        """`photo` as a plain `str` is a file id or URL; pass local files as `Path`."""
        return await self._send_media(
            "sendPhoto",
            "photo",
            chat_id,
            photo,
            {
                "caption": caption,
                "parse_mode": parse_mode,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "message_thread_id": message_thread_id,
                "reply_markup": reply_markup,
            },
        )

    async def send_document(
        self,
        chat_id: int | str,
        document: FileArg,
        *,
        caption: str | None = None,
        parse_mode: ParseMode | str | None = None,
        disable_notification: bool | None = None,
        reply_to_message_id: int | None = None,
        message_thread_id: int | None = None,
        reply_markup: Any = None,
    ) -> APIResponse[Message]:
        return await self._send_media(
            "sendDocument",
            "document",
            chat_id,
            document,
            {
                "caption": caption,
                "parse_mode": parse_mode,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "message_thread_id": message_thread_id,
                "reply_markup": reply_markup,
            },
        )

    async def send_location(
        self,
        chat_id: int | str,
        latitude: float,
        longitude: float,
        *,
        disable_notification: bool | None = None,
        reply_to_message_id: int | None = None,
        reply_markup: Any = None,
    ) -> APIResponse[Message]:
        params = {
            "chat_id": chat_id,
            "latitude": latitude,
            "longitude": longitude,
            "disable_notification": disable_notification,
            "reply_to_message_id": reply_to_message_id,
            "reply_markup": reply_markup,
        }
        return await self.request("sendLocation", params, Message)

    async def send_chat_action(
        self, chat_id: int | str, action: ChatAction | str
    ) -> APIResponse[bool]:
        return await self.request(
            "sendChatAction", {"chat_id": chat_id, "action": action}, bool
        )

    async def forward_message(
        self,
        chat_id: int | str,
        from_chat_id: int | str,
        message_id: int,
        *,
        disable_notification: bool | None = None,
    ) -> APIResponse[Message]:
        params = {
            "chat_id": chat_id,
            "from_chat_id": from_chat_id,
            "message_id": message_id,
            "disable_notification": disable_notification,
        }
        return await self.request("forwardMessage", params, Message)

    async def delete_message(
        self, chat_id: int | str, message_id: int
    ) -> APIResponse[bool]:
        return await self.request(
            "deleteMessage", {"chat_id": chat_id, "message_id": message_id}, bool
        )

    # edits return the message, or `true` for inline messages

    async def edit_message_text(
        self,
        text: str,
        *,
        chat_id: int | str | None = None,
        message_id: int | None = None,
        inline_message_id: str | None = None,
        parse_mode: ParseMode | str | None = None,
        entities: list[Any] | None = None,
        reply_markup: Any = None,
    ) -> APIResponse[EditResult]:
        params = {
            "chat_id": chat_id,
            "message_id": message_id,
            "inline_message_id": inline_message_id,
            "text": text,
            "parse_mode": parse_mode,
            "entities": entities,
            "reply_markup": reply_markup,
        }
        return await self._edit("editMessageText", params)

    async def edit_message_caption(
        self,
        *,
        chat_id: int | str | None = None,
        message_id: int | None = None,
        inline_message_id: str | None = None,
        caption: str | None = None,
        parse_mode: ParseMode | str | None = None,
        reply_markup: Any = None,
    ) -> APIResponse[EditResult]:
        params = {
            "chat_id": chat_id,
            "message_id": message_id,
            "inline_message_id": inline_message_id,
            "caption": caption,
            "parse_mode": parse_mode,
            "reply_markup": reply_markup,
        }
        return await self._edit("editMessageCaption", params)

    async def edit_message_reply_markup(
        self,
        *,
        chat_id: int | str | None = None,
        message_id: int | None = None,
        inline_message_id: str | None = None,
        reply_markup: Any = None,
    ) -> APIResponse[EditResult]:
        params = {
            "chat_id": chat_id,
            "message_id": message_id,
            "inline_message_id": inline_message_id,
            "reply_markup": reply_markup,
        }
        return await self._edit("editMessageReplyMarkup", params)

    # queries

    async def answer_callback_query(
        self,
        callback_query_id: str,
        *,
        text: str | None = None,
        show_alert: bool | None = None,
        url: str | None = None,
        cache_time: int | None = None,
    ) -> APIResponse[bool]:
        params = {
            "callback_query_id": callback_query_id,
            "text": text,
            "show_alert": show_alert,
            "url": url,
            "cache_time": cache_time,
        }
        return await self.request("answerCallbackQuery", params, bool)

    async def answer_inline_query(
        self,
        inline_query_id: str,
        results: list[Any],
        *,
        cache_time: int | None = None,
        is_personal: bool | None = None,
        next_offset: str | None = None,
    ) -> APIResponse[bool]:
        params = {
            "inline_query_id": inline_query_id,
            "results": results,
            "cache_time": cache_time,
            "is_personal": is_personal,
            "next_offset": next_offset,
        }
        return await self.request("answerInlineQuery", params, bool)

    # files

    async def get_file(self, file_id: str) -> APIResponse[File]:
        return await self.request("getFile", {"file_id": file_id}, File)

    async def download_file(self, file_path: str) -> bytes:
        """Fetch a file by the `file_path` from `get_file`.

        Raises `TransportError` (redacted) on network failure or non-2xx.
        """
        return await self._transport.get(self.file_url(file_path))

    # commands menu

    async def set_my_commands(
        self,
        commands: Sequence[BotCommand],
        *,
        scope: Any = None,
        language_code: str | None = None,
    ) -> APIResponse[bool]:
        params = {
            "commands": list(commands),
            "scope": scope,
            "language_code": language_code,
        }
        return await self.request("setMyCommands", params, bool)

    async def get_my_commands(
        self, *, scope: Any = None, language_code: str | None = None
    ) -> APIResponse[list[BotCommand]]:
        params = {"scope": scope, "language_code": language_code}
        return await self.request("getMyCommands", params, list[BotCommand])

    async def delete_my_commands(
        self, *, scope: Any = None, language_code: str | None = None
    ) -> APIResponse[bool]:
        params = {"scope": scope, "language_code": language_code}
        return await self.request("deleteMyCommands", params, bool)


def _update_types(values: Sequence[UpdateType | str] | None) -> list[str] | None:
    if values is None:
        return None
    return [UpdateType(value).value for value in values]
