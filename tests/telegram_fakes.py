from __future__ import annotations

from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qs

import httpx
import msgspec

from tgbot.api_models import Chat, Message, Update, User
from tgbot.bot import Bot

TOKEN = "123456:ABCdefGhIJKlmNoPQRstuVWxyz012345"


def ok(result: Any) -> httpx.Response:
    return httpx.Response(200, json={"ok": True, "result": result})


def error(description: str, *, status: int = 400, **parameters: Any) -> httpx.Response:
    payload: dict[str, Any] = {
        "ok": False,
        "error_code": status,
        "description": description,
    }
    if parameters:
        payload["parameters"] = parameters
    return httpx.Response(status, json=payload)


class FakeTelegramAPI:
    """Records Bot API requests and answers them from per-method handlers."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def route(
        self, method: str, response: httpx.Response | Callable[[httpx.Request], httpx.Response]
    ) -> None:
        if isinstance(response, httpx.Response):
            fixed = response
            self.routes[method] = lambda request: fixed
        else:
            self.routes[method] = response

    def methods(self) -> list[str]:
        return [request.url.path.rsplit("/", 1)[-1] for request in self.requests]

    def form(self, index: int = -1) -> dict[str, str]:
        request = self.requests[index]
        parsed = parse_qs(request.content.decode("ascii"), keep_blank_values=True)
        return {key: values[0] for key, values in parsed.items()}

    def handler(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        method = request.url.path.rsplit("/", 1)[-1]
        route = self.routes.get(method)
        if route is None:
            return error("Not Found: method not found", status=404)
        return route(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def make_bot(api: FakeTelegramAPI | None = None, **kwargs: Any) -> Bot:
    api = api or FakeTelegramAPI()
    return Bot(TOKEN, http_client=api.client(), **kwargs)


def message_update(
    update_id: int,
    text: str | None = "hello",
    *,
    chat_id: int = 123,
    edited: bool = False,
    media_group_id: str | None = None,
) -> Update:
    message = Message(
        message_id=update_id * 10,
        text=text,
        chat=Chat(id=chat_id, type="private"),
        from_=User(id=9, first_name="Ann"),
        media_group_id=media_group_id,
    )
    if edited:
        return Update(update_id=update_id, edited_message=message)
    return Update(update_id=update_id, message=message)


def update_payload(update: Update) -> dict[str, Any]:
    return msgspec.to_builtins(update)
