from __future__ import annotations

import httpx
import pytest

from tgbot.errors import TransportError
from tgbot.redact import REDACTED, Redactor, hash_token
from tgbot.request import open_request_body
from tgbot.transport import HttpTransport

from tests.telegram_fakes import TOKEN


def _transport(handler) -> HttpTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTransport(Redactor(TOKEN), http_client=client)


def test_redactor_scrubs_token_and_hash() -> None:
    redact = Redactor(TOKEN)
    text = f"GET https://api.telegram.org/bot{TOKEN}/getMe via /hook/{hash_token(TOKEN)}"

    redacted = redact(text)

    assert TOKEN not in redacted
    assert hash_token(TOKEN) not in redacted
    assert redacted.count(REDACTED) == 2


@pytest.mark.anyio
async def test_send_returns_body_for_any_status() -> None:
    body = b'{"ok":false,"error_code":401,"description":"Unauthorized"}'

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, content=body)

    transport = _transport(handler)
    with open_request_body({"chat_id": 1}) as request_body:
        content = await transport.send(
            f"https://api.telegram.org/bot{TOKEN}/getMe", request_body
        )

    assert content == body


@pytest.mark.anyio
async def test_send_network_error_is_redacted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(f"cannot reach {request.url}", request=request)

    transport = _transport(handler)
    with open_request_body({}) as request_body:
        with pytest.raises(TransportError) as exc_info:
            await transport.send(
                f"https://api.telegram.org/bot{TOKEN}/getMe",
                request_body,
                method="getMe",
            )

    message = str(exc_info.value)
    assert "ConnectError" in message
    assert TOKEN not in message
    assert REDACTED in message
    assert exc_info.value.method == "getMe"


@pytest.mark.anyio
async def test_get_raises_on_http_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, content=b"not found")

    transport = _transport(handler)
    with pytest.raises(TransportError, match="HTTP 404"):
        await transport.get(f"https://api.telegram.org/file/bot{TOKEN}/photos/a.jpg")


@pytest.mark.anyio
async def test_close_leaves_injected_client_open() -> None:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200))
    )
    transport = HttpTransport(Redactor(TOKEN), http_client=client)

    await transport.close()

    assert not client.is_closed
    await client.aclose()
