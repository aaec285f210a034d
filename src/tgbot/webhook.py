from __future__ import annotations

import enum
import hmac
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import msgspec
import uvicorn
from fastapi import FastAPI, HTTPException, Request

from .api_models import Update
from .logging import get_logger

if TYPE_CHECKING:
    from .bot import Bot

logger = get_logger(__name__)

SECRET_TOKEN_HEADER = "X-Telegram-Bot-Api-Secret-Token"


class WebhookAuth(str, enum.Enum):
    # only the token-derived path guards the route
    PATH = "path"
    # the path plus a matching secret header
    SECRET_TOKEN = "secret_token"


def _check_secret(request: Request, expected: str) -> None:
    supplied = request.headers.get(SECRET_TOKEN_HEADER, "")
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        logger.warning(
            "webhook.forbidden",
            client=request.client.host if request.client else None,
        )
        raise HTTPException(status_code=403, detail="Invalid secret token")


def create_webhook_app(bot: Bot, *, manage_bot: bool = True) -> FastAPI:
    """Build the ASGI app that receives pushed updates for `bot`.

    With `manage_bot`, the app lifespan starts the bot's handler pool and
    closes it on shutdown; otherwise the caller keeps the bot open.
    """
    auth = bot.webhook_auth
    secret = bot.webhook_secret_token
    if auth is WebhookAuth.SECRET_TOKEN and not secret:
        raise ValueError("secret_token webhook auth needs a secret token")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not manage_bot:
            yield
            return
        async with bot:
            logger.info("webhook.started", path=bot.webhook_path, auth=auth.value)
            yield
        logger.info("webhook.stopped")

    app = FastAPI(
        lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None
    )

    @app.post(bot.webhook_path)
    async def receive_update(request: Request) -> dict[str, bool]:
        if auth is WebhookAuth.SECRET_TOKEN and secret is not None:
            _check_secret(request, secret)
        body = await request.body()
        try:
            update = msgspec.json.decode(body, type=Update)
        except msgspec.DecodeError as exc:
            logger.warning(
                "webhook.decode_failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            bot.dispatcher.dispatch_error(exc)
        else:
            bot.dispatcher.dispatch(update)
        # acknowledged either way so the platform does not redeliver
        return {"ok": True}

    return app


async def serve_webhook(
    bot: Bot,
    cert_path: str | Path,
    key_path: str | Path,
    *,
    bind_host: str = "0.0.0.0",
) -> None:
    """Serve the webhook over TLS on `bot.webhook_port` until cancelled."""
    app = create_webhook_app(bot)
    config = uvicorn.Config(
        app,
        host=bind_host,
        port=bot.webhook_port,
        ssl_certfile=str(cert_path),
        ssl_keyfile=str(key_path),
        log_config=None,
        access_log=bot.verbose,
    )
    logger.info(
        "webhook.serving",
        host=bind_host,
        port=bot.webhook_port,
        path=bot.webhook_path,
    )
    await uvicorn.Server(config).serve()
