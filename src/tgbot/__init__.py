"""Telegram Bot API client runtime: polling, webhooks and update routing."""

from .bot import Bot
from .dispatch import Dispatcher, HandlerPool, HandlerResult, Route
from .errors import RequestBuildError, TelegramAPIError, TgBotError, TransportError
from .params import ChatAction, InputFile, ParseMode
from .polling import Cursor, Poller
from .responses import Acknowledged, APIResponse, EditedMessage, EditResult
from .webhook import WebhookAuth, create_webhook_app, serve_webhook

__version__ = "0.1.0"

__all__ = [
    "APIResponse",
    "Acknowledged",
    "Bot",
    "ChatAction",
    "Cursor",
    "Dispatcher",
    "EditResult",
    "EditedMessage",
    "HandlerPool",
    "HandlerResult",
    "InputFile",
    "ParseMode",
    "Poller",
    "RequestBuildError",
    "Route",
    "TelegramAPIError",
    "TgBotError",
    "TransportError",
    "WebhookAuth",
    "create_webhook_app",
    "serve_webhook",
]
