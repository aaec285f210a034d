"""Routing of inbound updates to user handlers.

Precedence, first match wins:

1. a message whose text starts with a command token goes to the handler
   registered for that command, or to the no-matching-command handler;
2. a handler registered for the update's populated variant;
3. the generic update handler.

Handlers run on a `HandlerPool` and are never awaited by the caller.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import anyio

from .api_models import Update, UpdateType
from .logging import get_logger

if TYPE_CHECKING:
    from anyio.abc import TaskGroup

logger = get_logger(__name__)

COMMAND_PREFIX = "/"

Handler = Callable[..., Any]


@dataclass(slots=True)
class HandlerResult:
    label: str
    done: anyio.Event = field(default_factory=anyio.Event)
    value: Any = None
    error: Exception | None = None

    async def wait(self) -> Any:
        await self.done.wait()
        return self.value


class HandlerPool:
    """Runs handlers as background tasks, at most `max_concurrent` at once."""

    def __init__(self, max_concurrent: int = 64) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._limiter = anyio.CapacityLimiter(max_concurrent)
        self._tg: TaskGroup | None = None

    @property
    def running(self) -> bool:
        return self._tg is not None

    @property
    def in_flight(self) -> int:
        return self._limiter.borrowed_tokens

    async def __aenter__(self) -> HandlerPool:
        if self._tg is not None:
            raise RuntimeError("handler pool is already running")
        tg = anyio.create_task_group()
        await tg.__aenter__()
        self._tg = tg
        return self

    async def __aexit__(self, *exc_info: Any) -> bool | None:
        tg, self._tg = self._tg, None
        if tg is None:
            return None
        return await tg.__aexit__(*exc_info)

    def submit(self, label: str, handler: Handler, *args: Any) -> HandlerResult:
        if self._tg is None:
            raise RuntimeError("handler pool is not running")
        result = HandlerResult(label=label)
        self._tg.start_soon(self._run, result, handler, args)
        return result

    async def _run(
        self, result: HandlerResult, handler: Handler, args: tuple[Any, ...]
    ) -> None:
        try:
            async with self._limiter:
                if inspect.iscoroutinefunction(handler):
                    result.value = await handler(*args)
                else:
                    result.value = await anyio.to_thread.run_sync(handler, *args)
        except Exception as exc:  # noqa: BLE001
            result.error = exc
            logger.error(
                "dispatch.handler_failed",
                handler=result.label,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
        finally:
            result.done.set()


@dataclass(frozen=True, slots=True)
class Route:
    label: str
    handler: Handler | None
    args: tuple[Any, ...]


def parse_command(text: str | None) -> tuple[str, str] | None:
    """Split `/cmd rest of text` into (`/cmd`, `rest of text`)."""
    if not text or not text.startswith(COMMAND_PREFIX):
        return None
    command = text.split(" ", 1)[0]
    return command, text[len(command) :].strip()


def _normalize_command(command: str) -> str:
    if not command.startswith(COMMAND_PREFIX):
        return COMMAND_PREFIX + command
    return command


_MESSAGE_KINDS = {UpdateType.MESSAGE, UpdateType.EDITED_MESSAGE}
_CHANNEL_POST_KINDS = {UpdateType.CHANNEL_POST, UpdateType.EDITED_CHANNEL_POST}
_CHAT_MEMBER_KINDS = {UpdateType.MY_CHAT_MEMBER, UpdateType.CHAT_MEMBER}


class Dispatcher:
    def __init__(self, context: Any, *, pool: HandlerPool | None = None) -> None:
        # first positional argument of every handler, usually the Bot
        self._context = context
        self.pool = pool or HandlerPool()
        self._commands: dict[str, Handler] = {}
        self._no_matching_command: Handler | None = None
        self._update_handler: Handler | None = None
        self._media_group_handler: Handler | None = None
        self._message_handler: Handler | None = None
        self._channel_post_handler: Handler | None = None
        self._chat_member_handler: Handler | None = None
        self._type_handlers: dict[UpdateType, Handler] = {}

    def add_command_handler(self, command: str, handler: Handler) -> None:
        """`handler(bot, update, args)`; a missing leading `/` is added."""
        self._commands[_normalize_command(command)] = handler

    def set_no_matching_command_handler(self, handler: Handler | None) -> None:
        """`handler(bot, update, command, args)`, command without the `/`."""
        self._no_matching_command = handler

    def set_update_handler(self, handler: Handler | None) -> None:
        """`handler(bot, update, error)`; update is None when error is set."""
        self._update_handler = handler

    def set_media_group_handler(self, handler: Handler | None) -> None:
        """`handler(bot, updates, media_group_id)` for polled album batches."""
        self._media_group_handler = handler

    def set_message_handler(self, handler: Handler | None) -> None:
        """`handler(bot, update, message, edited)`."""
        self._message_handler = handler

    def set_channel_post_handler(self, handler: Handler | None) -> None:
        """`handler(bot, update, channel_post, edited)`."""
        self._channel_post_handler = handler

    def set_chat_member_update_handler(self, handler: Handler | None) -> None:
        """`handler(bot, update, member_updated, is_mine)`."""
        self._chat_member_handler = handler

    def on_update_type(self, update_type: UpdateType | str, handler: Handler | None) -> None:
        """`handler(bot, update, payload)` for any other update variant."""
        kind = UpdateType(update_type)
        if kind in _MESSAGE_KINDS:
            raise ValueError("use set_message_handler for messages")
        if kind in _CHANNEL_POST_KINDS:
            raise ValueError("use set_channel_post_handler for channel posts")
        if kind in _CHAT_MEMBER_KINDS:
            raise ValueError("use set_chat_member_update_handler for member updates")
        if handler is None:
            self._type_handlers.pop(kind, None)
        else:
            self._type_handlers[kind] = handler

    def set_inline_query_handler(self, handler: Handler | None) -> None:
        self.on_update_type(UpdateType.INLINE_QUERY, handler)

    def set_chosen_inline_result_handler(self, handler: Handler | None) -> None:
        self.on_update_type(UpdateType.CHOSEN_INLINE_RESULT, handler)

    def set_callback_query_handler(self, handler: Handler | None) -> None:
        self.on_update_type(UpdateType.CALLBACK_QUERY, handler)

    def set_shipping_query_handler(self, handler: Handler | None) -> None:
        self.on_update_type(UpdateType.SHIPPING_QUERY, handler)

    def set_pre_checkout_query_handler(self, handler: Handler | None) -> None:
        self.on_update_type(UpdateType.PRE_CHECKOUT_QUERY, handler)

    def set_poll_handler(self, handler: Handler | None) -> None:
        self.on_update_type(UpdateType.POLL, handler)

    def set_poll_answer_handler(self, handler: Handler | None) -> None:
        self.on_update_type(UpdateType.POLL_ANSWER, handler)

    def set_chat_join_request_handler(self, handler: Handler | None) -> None:
        self.on_update_type(UpdateType.CHAT_JOIN_REQUEST, handler)

    def _route_command(self, update: Update) -> Route | None:
        message = update.user_message
        if message is None:
            return None
        parsed = parse_command(message.text)
        if parsed is None:
            return None
        command, args = parsed
        handler = self._commands.get(command)
        if handler is not None:
            return Route(f"command:{command}", handler, (update, args))
        if self._no_matching_command is not None:
            return Route(
                "no_matching_command",
                self._no_matching_command,
                (update, command[len(COMMAND_PREFIX) :], args),
            )
        return None

    def _route_type(self, update: Update) -> Route | None:
        kind = update.kind
        if kind is None:
            return None
        if kind in _MESSAGE_KINDS:
            if self._message_handler is None:
                return None
            return Route(
                "message",
                self._message_handler,
                (update, update.user_message, kind is UpdateType.EDITED_MESSAGE),
            )
        if kind in _CHANNEL_POST_KINDS:
            if self._channel_post_handler is None:
                return None
            post = update.channel_post or update.edited_channel_post
            return Route(
                "channel_post",
                self._channel_post_handler,
                (update, post, kind is UpdateType.EDITED_CHANNEL_POST),
            )
        if kind in _CHAT_MEMBER_KINDS:
            if self._chat_member_handler is None:
                return None
            member = update.my_chat_member or update.chat_member
            return Route(
                "chat_member",
                self._chat_member_handler,
                (update, member, kind is UpdateType.MY_CHAT_MEMBER),
            )
        handler = self._type_handlers.get(kind)
        if handler is None:
            return None
        return Route(kind.value, handler, (update, update.payload()))

    def route(self, update: Update) -> Route:
        routed = self._route_command(update) or self._route_type(update)
        if routed is not None:
            return routed
        return Route("update", self._update_handler, (update, None))

    def _submit(self, route: Route) -> HandlerResult | None:
        if route.handler is None:
            logger.debug("dispatch.unhandled", route=route.label)
            return None
        return self.pool.submit(
            route.label, route.handler, self._context, *route.args
        )

    def dispatch(self, update: Update) -> HandlerResult | None:
        route = self.route(update)
        logger.debug("dispatch.route", update_id=update.update_id, route=route.label)
        return self._submit(route)

    def dispatch_error(self, error: Exception) -> HandlerResult | None:
        return self._submit(Route("update", self._update_handler, (None, error)))

    def dispatch_batch(self, updates: Iterable[Update]) -> list[HandlerResult]:
        """Dispatch a polled batch, grouping albums when a handler wants them."""
        results: list[HandlerResult | None] = []
        if self._media_group_handler is None:
            results.extend(self.dispatch(update) for update in updates)
            return [r for r in results if r is not None]
        groups: dict[str, list[Update]] = {}
        for update in updates:
            group_id = update.media_group_id
            if group_id is None:
                results.append(self.dispatch(update))
            else:
                groups.setdefault(group_id, []).append(update)
        for group_id, grouped in groups.items():
            results.append(
                self._submit(
                    Route("media_group", self._media_group_handler, (grouped, group_id))
                )
            )
        return [r for r in results if r is not None]
