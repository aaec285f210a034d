from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import anyio

from .api_models import Update, UpdateType
from .dispatch import HandlerResult
from .logging import get_logger

if TYPE_CHECKING:
    from .bot import Bot

logger = get_logger(__name__)

DEFAULT_LIMIT = 100
DEFAULT_TIMEOUT_S = 1
DEFAULT_INTERVAL_S = 1.0


@dataclass(slots=True)
class Cursor:
    """Next `update_id` to ask for. Only moves forward."""

    value: int = 0

    def advance(self, update_id: int) -> None:
        if update_id >= self.value:
            self.value = update_id + 1


class PollerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class Poller:
    """Long-polling update source bound to one bot.

    Single use: once stopped, resume with a new `Poller` sharing the same
    `Cursor`, which continues after the last delivered update.
    """

    def __init__(
        self,
        bot: Bot,
        *,
        cursor: Cursor | None = None,
        interval_s: float = DEFAULT_INTERVAL_S,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        limit: int = DEFAULT_LIMIT,
        allowed_updates: Sequence[UpdateType | str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._bot = bot
        self.cursor = cursor if cursor is not None else Cursor()
        self.interval_s = interval_s
        self.timeout_s = timeout_s
        self.limit = limit
        self.allowed_updates = (
            [UpdateType(item).value for item in allowed_updates]
            if allowed_updates is not None
            else None
        )
        self._sleep = sleep
        self._stop_requested = False
        self.state = PollerState.IDLE

    def stop(self) -> None:
        """Ask the loop to exit; takes effect at the next iteration."""
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    async def poll_once(self) -> list[HandlerResult]:
        """Fetch one batch, advance the cursor and hand it off."""
        dispatcher = self._bot.dispatcher
        response = await self._bot.get_updates(
            offset=self.cursor.value,
            limit=self.limit,
            timeout=self.timeout_s,
            allowed_updates=self.allowed_updates,
        )
        error = response.error()
        if error is not None:
            logger.info(
                "polling.get_updates.failed",
                offset=self.cursor.value,
                error=str(error),
                error_type=error.__class__.__name__,
            )
            result = dispatcher.dispatch_error(error)
            return [result] if result is not None else []
        updates: list[Update] = response.result or []
        for update in updates:
            self.cursor.advance(update.update_id)
        if updates:
            logger.debug(
                "polling.updates",
                count=len(updates),
                offset=self.cursor.value,
            )
        return dispatcher.dispatch_batch(updates)

    async def _loop(self) -> None:
        while not self._stop_requested:
            await self.poll_once()
            await self._sleep(self.interval_s)

    async def run(self) -> None:
        if self.state is not PollerState.IDLE:
            raise RuntimeError(f"poller is {self.state.value}; create a new one")
        self.state = PollerState.RUNNING
        logger.info(
            "polling.started",
            offset=self.cursor.value,
            interval_s=self.interval_s,
        )
        pool = self._bot.dispatcher.pool
        try:
            if pool.running:
                await self._loop()
            else:
                async with pool:
                    await self._loop()
        finally:
            self.state = PollerState.STOPPED
            logger.info("polling.stopped", offset=self.cursor.value)
