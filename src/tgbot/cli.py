from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import anyio
import typer

from . import __version__
from .api_models import Update
from .bot import Bot
from .config import ConfigError
from .errors import TelegramAPIError
from .logging import get_logger, setup_logging, suppress_logs
from .settings import BotSettings, load_settings

logger = get_logger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


@app.callback()
def root(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Run a Telegram bot from a tgbot.toml config."""


def _load(config: Path | None, debug: bool) -> BotSettings:
    try:
        settings, cfg_path = load_settings(config)
    except ConfigError as e:
        setup_logging(debug=debug)
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    setup_logging(debug=debug or settings.verbose)
    logger.debug("cli.config_loaded", path=str(cfg_path) if cfg_path else None)
    return settings


def _log_update(bot: Bot, update: Update | None, error: Exception | None) -> None:
    if error is not None:
        logger.warning("cli.update_error", error=str(error))
        return
    if update is None:
        return
    logger.info(
        "cli.update",
        update_id=update.update_id,
        kind=update.kind.value if update.kind is not None else None,
    )


_CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="Path to tgbot.toml (default: discovered)."
)
_DEBUG_OPTION = typer.Option(False, "--debug/--no-debug", help="Log debug events.")


@app.command()
def me(
    config: Optional[Path] = _CONFIG_OPTION,
    debug: bool = _DEBUG_OPTION,
) -> None:
    """Print the bot's own user record."""
    settings = _load(config, debug)

    async def _run() -> Any:
        async with Bot.from_settings(settings) as bot:
            return await bot.get_me()

    with suppress_logs("warning"):
        response = anyio.run(_run)
    try:
        user = response.unwrap()
    except TelegramAPIError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{user.id} @{user.username or '-'} {user.first_name}")


@app.command()
def poll(
    config: Optional[Path] = _CONFIG_OPTION,
    debug: bool = _DEBUG_OPTION,
) -> None:
    """Long-poll for updates and log each one until interrupted."""
    settings = _load(config, debug)
    polling = settings.polling

    async def _run() -> None:
        async with Bot.from_settings(settings) as bot:
            await bot.start_polling(
                update_handler=_log_update,
                interval_s=polling.interval_s,
                timeout_s=polling.timeout_s,
                limit=polling.limit,
                allowed_updates=settings.allowed_updates,
            )

    try:
        anyio.run(_run)
    except KeyboardInterrupt:
        logger.info("cli.interrupted")


@app.command()
def webhook(
    config: Optional[Path] = _CONFIG_OPTION,
    debug: bool = _DEBUG_OPTION,
    register: bool = typer.Option(
        True,
        "--register/--no-register",
        help="Call setWebhook before serving.",
    ),
) -> None:
    """Register the webhook and serve it over TLS until interrupted."""
    settings = _load(config, debug)
    hook = settings.webhook
    if hook.cert_path is None or hook.key_path is None:
        typer.echo("webhook.cert_path and webhook.key_path are required.", err=True)
        raise typer.Exit(code=1)
    cert_path, key_path = hook.cert_path, hook.key_path

    async def _run() -> None:
        bot = Bot.from_settings(settings)
        if register:
            try:
                response = await bot.set_webhook(
                    certificate=cert_path,
                    allowed_updates=settings.allowed_updates,
                )
            except ValueError as e:
                await bot.close()
                raise ConfigError(str(e)) from e
            error = response.error()
            if error is not None:
                await bot.close()
                raise ConfigError(f"setWebhook failed: {error}")
        await bot.serve_webhook(cert_path, key_path, update_handler=_log_update)

    try:
        anyio.run(_run)
    except ConfigError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.info("cli.interrupted")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
