from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    StringConstraints,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

from .api_models import UpdateType
from .config import ConfigError, display_path, resolve_config_path
from .webhook import WebhookAuth

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class WebhookSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    host: NonEmptyStr | None = None
    port: int = Field(default=443, ge=1, le=65535)
    auth: WebhookAuth = WebhookAuth.PATH
    secret_token: SecretStr | None = None
    cert_path: Path | None = None
    key_path: Path | None = None

    @model_validator(mode="after")
    def _secret_required(self) -> WebhookSettings:
        if self.auth is WebhookAuth.SECRET_TOKEN and not (
            self.secret_token and self.secret_token.get_secret_value()
        ):
            raise ValueError("webhook.auth = 'secret_token' needs webhook.secret_token")
        return self


class PollingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interval_s: float = Field(default=1.0, ge=0)
    offset: int = Field(default=0, ge=0)
    timeout_s: int = Field(default=1, ge=0)
    limit: int = Field(default=100, ge=1, le=100)


class BotSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="forbid",
        env_prefix="TGBOT__",
        env_nested_delimiter="__",
        str_strip_whitespace=True,
    )

    bot_token: SecretStr
    verbose: bool = False
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    allowed_updates: list[UpdateType] | None = None
    max_concurrent_handlers: int = Field(default=64, ge=1)
    request_timeout_s: float = Field(default=120.0, gt=0)

    @field_validator("bot_token")
    @classmethod
    def _token_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("bot_token must not be empty")
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def _load_settings_from_path(cfg_path: Path | None, **overrides: Any) -> BotSettings:
    cfg = dict(BotSettings.model_config)
    if cfg_path is not None:
        cfg["toml_file"] = cfg_path
    Bound = type(
        "BotSettingsBound",
        (BotSettings,),
        {"model_config": SettingsConfigDict(**cfg)},
    )
    where = display_path(cfg_path) if cfg_path is not None else "environment"
    try:
        return Bound(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {where}: {exc}") from exc
    except Exception as exc:  # pragma: no cover - safety net
        raise ConfigError(f"Failed to load config {where}: {exc}") from exc


def load_settings(
    path: str | Path | None = None, **overrides: Any
) -> tuple[BotSettings, Path | None]:
    """Load settings from init overrides, `TGBOT__*` env vars and TOML.

    The returned path is the TOML file used, or None when no file was found
    and everything came from the environment.
    """
    cfg_path = resolve_config_path(path)
    return _load_settings_from_path(cfg_path, **overrides), cfg_path
