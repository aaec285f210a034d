from __future__ import annotations

from pathlib import Path

LOCAL_CONFIG_NAME = Path("tgbot.toml")
HOME_CONFIG_PATH = Path.home() / ".tgbot" / "tgbot.toml"


class ConfigError(RuntimeError):
    pass


def display_path(path: Path) -> str:
    try:
        cwd = Path.cwd()
        if path.is_relative_to(cwd):
            return f"./{path.relative_to(cwd).as_posix()}"
        home = Path.home()
        if path.is_relative_to(home):
            return f"~/{path.relative_to(home).as_posix()}"
    except OSError:
        return str(path)
    return str(path)


def config_candidates() -> list[Path]:
    return [Path.cwd() / LOCAL_CONFIG_NAME, HOME_CONFIG_PATH]


def resolve_config_path(path: str | Path | None = None) -> Path | None:
    """Explicit path if given, else the first existing candidate, else None."""
    if path:
        cfg_path = Path(path).expanduser()
        if not cfg_path.exists():
            raise ConfigError(f"Missing config file `{display_path(cfg_path)}`.")
        if not cfg_path.is_file():
            raise ConfigError(
                f"Config path {display_path(cfg_path)} exists but is not a file."
            )
        return cfg_path
    for candidate in config_candidates():
        if candidate.is_file():
            return candidate
    return None
