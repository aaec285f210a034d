"""One scrubber for bot secrets, shared by logs and returned error text.

Secrets are literal strings registered at runtime (bot tokens, their MD5
digests, webhook secret tokens). On top of those, anything shaped like a
Bot API token is scrubbed even if it was never registered.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

REDACTED = "<REDACTED>"

# `bot<id>:<secret>` as it appears in API URLs
_URL_TOKEN_RE = re.compile(r"bot\d+:[A-Za-z0-9_-]+")
_BARE_TOKEN_RE = re.compile(r"\b\d+:[A-Za-z0-9_-]{10,}\b")

_registered: set[str] = set()


def hash_token(token: str) -> str:
    """Hex MD5 of the token, used as the webhook path segment."""
    return hashlib.md5(token.encode("utf-8")).hexdigest()


def register_secret(*values: str) -> None:
    """Scrub these literal strings from all redacted text from now on."""
    _registered.update(value for value in values if value)


def redact_text(text: str, extra: Iterable[str] = ()) -> str:
    # longest first so a secret containing another is replaced whole
    for secret in sorted({*_registered, *extra}, key=len, reverse=True):
        if secret:
            text = text.replace(secret, REDACTED)
    text = _URL_TOKEN_RE.sub(f"bot{REDACTED}", text)
    return _BARE_TOKEN_RE.sub(REDACTED, text)


def redact_data(value: Any) -> Any:
    """Scrub strings nested in dicts, lists and tuples; other leaves pass."""
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, (bytes, bytearray)):
        return redact_text(bytes(value).decode("utf-8", errors="replace"))
    if isinstance(value, BaseException):
        return redact_text(str(value))
    if isinstance(value, dict):
        return {key: redact_data(item) for key, item in value.items()}
    if isinstance(value, list):
        return [redact_data(item) for item in value]
    if isinstance(value, tuple):
        return tuple(redact_data(item) for item in value)
    return value


@dataclass(frozen=True, slots=True)
class Redactor:
    """Scrubs one bot's token and token hash, plus every registered secret."""

    token: str
    token_hash: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "token_hash", hash_token(self.token))

    @property
    def secrets(self) -> tuple[str, str]:
        return (self.token, self.token_hash)

    def __call__(self, text: str) -> str:
        return redact_text(text, self.secrets)
