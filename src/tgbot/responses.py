from __future__ import annotations

from typing import Any, Generic, TypeVar

import msgspec

from .api_models import Message
from .errors import TelegramAPIError, error_class_for

__all__ = [
    "APIResponse",
    "Acknowledged",
    "EditResult",
    "EditedMessage",
    "ResponseParameters",
    "decode_edit_response",
    "decode_response",
    "failure",
]

T = TypeVar("T")


class ResponseParameters(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    migrate_to_chat_id: int | None = None
    retry_after: int | None = None


class APIResponse(msgspec.Struct, Generic[T], frozen=True, forbid_unknown_fields=False):
    ok: bool
    result: T | None = None
    description: str | None = None
    error_code: int | None = None
    parameters: ResponseParameters | None = None

    def error(self) -> TelegramAPIError | None:
        if self.ok:
            return None
        description = self.description or "unknown error"
        cls = error_class_for(description)
        params = self.parameters
        return cls(
            description,
            error_code=self.error_code,
            retry_after=params.retry_after if params is not None else None,
            migrate_to_chat_id=(
                params.migrate_to_chat_id if params is not None else None
            ),
        )

    def unwrap(self) -> T:
        err = self.error()
        if err is not None:
            raise err
        if self.result is None:
            raise TelegramAPIError("response has no result")
        return self.result


class EditedMessage(msgspec.Struct, frozen=True):
    message: Message


class Acknowledged(msgspec.Struct, frozen=True):
    value: bool


EditResult = EditedMessage | Acknowledged


def failure(description: str) -> APIResponse[Any]:
    return APIResponse(ok=False, description=description)


def _body_text(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def decode_response(content: bytes, result_type: Any) -> APIResponse[Any]:
    """Decode a Bot API envelope whose result has `result_type`.

    Malformed or mismatched JSON yields an `ok=False` envelope that carries
    the decode error and the raw body instead of raising.
    """
    try:
        return msgspec.json.decode(content, type=APIResponse[result_type])
    except msgspec.DecodeError as exc:
        return failure(f"json parse error: {exc} ({_body_text(content)})")


def _rewrap(envelope: APIResponse[Any], result: EditResult | None) -> APIResponse[EditResult]:
    return APIResponse(
        ok=envelope.ok,
        result=result,
        description=envelope.description,
        error_code=envelope.error_code,
        parameters=envelope.parameters,
    )


def decode_edit_response(content: bytes) -> APIResponse[EditResult]:
    """Decode a result that is either the edited message or `true`.

    The message shape is tried first; only if it fails is the boolean shape
    tried.
    """
    try:
        as_message = msgspec.json.decode(content, type=APIResponse[Message])
    except msgspec.DecodeError as message_exc:
        message_error = str(message_exc)
    else:
        result = as_message.result
        return _rewrap(
            as_message, EditedMessage(result) if result is not None else None
        )
    try:
        as_bool = msgspec.json.decode(content, type=APIResponse[bool])
    except msgspec.DecodeError as bool_exc:
        return failure(
            f"json parse error: as message: {message_error}; "
            f"as bool: {bool_exc} ({_body_text(content)})"
        )
    value = as_bool.result
    return _rewrap(as_bool, Acknowledged(value) if value is not None else None)
