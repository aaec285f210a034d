from __future__ import annotations


class TgBotError(Exception):
    pass


class TransportError(TgBotError):
    """Network or body-build failure; the message is already redacted."""

    def __init__(self, message: str, *, method: str | None = None) -> None:
        super().__init__(message)
        self.method = method


class RequestBuildError(TgBotError):
    pass


class TelegramAPIError(TgBotError):
    def __init__(
        self,
        description: str,
        *,
        error_code: int | None = None,
        retry_after: int | None = None,
        migrate_to_chat_id: int | None = None,
    ) -> None:
        super().__init__(description)
        self.description = description
        self.error_code = error_code
        self.retry_after = retry_after
        self.migrate_to_chat_id = migrate_to_chat_id


class Unauthorized(TelegramAPIError):
    pass


class ChatNotFound(TelegramAPIError):
    pass


class UserNotFound(TelegramAPIError):
    pass


class UserDeactivated(TelegramAPIError):
    pass


class BotKicked(TelegramAPIError):
    pass


class BotBlockedByUser(TelegramAPIError):
    pass


class BotCantSendToBots(TelegramAPIError):
    pass


class MessageNotModified(TelegramAPIError):
    pass


class GroupMigrated(TelegramAPIError):
    pass


class InvalidFileId(TelegramAPIError):
    pass


class ConflictedLongPoll(TelegramAPIError):
    pass


class ConflictedWebhook(TelegramAPIError):
    pass


class MessageEmpty(TelegramAPIError):
    pass


class MessageTooLong(TelegramAPIError):
    pass


class MessageCantBeEdited(TelegramAPIError):
    pass


class TooManyRequests(TelegramAPIError):
    pass


class JSONParseFailed(TelegramAPIError):
    pass


class UnclassifiedError(TelegramAPIError):
    pass


# matched case-insensitively, first hit wins
_DESCRIPTION_PATTERNS: tuple[tuple[str, type[TelegramAPIError]], ...] = (
    ("unauthorized", Unauthorized),
    ("bad request: chat not found", ChatNotFound),
    ("bad request: user not found", UserNotFound),
    ("forbidden: user is deactivated", UserDeactivated),
    ("forbidden: bot was kicked", BotKicked),
    ("forbidden: bot was blocked by the user", BotBlockedByUser),
    ("forbidden: bot blocked by user", BotBlockedByUser),
    ("forbidden: bot can't send messages to bots", BotCantSendToBots),
    ("message is not modified", MessageNotModified),
    ("message not modified", MessageNotModified),
    ("group migrated to supergroup", GroupMigrated),
    ("group chat was upgraded to a supergroup", GroupMigrated),
    ("invalid file id", InvalidFileId),
    ("wrong file identifier", InvalidFileId),
    ("terminated by other getupdates request", ConflictedLongPoll),
    ("terminated by other long poll", ConflictedLongPoll),
    ("can't use getupdates method while webhook is active", ConflictedWebhook),
    ("message text is empty", MessageEmpty),
    ("message is too long", MessageTooLong),
    ("message can't be edited", MessageCantBeEdited),
    ("too many requests", TooManyRequests),
    ("json parse error", JSONParseFailed),
    ("failed to parse json", JSONParseFailed),
)


def error_class_for(description: str) -> type[TelegramAPIError]:
    lowered = description.lower()
    for needle, cls in _DESCRIPTION_PATTERNS:
        if needle in lowered:
            return cls
    return UnclassifiedError
