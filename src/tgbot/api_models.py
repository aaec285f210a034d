from __future__ import annotations

import enum
from typing import Any

import msgspec

__all__ = [
    "BotCommand",
    "CallbackQuery",
    "Chat",
    "ChatJoinRequest",
    "ChatMember",
    "ChatMemberUpdated",
    "ChosenInlineResult",
    "Document",
    "File",
    "InlineQuery",
    "Location",
    "Message",
    "MessageEntity",
    "PhotoSize",
    "Poll",
    "PollAnswer",
    "PollOption",
    "PreCheckoutQuery",
    "ShippingQuery",
    "Update",
    "UpdateType",
    "User",
    "WebhookInfo",
]


class UpdateType(str, enum.Enum):
    MESSAGE = "message"
    EDITED_MESSAGE = "edited_message"
    CHANNEL_POST = "channel_post"
    EDITED_CHANNEL_POST = "edited_channel_post"
    BUSINESS_CONNECTION = "business_connection"
    BUSINESS_MESSAGE = "business_message"
    EDITED_BUSINESS_MESSAGE = "edited_business_message"
    DELETED_BUSINESS_MESSAGES = "deleted_business_messages"
    MESSAGE_REACTION = "message_reaction"
    MESSAGE_REACTION_COUNT = "message_reaction_count"
    INLINE_QUERY = "inline_query"
    CHOSEN_INLINE_RESULT = "chosen_inline_result"
    CALLBACK_QUERY = "callback_query"
    SHIPPING_QUERY = "shipping_query"
    PRE_CHECKOUT_QUERY = "pre_checkout_query"
    PURCHASED_PAID_MEDIA = "purchased_paid_media"
    POLL = "poll"
    POLL_ANSWER = "poll_answer"
    MY_CHAT_MEMBER = "my_chat_member"
    CHAT_MEMBER = "chat_member"
    CHAT_JOIN_REQUEST = "chat_join_request"
    CHAT_BOOST = "chat_boost"
    REMOVED_CHAT_BOOST = "removed_chat_boost"


class User(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: str | None = None
    username: str | None = None
    language_code: str | None = None


class Chat(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    id: int
    type: str
    title: str | None = None
    username: str | None = None
    is_forum: bool | None = None


class MessageEntity(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    type: str
    offset: int
    length: int
    url: str | None = None
    language: str | None = None


class PhotoSize(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    file_id: str
    file_unique_id: str = ""
    width: int = 0
    height: int = 0
    file_size: int | None = None


class Document(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    file_id: str
    file_unique_id: str = ""
    file_name: str | None = None
    mime_type: str | None = None
    file_size: int | None = None


class Location(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    latitude: float
    longitude: float


class Message(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    message_id: int
    date: int = 0
    chat: Chat | None = None
    from_: User | None = msgspec.field(default=None, name="from")
    message_thread_id: int | None = None
    media_group_id: str | None = None
    reply_to_message: Message | None = None
    text: str | None = None
    caption: str | None = None
    entities: list[MessageEntity] | None = None
    photo: list[PhotoSize] | None = None
    document: Document | None = None
    audio: dict[str, Any] | None = None
    video: dict[str, Any] | None = None
    voice: dict[str, Any] | None = None
    sticker: dict[str, Any] | None = None
    location: Location | None = None
    edit_date: int | None = None

    @property
    def chat_id(self) -> int | None:
        return self.chat.id if self.chat is not None else None


class InlineQuery(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    id: str
    from_: User = msgspec.field(name="from")
    query: str = ""
    offset: str = ""
    chat_type: str | None = None


class ChosenInlineResult(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    result_id: str
    from_: User = msgspec.field(name="from")
    query: str = ""
    inline_message_id: str | None = None


class CallbackQuery(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    id: str
    from_: User = msgspec.field(name="from")
    message: Message | None = None
    inline_message_id: str | None = None
    chat_instance: str = ""
    data: str | None = None


class ShippingQuery(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    id: str
    from_: User = msgspec.field(name="from")
    invoice_payload: str = ""
    shipping_address: dict[str, Any] | None = None


class PreCheckoutQuery(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    id: str
    from_: User = msgspec.field(name="from")
    currency: str = ""
    total_amount: int = 0
    invoice_payload: str = ""


class PollOption(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    text: str
    voter_count: int = 0


class Poll(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    id: str
    question: str
    options: list[PollOption] = msgspec.field(default_factory=list)
    total_voter_count: int = 0
    is_closed: bool = False
    is_anonymous: bool = True
    type: str = "regular"


class PollAnswer(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    poll_id: str
    option_ids: list[int] = msgspec.field(default_factory=list)
    user: User | None = None


class ChatMember(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    status: str
    user: User | None = None


class ChatMemberUpdated(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    chat: Chat
    from_: User = msgspec.field(name="from")
    date: int = 0
    old_chat_member: ChatMember | None = None
    new_chat_member: ChatMember | None = None


class ChatJoinRequest(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    chat: Chat
    from_: User = msgspec.field(name="from")
    user_chat_id: int = 0
    date: int = 0
    bio: str | None = None


class File(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    file_id: str
    file_unique_id: str = ""
    file_size: int | None = None
    file_path: str | None = None


class WebhookInfo(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    url: str
    has_custom_certificate: bool = False
    pending_update_count: int = 0
    ip_address: str | None = None
    last_error_date: int | None = None
    last_error_message: str | None = None
    max_connections: int | None = None
    allowed_updates: list[str] | None = None


class BotCommand(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    command: str
    description: str


class Update(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    update_id: int
    message: Message | None = None
    edited_message: Message | None = None
    channel_post: Message | None = None
    edited_channel_post: Message | None = None
    business_connection: dict[str, Any] | None = None
    business_message: Message | None = None
    edited_business_message: Message | None = None
    deleted_business_messages: dict[str, Any] | None = None
    message_reaction: dict[str, Any] | None = None
    message_reaction_count: dict[str, Any] | None = None
    inline_query: InlineQuery | None = None
    chosen_inline_result: ChosenInlineResult | None = None
    callback_query: CallbackQuery | None = None
    shipping_query: ShippingQuery | None = None
    pre_checkout_query: PreCheckoutQuery | None = None
    purchased_paid_media: dict[str, Any] | None = None
    poll: Poll | None = None
    poll_answer: PollAnswer | None = None
    my_chat_member: ChatMemberUpdated | None = None
    chat_member: ChatMemberUpdated | None = None
    chat_join_request: ChatJoinRequest | None = None
    chat_boost: dict[str, Any] | None = None
    removed_chat_boost: dict[str, Any] | None = None

    @property
    def kind(self) -> UpdateType | None:
        for update_type in UpdateType:
            if getattr(self, update_type.value) is not None:
                return update_type
        return None

    def payload(self) -> Any | None:
        kind = self.kind
        return getattr(self, kind.value) if kind is not None else None

    @property
    def user_message(self) -> Message | None:
        """The message or edited message, whichever is present."""
        if self.message is not None:
            return self.message
        return self.edited_message

    @property
    def media_group_id(self) -> str | None:
        for msg in (
            self.message,
            self.edited_message,
            self.channel_post,
            self.edited_channel_post,
        ):
            if msg is not None and msg.media_group_id is not None:
                return msg.media_group_id
        return None
