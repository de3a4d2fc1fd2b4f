"""Data models for the ChatGuru panel scraper."""

from __future__ import annotations

from dataclasses import dataclass, field

CHAT_STATUSES = (
    "ABERTO",
    "EM ATENDIMENTO",
    "AGUARDANDO",
    "RESOLVIDO",
    "FECHADO",
    "INDEFINIDO",
)

ORDER_KEYS = (
    "-updated",
    "updated",
    "-created",
    "created",
    "-new_messages",
    "new_messages",
    "-date_last_message",
    "date_last_message",
)

MAX_LIST_LIMIT = 100

SENDER_OPERATOR = "operator"
SENDER_CONTACT = "contact"

AUDIO_PLACEHOLDER = "[Audio]"


@dataclass
class ChatSummary:
    """One card of the chat list as rendered by the panel."""

    contact_name: str
    status: str  # one of CHAT_STATUSES, or raw text when unrecognized
    last_message: str
    timestamp: str  # panel-rendered, e.g. "14:32" or "há 3 dias"
    unread_count: int = 0
    chat_id: str = ""  # empty when not recoverable from the DOM


@dataclass
class ChatMessage:
    """A single message row of an open conversation."""

    sender: str  # SENDER_OPERATOR | SENDER_CONTACT
    time: str
    date: str  # date-group label the row appeared under
    text: str


@dataclass
class ChatLink:
    """Result of looking a chat up by phone number."""

    chat_id: str
    url: str


@dataclass
class ChatScan:
    """A chat with unread messages and its recent history."""

    chat: ChatSummary
    messages: list[ChatMessage] = field(default_factory=list)


@dataclass
class FilterCriteria:
    """Filters accepted by the chat list.

    ``limit`` may be anything; :attr:`effective_limit` bounds it to 0..100.
    """

    status: str | None = None
    unread_only: bool = False
    archived: bool = False
    favorited: bool = False
    order_by: str | None = None
    department: str | None = None
    name: str | None = None
    whatsapp_number: str | None = None
    limit: int = 50

    def __post_init__(self) -> None:
        if self.status is not None and self.status not in CHAT_STATUSES:
            raise ValueError(
                f"Unknown chat status {self.status!r}; expected one of {', '.join(CHAT_STATUSES)}"
            )
        if self.order_by is not None and self.order_by not in ORDER_KEYS:
            raise ValueError(
                f"Unknown ordering {self.order_by!r}; expected one of {', '.join(ORDER_KEYS)}"
            )

    @property
    def effective_limit(self) -> int:
        """``limit`` capped at 100; zero or less means no chats."""
        return max(0, min(self.limit, MAX_LIST_LIMIT))


@dataclass
class ChatListing:
    """Chat cards plus the filters the panel actually accepted."""

    chats: list[ChatSummary] = field(default_factory=list)
    filters: list[str] = field(default_factory=list)  # e.g. 'status=ABERTO', 'unread_only'
