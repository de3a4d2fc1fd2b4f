"""Turn rendered panel HTML into chat and message records.

The scraper snapshots ``page.content()`` and hands it to these functions,
so extraction never touches the live page and gives the same records for
the same snapshot.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from chatguru_clients.panel import selectors
from chatguru_clients.panel.models import (
    AUDIO_PLACEHOLDER,
    SENDER_CONTACT,
    SENDER_OPERATOR,
    ChatMessage,
    ChatSummary,
)

_STATUS_ABBREVIATIONS = {"EM ATENDI": "EM ATENDIMENTO"}

_CHAT_ID_IN_URL = re.compile(r"#([a-f0-9]{24})")
_DAYS_AGO = re.compile(r"há (\d+) dias?")
_WEEKS_AGO = re.compile(r"há (\d+) semanas?")
_LEADING_INT = re.compile(r"\d+")


def extract_chat_cards(html: str, limit: int) -> list[ChatSummary]:
    """Read up to ``limit`` chat cards from a chat-list snapshot."""
    soup = BeautifulSoup(html, "html.parser")
    chats: list[ChatSummary] = []
    for card in soup.select(selectors.CHAT_CARD):
        if len(chats) >= limit:
            break
        chats.append(_parse_card(card))
    return chats


def _parse_card(card: Tag) -> ChatSummary:
    status = _text(card.select_one(selectors.CARD_STATUS))
    preview = card.select_one(selectors.CARD_PREVIEW)
    last_message = ""
    if preview is not None:
        last_message = preview.get("title") or _text(preview)

    return ChatSummary(
        contact_name=_text(card.select_one(selectors.CARD_NAME)),
        status=_STATUS_ABBREVIATIONS.get(status, status),
        last_message=last_message,
        timestamp=_text(card.select_one(selectors.CARD_TIME)),
        unread_count=_parse_count(card.select_one(selectors.CARD_UNREAD)),
        chat_id=card_chat_id(card),
    )


def card_chat_id(card: Tag) -> str:
    """Resolve a card's chat id: data attributes first, then the id the
    in-page probe copied out of component state, else ``""``."""
    for attribute in selectors.CARD_ID_ATTRIBUTES:
        value = card.get(attribute)
        if value:
            return value
    return card.get(selectors.PROBED_ID_ATTRIBUTE) or ""


def extract_messages(html: str, limit: int) -> list[ChatMessage]:
    """Read the last ``limit`` messages of a conversation snapshot, oldest first."""
    soup = BeautifulSoup(html, "html.parser")
    container = soup.select_one(selectors.MESSAGES_LIST)
    if container is None:
        return []

    messages: list[ChatMessage] = []
    current_date = ""
    for child in container.children:
        if not isinstance(child, Tag):
            continue
        classes = child.get("class") or []
        if selectors.DATE_GROUP_CLASS in classes:
            current_date = _text(child)
            continue
        if selectors.MESSAGE_ROW_CLASS not in classes:
            continue
        message = _parse_row(child, current_date)
        if message is not None:
            messages.append(message)

    if limit <= 0:
        return []
    return messages[-limit:]


def _parse_row(row: Tag, current_date: str) -> ChatMessage | None:
    bubble = row.select_one(selectors.MESSAGE_CONTAINER)
    if bubble is None:
        return None

    text_el = bubble.select_one(selectors.MESSAGE_TEXT)
    text = _inner_text(text_el) if text_el is not None else ""
    if not text:
        # Media without caption; only audio is reported.
        if bubble.find("audio") is None:
            return None
        text = AUDIO_PLACEHOLDER

    outgoing = selectors.OUTGOING_CLASS in (bubble.get("class") or [])
    return ChatMessage(
        sender=SENDER_OPERATOR if outgoing else SENDER_CONTACT,
        time=_text(bubble.select_one(selectors.MESSAGE_TIME)),
        date=current_date,
        text=text,
    )


def chat_id_from_url(url: str) -> str:
    """Chat id from a ``/chats#<24 hex>`` URL, or ``""``."""
    match = _CHAT_ID_IN_URL.search(url or "")
    return match.group(1) if match else ""


def is_login_url(url: str) -> bool:
    """True when the panel bounced us to login (or to the bare root)."""
    lowered = (url or "").lower()
    if "login" in lowered or "signin" in lowered:
        return True
    return urlparse(lowered).path in ("", "/")


def is_recent_timestamp(timestamp: str, max_age_days: int = 30) -> bool:
    """Whether a panel-rendered relative timestamp is within ``max_age_days``.

    Clock times (``14:32``) mean today. Months and years are always too old.
    """
    ts = (timestamp or "").lower()
    if "mês" in ts or "meses" in ts or "ano" in ts:
        return False
    days = _DAYS_AGO.search(ts)
    if days:
        return int(days.group(1)) <= max_age_days
    weeks = _WEEKS_AGO.search(ts)
    if weeks:
        return int(weeks.group(1)) * 7 <= max_age_days
    return True


def _text(el: Tag | None) -> str:
    if el is None:
        return ""
    return el.get_text().strip()


def _inner_text(el: Tag) -> str:
    for br in el.find_all("br"):
        br.replace_with("\n")
    return el.get_text().strip()


def _parse_count(el: Tag | None) -> int:
    if el is None:
        return 0
    # Badges may read "99+"; keep the leading number.
    match = _LEADING_INT.match(_text(el))
    return int(match.group(0)) if match else 0
