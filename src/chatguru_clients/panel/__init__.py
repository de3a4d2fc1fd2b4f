"""ChatGuru web panel access through a persisted browser session."""

from chatguru_clients.panel.extract import extract_chat_cards, extract_messages
from chatguru_clients.panel.models import (
    ChatLink,
    ChatListing,
    ChatMessage,
    ChatScan,
    ChatSummary,
    FilterCriteria,
)
from chatguru_clients.panel.scraper import ChatGuruScraper
from chatguru_clients.panel.session import BrowserSession, SessionStore

__all__ = [
    "ChatGuruScraper",
    "SessionStore",
    "BrowserSession",
    "extract_chat_cards",
    "extract_messages",
    "ChatSummary",
    "ChatMessage",
    "ChatLink",
    "ChatListing",
    "ChatScan",
    "FilterCriteria",
]
