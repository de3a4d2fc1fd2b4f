"""Agent-facing ChatGuru capabilities that always answer with text.

Each coroutine here backs one tool exposed to an AI agent. Failures are
reported in the returned text instead of raised, so a dispatcher can hand
the result straight back to the model.
"""

from __future__ import annotations

import functools
import json
import logging
from dataclasses import asdict

from chatguru_clients.api.client import ChatGuruClient
from chatguru_clients.config import ChatGuruConfig
from chatguru_clients.exceptions import (
    ChatNotFoundError,
    SessionExpiredError,
    SessionNotFoundError,
)
from chatguru_clients.panel.models import FilterCriteria
from chatguru_clients.panel.scraper import ChatGuruScraper
from chatguru_clients.phone import normalize_phone

logger = logging.getLogger(__name__)


def _as_json(data) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def reports_errors(action: str):
    """Turn any exception raised by a tool into an ``Error <action>: ...`` text."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> str:
            try:
                return await func(*args, **kwargs)
            except (SessionNotFoundError, SessionExpiredError, ChatNotFoundError) as e:
                logger.info(f"{func.__name__}: {e}")
                return str(e)
            except Exception as e:
                logger.warning(f"{func.__name__} failed: {e}", exc_info=True)
                return f"Error {action}: {e}"

        return wrapper

    return decorator


class ChatGuruTools:
    """The ChatGuru tool surface: API actions plus panel scraping.

    Args:
        config: Deployment settings.
        client: API client; built from ``config`` when omitted.
        scraper: Panel scraper; built from ``config`` when omitted.
    """

    def __init__(
        self,
        config: ChatGuruConfig,
        client: ChatGuruClient | None = None,
        scraper: ChatGuruScraper | None = None,
    ):
        self.config = config
        self.client = client or ChatGuruClient(config)
        self.scraper = scraper or ChatGuruScraper(config)

    @classmethod
    def from_env(cls) -> ChatGuruTools:
        return cls(ChatGuruConfig.from_env())

    # ------------------------------------------------------------------
    # API tools
    # ------------------------------------------------------------------

    @reports_errors("sending message")
    async def send_message(
        self,
        chat_number: str,
        text: str,
        send_date: str | None = None,
    ) -> str:
        """Send a WhatsApp text message, optionally scheduled (YYYY-MM-DD HH:MM)."""
        number = normalize_phone(chat_number)
        data = await self.client.send_message(number, text, send_date)
        reply = f"Message sent to {number}."
        if data.get("message_id"):
            reply += f" ID: {data['message_id']}"
        if send_date:
            reply += f" (scheduled for {send_date})"
        return reply

    @reports_errors("sending file")
    async def send_file(
        self,
        chat_number: str,
        file_url: str,
        caption: str | None = None,
    ) -> str:
        """Send an image, PDF or document from a public URL."""
        number = normalize_phone(chat_number)
        data = await self.client.send_file(number, file_url, caption)
        reply = f"File sent to {number}."
        if data.get("message_id"):
            reply += f" ID: {data['message_id']}"
        return reply

    @reports_errors("fetching message status")
    async def get_message_status(self, message_id: str) -> str:
        """Delivery status of a sent message."""
        return _as_json(await self.client.get_message_status(message_id))

    @reports_errors("registering chat")
    async def register_chat(
        self,
        chat_number: str,
        name: str,
        text: str,
        user_id: str | None = None,
        dialog_id: str | None = None,
    ) -> str:
        """Register a new contact; registration completes asynchronously."""
        number = normalize_phone(chat_number)
        data = await self.client.register_chat(number, name, text, user_id, dialog_id)
        reply = f"Chat registered for {number} ({name})."
        chat_add_id = data.get("chat_add_id")
        if chat_add_id:
            reply += f" chat_add_id: {chat_add_id}"
            reply += f"\nLink: {self.config.chat_url(chat_add_id)}"
        reply += "\nStatus: registration is asynchronous. Use get_chat_status to follow it."
        return reply

    @reports_errors("fetching chat status")
    async def get_chat_status(self, chat_add_id: str) -> str:
        """Registration status: pending, fetched, done or error."""
        data = await self.client.get_chat_status(chat_add_id)
        lines = [
            f"Status: {data.get('chat_add_status') or 'unknown'}",
            f"chat_add_id: {chat_add_id}",
            f"Link: {self.config.chat_url(chat_add_id)}",
        ]
        if data.get("chat_add_status_description"):
            lines.append(f"Description: {data['chat_add_status_description']}")
        return "\n".join(lines)

    @reports_errors("updating custom fields")
    async def update_custom_fields(self, chat_number: str, custom_fields: str) -> str:
        """Update custom fields given as a JSON object string."""
        number = normalize_phone(chat_number)
        try:
            fields = json.loads(custom_fields)
        except json.JSONDecodeError:
            return "Error: custom_fields must be valid JSON."
        if not isinstance(fields, dict):
            return "Error: custom_fields must be a JSON object."
        await self.client.update_custom_fields(number, fields)
        return f"Custom fields updated for {number}: {', '.join(fields)}"

    @reports_errors("updating chat name")
    async def update_chat_name(self, chat_number: str, name: str) -> str:
        number = normalize_phone(chat_number)
        await self.client.update_chat_name(number, name)
        return f'Chat {number} renamed to "{name}".'

    @reports_errors("updating context")
    async def update_context(self, chat_number: str, context: str) -> str:
        number = normalize_phone(chat_number)
        await self.client.update_context(number, context)
        return f"Context updated for chat {number}."

    @reports_errors("adding note")
    async def add_note(self, chat_number: str, note_text: str) -> str:
        """Add an internal note, visible to the team only."""
        number = normalize_phone(chat_number)
        await self.client.add_note(number, note_text)
        return f"Note added to chat {number}."

    @reports_errors("executing dialog")
    async def execute_dialog(self, chat_number: str, dialog_id: str) -> str:
        """Trigger a chatbot dialog in an existing conversation."""
        number = normalize_phone(chat_number)
        await self.client.execute_dialog(number, dialog_id)
        return f"Dialog {dialog_id} executed in chat {number}."

    # ------------------------------------------------------------------
    # Panel tools (browser automation, 5-20s each)
    # ------------------------------------------------------------------

    @reports_errors("looking up chat")
    async def get_chat_link(self, chat_number: str) -> str:
        """Find an existing chat by phone number; does not send anything."""
        link = await self.scraper.find_chat_link(chat_number)
        if link.chat_id:
            return f"Chat found.\nchat_id: {link.chat_id}\nLink: {link.url}"
        return (
            f"Chat found but its id could not be read from the URL: {link.url}\n"
            "Open it manually in the panel."
        )

    @reports_errors("reading messages")
    async def read_messages(self, chat_id: str, limit: int = 50) -> str:
        """Message history of a chat as a JSON list, oldest first."""
        messages = await self.scraper.read_messages(chat_id, limit)
        if not messages:
            return (
                f"No messages found in chat {chat_id}. "
                "The chat may be empty or the page structure changed."
            )
        return _as_json([asdict(m) for m in messages])

    @reports_errors("listing chats")
    async def list_chats(
        self,
        status: str | None = None,
        unread_only: bool = False,
        archived: bool = False,
        favorited: bool = False,
        order_by: str | None = None,
        department: str | None = None,
        name: str | None = None,
        whatsapp_number: str | None = None,
        limit: int = 50,
    ) -> str:
        """Filtered chat list (at most 100) with a summary of the filters."""
        criteria = FilterCriteria(
            status=status,
            unread_only=unread_only,
            archived=archived,
            favorited=favorited,
            order_by=order_by,
            department=department,
            name=name,
            whatsapp_number=whatsapp_number,
            limit=limit,
        )
        listing = await self.scraper.list_chats(criteria)
        if not listing.chats:
            return "No chats found with the applied filters."

        summary = f"Found {len(listing.chats)} chat(s)"
        if listing.filters:
            summary += f" (filters: {', '.join(listing.filters)})"
        return f"{summary}.\n\n{_as_json([asdict(c) for c in listing.chats])}"

    @reports_errors("scanning unread chats")
    async def scan_unread(self, max_age_days: int = 30, message_limit: int = 40) -> str:
        """Recent chats with unread messages, each with its latest messages."""
        scans = await self.scraper.scan_unread(max_age_days, message_limit)
        if not scans:
            return f"No chats with unread messages in the last {max_age_days} days."
        return _as_json([asdict(s) for s in scans])
