"""ChatGuru REST API client with retry logic, sync and async."""

from __future__ import annotations

import asyncio
import logging
import time
from urllib.parse import urlencode

import httpx

from chatguru_clients.config import ChatGuruConfig
from chatguru_clients.exceptions import (
    ChatGuruAPIError,
    ChatGuruConnectionError,
    ChatGuruHTTPError,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})

_STATUS_MESSAGES = {
    401: "Invalid API key. Check the CHATGURU_API_KEY variable.",
    403: "No permission to access this ChatGuru resource.",
    404: "Resource not found on ChatGuru.",
    429: "Request limit reached. Try again in a few seconds.",
    500: "ChatGuru internal server error. Try again.",
    502: "ChatGuru is temporarily unavailable. Try again.",
    503: "ChatGuru is under maintenance. Try again shortly.",
}

_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


def classify_status(status_code: int) -> str:
    """Human-readable explanation for a failed HTTP status."""
    return _STATUS_MESSAGES.get(status_code, f"Error {status_code} from the ChatGuru API.")


def backoff_delay(attempt: int, base_delay: float = 1.0, max_delay: float = 8.0) -> float:
    """Exponential delay before retrying after ``attempt`` (1-based)."""
    return min(base_delay * 2 ** (attempt - 1), max_delay)


def _stringify(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _encode_pairs(params: dict | None) -> list[tuple[str, str]]:
    return [
        (key, _stringify(value))
        for key, value in (params or {}).items()
        if value is not None
    ]


class ChatGuruClient:
    """Client for the ChatGuru RPC-style endpoint.

    Every call is a form-encoded POST to ``/api/v1`` with the identity
    parameters (key, account_id, phone_id, action) in the query string.

    Args:
        config: Deployment credentials.
        base_delay: First retry delay in seconds.
        max_delay: Upper bound for retry delays in seconds.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        config: ChatGuruConfig,
        base_delay: float = 1.0,
        max_delay: float = 8.0,
        transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._transport = transport

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _build_request(
        self,
        action: str,
        params: dict | None,
        params_in_query: bool,
    ) -> tuple[list[tuple[str, str]], str]:
        """Return (query pairs, form body) for one action."""
        query = [
            ("key", self.config.api_key),
            ("account_id", self.config.account_id),
            ("phone_id", self.config.phone_id),
            ("action", action),
        ]
        pairs = _encode_pairs(params)
        if params_in_query:
            return query + pairs, ""
        return query, urlencode(pairs)

    def _should_retry(self, response: httpx.Response, attempt: int, max_attempts: int) -> bool:
        return (
            not response.is_success
            and response.status_code in RETRYABLE_STATUSES
            and attempt < max_attempts
        )

    @staticmethod
    def _decode(response: httpx.Response) -> dict:
        if not response.is_success:
            raise ChatGuruHTTPError(
                classify_status(response.status_code), response.status_code
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ChatGuruAPIError(f"Invalid JSON in ChatGuru response: {e}") from e

        if isinstance(data, dict) and data.get("success") is False:
            raise ChatGuruAPIError(
                data.get("error") or data.get("message") or "Unknown ChatGuru API error."
            )
        return data

    @staticmethod
    def _check_attempts(max_attempts: int) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    async def call(
        self,
        action: str,
        params: dict | None = None,
        max_attempts: int = 3,
        params_in_query: bool = False,
    ) -> dict:
        """Invoke an API action, retrying transient failures.

        Args:
            action: ChatGuru action name, e.g. ``message_send``.
            params: Action parameters; ``None`` values are dropped.
            max_attempts: Total attempts including the first one.
            params_in_query: Send ``params`` in the query string instead
                of the form body (required by some actions).

        Returns:
            The decoded JSON payload.
        """
        self._check_attempts(max_attempts)
        query, body = self._build_request(action, params, params_in_query)

        async with httpx.AsyncClient(
            timeout=self.config.timeout,
            transport=self._transport,
        ) as client:
            for attempt in range(1, max_attempts + 1):
                try:
                    response = await client.post(
                        self.config.api_url,
                        params=query,
                        content=body,
                        headers=_FORM_HEADERS,
                    )
                except httpx.TransportError as e:
                    if attempt < max_attempts:
                        delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                        logger.warning(
                            f"Network error on {action} (attempt {attempt}/{max_attempts}): {e}. "
                            f"Retrying in {delay:.1f}s"
                        )
                        await asyncio.sleep(delay)
                        continue
                    raise ChatGuruConnectionError(
                        f"Could not reach ChatGuru after {max_attempts} attempts: {e}"
                    ) from e

                if self._should_retry(response, attempt, max_attempts):
                    delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                    logger.warning(
                        f"HTTP {response.status_code} on {action} (attempt {attempt}/{max_attempts}). "
                        f"Retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                return self._decode(response)

        raise ChatGuruConnectionError(f"Failed after {max_attempts} attempts")

    def call_sync(
        self,
        action: str,
        params: dict | None = None,
        max_attempts: int = 3,
        params_in_query: bool = False,
    ) -> dict:
        """Synchronous variant of :meth:`call`."""
        self._check_attempts(max_attempts)
        query, body = self._build_request(action, params, params_in_query)

        with httpx.Client(
            timeout=self.config.timeout,
            transport=self._transport,
        ) as client:
            for attempt in range(1, max_attempts + 1):
                try:
                    response = client.post(
                        self.config.api_url,
                        params=query,
                        content=body,
                        headers=_FORM_HEADERS,
                    )
                except httpx.TransportError as e:
                    if attempt < max_attempts:
                        delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                        logger.warning(
                            f"Network error on {action} (attempt {attempt}/{max_attempts}): {e}. "
                            f"Retrying in {delay:.1f}s"
                        )
                        time.sleep(delay)
                        continue
                    raise ChatGuruConnectionError(
                        f"Could not reach ChatGuru after {max_attempts} attempts: {e}"
                    ) from e

                if self._should_retry(response, attempt, max_attempts):
                    delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                    logger.warning(
                        f"HTTP {response.status_code} on {action} (attempt {attempt}/{max_attempts}). "
                        f"Retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    continue

                return self._decode(response)

        raise ChatGuruConnectionError(f"Failed after {max_attempts} attempts")

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def send_message(
        self,
        chat_number: str,
        text: str,
        send_date: str | None = None,
    ) -> dict:
        """Send a text message, optionally scheduled (``YYYY-MM-DD HH:MM``)."""
        return await self.call(
            "message_send",
            {"chat_number": chat_number, "text": text, "send_date": send_date},
        )

    async def send_file(
        self,
        chat_number: str,
        file_url: str,
        caption: str | None = None,
    ) -> dict:
        """Send a publicly reachable file by URL."""
        return await self.call(
            "message_file_send",
            {"chat_number": chat_number, "file_url": file_url, "caption": caption},
        )

    async def get_message_status(self, message_id: str) -> dict:
        return await self.call("message_status", {"message_id": message_id})

    async def register_chat(
        self,
        chat_number: str,
        name: str,
        text: str,
        user_id: str | None = None,
        dialog_id: str | None = None,
    ) -> dict:
        """Register a new contact. Asynchronous on the platform side;
        poll :meth:`get_chat_status` with the returned ``chat_add_id``."""
        return await self.call(
            "chat_add",
            {
                "chat_number": chat_number,
                "name": name,
                "text": text,
                "user_id": user_id,
                "dialog_id": dialog_id,
            },
        )

    async def get_chat_status(self, chat_add_id: str) -> dict:
        return await self.call("chat_add_status", {"chat_add_id": chat_add_id})

    async def update_custom_fields(self, chat_number: str, fields: dict) -> dict:
        """Update custom fields; this action only reads the query string."""
        params = {"chat_number": chat_number}
        for key, value in fields.items():
            params[f"field__{key}"] = value
        return await self.call(
            "chat_update_custom_fields", params, params_in_query=True
        )

    async def update_chat_name(self, chat_number: str, name: str) -> dict:
        return await self.call(
            "chat_update_name", {"chat_number": chat_number, "name": name}
        )

    async def update_context(self, chat_number: str, context: str) -> dict:
        return await self.call(
            "chat_update_context", {"chat_number": chat_number, "context": context}
        )

    async def add_note(self, chat_number: str, note_text: str) -> dict:
        return await self.call(
            "note_add", {"chat_number": chat_number, "note_text": note_text}
        )

    async def execute_dialog(self, chat_number: str, dialog_id: str) -> dict:
        return await self.call(
            "dialog_execute", {"chat_number": chat_number, "dialog_id": dialog_id}
        )
