"""Environment-driven settings and scrape timing constants."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from chatguru_clients.exceptions import ChatGuruConfigError

_REQUIRED_VARS = {
    "api_key": "CHATGURU_API_KEY",
    "account_id": "CHATGURU_ACCOUNT_ID",
    "phone_id": "CHATGURU_PHONE_ID",
    "server": "CHATGURU_SERVER",
}


@dataclass
class ChatGuruConfig:
    """Credentials and locations for one ChatGuru deployment.

    Args:
        api_key: API key issued by the ChatGuru panel.
        account_id: Account identifier.
        phone_id: Identifier of the WhatsApp number used for sending.
        server: Server selector, the ``17`` in ``s17.expertintegrado.app``.
        session_path: Persisted browser session written by the login flow.
        timeout: HTTP timeout in seconds for API calls.
        login_command: External command that performs the interactive login.
    """

    api_key: str
    account_id: str
    phone_id: str
    server: str
    session_path: Path = Path("session.json")
    timeout: float = 30.0
    login_command: str = "node login.js"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ChatGuruConfig:
        """Build a config from ``CHATGURU_*`` environment variables."""
        env = os.environ if environ is None else environ
        missing = [var for var in _REQUIRED_VARS.values() if not env.get(var)]
        if missing:
            raise ChatGuruConfigError(
                "Missing required environment variables: "
                f"{', '.join(missing)}. "
                "Set CHATGURU_API_KEY, CHATGURU_ACCOUNT_ID, CHATGURU_PHONE_ID and CHATGURU_SERVER."
            )
        values = {field_name: env[var] for field_name, var in _REQUIRED_VARS.items()}
        session_path = env.get("CHATGURU_SESSION_PATH")
        if session_path:
            values["session_path"] = Path(session_path).expanduser()
        login_command = env.get("CHATGURU_LOGIN_COMMAND")
        if login_command:
            values["login_command"] = login_command
        return cls(**values)

    @property
    def base_url(self) -> str:
        return f"https://s{self.server}.expertintegrado.app"

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api/v1"

    @property
    def chats_url(self) -> str:
        return f"{self.base_url}/chats"

    def chat_url(self, chat_id: str) -> str:
        return f"{self.chats_url}#{chat_id}"

    def relogin_instruction(self) -> str:
        """Instruction shown when the persisted session is missing or stale."""
        return f"Run `CHATGURU_SERVER={self.server} {self.login_command}` to log in again."


@dataclass
class ScrapeTimings:
    """Waits and bounds used by the panel scraper.

    Durations are seconds unless the name ends in ``_ms``.
    """

    navigation_timeout_ms: int = 30_000
    # The panel keeps a websocket open, so "networkidle" never fires.
    navigation_settle: float = 5.0
    filter_settle: float = 2.0
    overlay_settle: float = 1.0
    click_settle: float = 2.0
    selector_timeout_ms: int = 15_000
    list_scroll_settle: float = 0.8
    message_scroll_settle: float = 2.5
    max_scroll_iterations: int = 10
    wheel_delta: int = 3000
