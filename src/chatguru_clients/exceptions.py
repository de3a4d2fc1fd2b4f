"""Unified exception hierarchy for chatguru-clients."""


class ChatGuruError(Exception):
    """Base exception for all chatguru-clients errors."""


class ChatGuruConfigError(ChatGuruError):
    """Required configuration is missing or invalid."""


# API
class ChatGuruRequestError(ChatGuruError):
    """Base exception for outbound API calls."""


class ChatGuruConnectionError(ChatGuruRequestError):
    """Network failure that persisted through every retry attempt."""


class ChatGuruHTTPError(ChatGuruRequestError):
    """Non-success HTTP status, with a human-readable classification."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class ChatGuruAPIError(ChatGuruRequestError):
    """The API answered but reported a failure (or an unreadable body)."""


# Panel (browser automation)
class PanelError(ChatGuruError):
    """Base exception for browser-driven panel operations."""


class SessionNotFoundError(PanelError):
    """No usable persisted browser session exists."""


class SessionExpiredError(PanelError):
    """The persisted session was redirected to the login page."""


class ChatNotFoundError(PanelError):
    """No chat matched the lookup."""
