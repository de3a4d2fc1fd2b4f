"""ChatGuru REST API access."""

from chatguru_clients.api.client import ChatGuruClient, backoff_delay, classify_status

__all__ = ["ChatGuruClient", "backoff_delay", "classify_status"]
