"""Notion client errors. Every one of them is retryable by the sync worker."""
from __future__ import annotations


class NotionError(RuntimeError):
    """Base error for Notion API calls."""


class NotionRateLimitError(NotionError):
    def __init__(self, body: str, retry_after: str | None = None) -> None:
        super().__init__(f"received 429 from Notion: {body}")
        self.body = body
        self.retry_after = retry_after


class NotionApiError(NotionError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"notion error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class NotionTransportError(NotionError):
    """Network failure or timeout before a response arrived."""


class NotionResponseError(NotionError):
    """A 2xx response whose body is not what the endpoint promises."""
