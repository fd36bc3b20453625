from __future__ import annotations

from watchbot.notion.base import RemoteSyncClient, SupportsFileUpload
from watchbot.notion.client import NotionClient
from watchbot.notion.errors import (
    NotionApiError,
    NotionError,
    NotionRateLimitError,
    NotionResponseError,
    NotionTransportError,
)
from watchbot.notion.types import NotionIds, UploadedFile

__all__ = [
    "NotionApiError",
    "NotionClient",
    "NotionError",
    "NotionIds",
    "NotionRateLimitError",
    "NotionResponseError",
    "NotionTransportError",
    "RemoteSyncClient",
    "SupportsFileUpload",
    "UploadedFile",
]
