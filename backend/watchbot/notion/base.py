"""Interfaces the sync worker depends on."""
from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from watchbot.notion.types import UploadedFile


class RemoteSyncClient(Protocol):
    """Creates remote pages and returns their ids.

    Calls are not assumed idempotent; the worker never repeats a call whose
    result it has already stored.
    """

    def create_batch_page(self, title: str) -> str: ...

    def create_resource_page(
        self,
        *,
        parent_external_id: str | None,
        sequence: int,
        text: str | None,
        media_name: str | None,
        media_url: str | None,
    ) -> str: ...


@runtime_checkable
class SupportsFileUpload(Protocol):
    def upload_file(self, path: Path) -> str: ...

    def create_resource_page_with_uploads(
        self,
        *,
        parent_external_id: str | None,
        sequence: int,
        text: str | None,
        files: Sequence[UploadedFile],
    ) -> str: ...
