from __future__ import annotations

from typing import Literal

from pydantic import Field

from watchbot.common.schemas import CamelModel


class MediaPayload(CamelModel):
    """A media file already downloaded to local storage."""

    kind: Literal["photo", "video"]
    path: str = Field(..., min_length=1, description="Local file path")
    name: str | None = None
    url: str | None = None


class IncomingMessage(CamelModel):
    external_user_id: int
    username: str | None = None
    display_name: str | None = None
    message_id: int | None = None
    text: str | None = None
    caption: str | None = None
    media: MediaPayload | None = None


class IngestOutcome(CamelModel):
    replies: list[str] = Field(default_factory=list)
    resource_ids: list[int] = Field(default_factory=list)
