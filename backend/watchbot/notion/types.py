from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NotionIds:
    """Database ids and property names the client writes to."""

    main_db: str
    resource_db: str
    f_main_title: str
    f_rel_parent: str
    f_res_order: str
    f_res_text: str
    f_res_media: str


@dataclass(frozen=True)
class UploadedFile:
    upload_id: str
    name: str
