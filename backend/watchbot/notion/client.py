from __future__ import annotations

import json
import logging
import mimetypes
from pathlib import Path
from typing import Any, Sequence

import httpx

from watchbot.notion.errors import (
    NotionApiError,
    NotionRateLimitError,
    NotionResponseError,
    NotionTransportError,
)
from watchbot.notion.types import NotionIds, UploadedFile

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.notion.com/"
USER_AGENT = "watchbot/0.1"
DEFAULT_UPLOAD_NAME = "Uploaded file"


def _title(content: str) -> dict[str, Any]:
    return {"title": [{"text": {"content": content}}]}


def _rich_text(content: str) -> dict[str, Any]:
    return {"rich_text": [{"text": {"content": content}}]}


def build_main_page_request(ids: NotionIds, title: str) -> dict[str, Any]:
    return {
        "parent": {"database_id": ids.main_db},
        "properties": {ids.f_main_title: _title(title)},
    }


def _resource_properties(
    ids: NotionIds,
    parent_external_id: str | None,
    sequence: int,
    text: str | None,
) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    if parent_external_id:
        properties[ids.f_rel_parent] = {"relation": [{"id": parent_external_id}]}
    properties[ids.f_res_order] = _title(f"#{sequence}")
    if text:
        properties[ids.f_res_text] = _rich_text(text)
    return properties


def build_resource_page_request(
    ids: NotionIds,
    *,
    parent_external_id: str | None,
    sequence: int,
    text: str | None = None,
    media_name: str | None = None,
    media_url: str | None = None,
) -> dict[str, Any]:
    """Body for a resource page linking its media by external URL."""
    properties = _resource_properties(ids, parent_external_id, sequence, text)

    if media_url:
        properties[ids.f_res_media] = {
            "files": [
                {
                    "name": media_name or media_url,
                    "type": "external",
                    "external": {"url": media_url},
                }
            ]
        }

    return {"parent": {"database_id": ids.resource_db}, "properties": properties}


def build_resource_page_request_with_uploads(
    ids: NotionIds,
    *,
    parent_external_id: str | None,
    sequence: int,
    text: str | None,
    files: Sequence[UploadedFile],
) -> dict[str, Any]:
    properties = _resource_properties(ids, parent_external_id, sequence, text)
    if files:
        properties[ids.f_res_media] = {
            "files": [
                {
                    "name": f.name or DEFAULT_UPLOAD_NAME,
                    "type": "file_upload",
                    "file_upload": {"id": f.upload_id},
                }
                for f in files
            ]
        }
    return {"parent": {"database_id": ids.resource_db}, "properties": properties}


def guess_content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or "application/octet-stream"


def redact_headers(headers: httpx.Headers | dict[str, str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for name, value in headers.items():
        if "authorization" in name.lower():
            out[name] = "Bearer [REDACTED]"
        else:
            out[name] = value
    return out


class NotionClient:
    """Synchronous Notion REST client implementing the remote sync interface."""

    def __init__(
        self,
        *,
        token: str,
        version: str,
        ids: NotionIds,
        base_url: str = DEFAULT_BASE_URL,
        timeout_sec: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.ids = ids
        self._token = token
        self._version = version
        self._http = httpx.Client(
            base_url=base_url,
            timeout=timeout_sec,
            transport=transport,
            headers={"User-Agent": USER_AGENT},
        )

    @classmethod
    def from_settings(cls, settings, *, transport: httpx.BaseTransport | None = None) -> "NotionClient":
        settings.validate_notion()
        return cls(
            token=settings.notion_token,
            version=settings.notion_version,
            ids=settings.notion_ids(),
            base_url=settings.notion_base_url,
            timeout_sec=settings.notion_timeout_sec,
            transport=transport,
        )

    def __repr__(self) -> str:
        return f"NotionClient(base_url={str(self._http.base_url)!r})"

    def close(self) -> None:
        self._http.close()

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Notion-Version": self._version,
        }

    def build_request(self, body: dict[str, Any]) -> httpx.Request:
        return self._http.build_request(
            "POST",
            "v1/pages",
            headers={**self._auth_headers(), "Content-Type": "application/json"},
            json=body,
        )

    def _send(self, request: httpx.Request) -> httpx.Response:
        logger.debug(
            "notion request method=%s url=%s headers=%s",
            request.method,
            request.url,
            redact_headers(request.headers),
        )
        try:
            response = self._http.send(request)
        except httpx.TransportError as exc:
            raise NotionTransportError(f"failed to reach Notion: {exc}") from exc

        logger.debug("notion response status=%s url=%s", response.status_code, request.url)
        if response.status_code == 429:
            logger.warning("rate limited by Notion: %s", response.text)
            raise NotionRateLimitError(response.text, response.headers.get("Retry-After"))
        if not response.is_success:
            logger.warning("notion api error status=%s body=%s", response.status_code, response.text)
            raise NotionApiError(response.status_code, response.text)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise NotionResponseError(f"invalid Notion response JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise NotionResponseError("unexpected Notion response shape")
        return payload

    @classmethod
    def _id_from(cls, response: httpx.Response) -> str:
        payload = cls._json(response)
        page_id = payload.get("id")
        if not isinstance(page_id, str) or not page_id:
            raise NotionResponseError("Notion response has no id")
        return page_id

    def _create_page(self, body: dict[str, Any]) -> str:
        logger.debug("notion create page payload=%s", json.dumps(body, ensure_ascii=False))
        page_id = self._id_from(self._send(self.build_request(body)))
        logger.info("created Notion page", extra={"page_id": page_id})
        return page_id

    def create_batch_page(self, title: str) -> str:
        return self._create_page(build_main_page_request(self.ids, title))

    def create_resource_page(
        self,
        *,
        parent_external_id: str | None,
        sequence: int,
        text: str | None,
        media_name: str | None,
        media_url: str | None,
    ) -> str:
        body = build_resource_page_request(
            self.ids,
            parent_external_id=parent_external_id,
            sequence=sequence,
            text=text,
            media_name=media_name,
            media_url=media_url,
        )
        return self._create_page(body)

    def create_resource_page_with_uploads(
        self,
        *,
        parent_external_id: str | None,
        sequence: int,
        text: str | None,
        files: Sequence[UploadedFile],
    ) -> str:
        body = build_resource_page_request_with_uploads(
            self.ids,
            parent_external_id=parent_external_id,
            sequence=sequence,
            text=text,
            files=files,
        )
        return self._create_page(body)

    def upload_file(self, path: Path) -> str:
        """Upload a local file in single-part mode and return the upload id."""
        path = Path(path)
        content = path.read_bytes()
        content_type = guess_content_type(path)

        create = self._http.build_request(
            "POST",
            "v1/file_uploads",
            headers={**self._auth_headers(), "Content-Type": "application/json"},
            json={"name": path.name, "content_type": content_type, "mode": "single_part"},
        )
        payload = self._json(self._send(create))
        upload_id = payload.get("id")
        upload_url = payload.get("upload_url")
        if not isinstance(upload_id, str) or not upload_id:
            raise NotionResponseError("file upload response has no id")
        if not isinstance(upload_url, str) or not upload_url:
            upload_url = f"v1/file_uploads/{upload_id}/send"

        send = self._http.build_request(
            "POST",
            upload_url,
            headers=self._auth_headers(),
            files={"file": (path.name, content, content_type)},
        )
        self._send(send)
        logger.info("uploaded file to Notion", extra={"file_name": path.name, "upload_id": upload_id})
        return upload_id

    def retrieve_database(self, database_id: str) -> dict[str, Any]:
        request = self._http.build_request(
            "GET",
            f"v1/databases/{database_id}",
            headers=self._auth_headers(),
        )
        return self._json(self._send(request))
