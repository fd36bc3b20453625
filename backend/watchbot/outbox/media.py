"""Media URL filtering for remote pushes."""
from __future__ import annotations

from pathlib import Path
from urllib.parse import urlsplit

DEFAULT_TRANSIENT_HOSTS = ("api.telegram.org",)


def sanitize_media_url(url: str | None, transient_hosts: tuple[str, ...] | list[str] = DEFAULT_TRANSIENT_HOSTS) -> str | None:
    """Return the URL if the remote side can fetch it later, else None.

    Blank URLs, non-http(s) schemes and links on hosts that embed expiring
    credentials (bot file links) are dropped.
    """
    if url is None:
        return None
    value = url.strip()
    if not value:
        return None

    parts = urlsplit(value)
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return None

    host = (parts.hostname or "").lower()
    lowered = value.lower()
    for transient in transient_hosts:
        transient = transient.strip().lower()
        if not transient:
            continue
        if host == transient or host.endswith("." + transient) or transient in lowered:
            return None
    return value


def sanitize_media_name(name: str | None) -> str | None:
    if name is None:
        return None
    value = name.strip()
    return value or None


def thumbnail_path(data_dir: Path, media_path: Path) -> Path:
    """Where the thumbnail of a downloaded video is stored."""
    return data_dir / "media" / "thumbs" / f"{media_path.stem}.jpg"
