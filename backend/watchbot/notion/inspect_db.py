"""Print the properties of a Notion database.

Useful for finding the property names to put in the NOTION_*_FIELD settings.

Usage:
    # The configured main database
    python -m watchbot.notion.inspect_db

    # Any database the integration can read
    python -m watchbot.notion.inspect_db --db-id <database-id>
"""
from __future__ import annotations

import argparse
import logging
from typing import Any

from watchbot.config import get_settings
from watchbot.notion.client import NotionClient
from watchbot.notion.errors import NotionError

logger = logging.getLogger(__name__)


def describe_database(payload: dict[str, Any]) -> list[str]:
    lines = [f"Database ID: {payload.get('id', '?')}", "Properties:"]
    properties = payload.get("properties") or {}
    for name, prop in properties.items():
        lines.append(f"  {name} -> {{ id: {prop.get('id', '?')}, type: {prop.get('type', '?')} }}")
    return lines


def inspect_database(client: NotionClient, database_id: str) -> list[str]:
    return describe_database(client.retrieve_database(database_id))


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    settings = get_settings()
    parser = argparse.ArgumentParser(description="Show the properties of a Notion database")
    parser.add_argument("--db-id", default=settings.notion_main_db_id, help="Database to inspect")
    args = parser.parse_args(argv)

    if not settings.notion_token:
        logger.error("NOTION_TOKEN is not set")
        raise SystemExit(2)
    if not args.db_id:
        logger.error("no database id: pass --db-id or set NOTION_MAIN_DB_ID")
        raise SystemExit(2)

    client = NotionClient(
        token=settings.notion_token,
        version=settings.notion_version,
        ids=settings.notion_ids(),
        base_url=settings.notion_base_url,
        timeout_sec=settings.notion_timeout_sec,
    )
    try:
        lines = inspect_database(client, args.db_id)
    except NotionError as exc:
        logger.error("failed to retrieve database %s: %s", args.db_id, exc)
        raise SystemExit(1)
    finally:
        client.close()

    for line in lines:
        print(line)


if __name__ == "__main__":
    main()
