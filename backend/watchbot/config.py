from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from watchbot.notion.types import NotionIds


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = Field(default="watchbot", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Storage
    database_url: str = Field(default="sqlite+pysqlite:///./data/watchbot.db", alias="DATABASE_URL")
    data_dir: str = Field(default="./data", alias="DATA_DIR")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # Sync worker
    sync_worker_enabled: bool = Field(default=True, alias="SYNC_WORKER_ENABLED")
    poll_interval_ms: int = Field(default=500, alias="POLL_INTERVAL_MS")
    max_backoff_seconds: int = Field(default=3600, alias="MAX_BACKOFF_SECONDS")
    # Keep as string to support simple comma-separated values in `.env` without requiring JSON.
    transient_media_hosts: str = Field(default="api.telegram.org", alias="TRANSIENT_MEDIA_HOSTS")

    # Drain runner
    drain_skip_failed: bool = Field(default=False, alias="DRAIN_SKIP_FAILED")
    drain_max_failed_attempts: int = Field(default=5, alias="DRAIN_MAX_FAILED_ATTEMPTS")

    # Ingestion
    allowed_users: str = Field(default="", alias="ALLOWED_USERS")

    # Notion
    notion_token: str = Field(default="", alias="NOTION_TOKEN")
    notion_version: str = Field(default="2022-06-28", alias="NOTION_VERSION")
    notion_base_url: str = Field(default="https://api.notion.com/", alias="NOTION_BASE_URL")
    notion_timeout_sec: float = Field(default=30.0, alias="NOTION_TIMEOUT_SEC")
    notion_main_db_id: str = Field(default="", alias="NOTION_MAIN_DB_ID")
    notion_main_title_field: str = Field(default="Title", alias="NOTION_MAIN_TITLE_FIELD")
    notion_resource_db_id: str = Field(default="", alias="NOTION_RESOURCE_DB_ID")
    notion_resource_relation_field: str = Field(default="Batch", alias="NOTION_RESOURCE_RELATION_FIELD")
    notion_resource_order_field: str = Field(default="Order", alias="NOTION_RESOURCE_ORDER_FIELD")
    notion_resource_text_field: str = Field(default="Text", alias="NOTION_RESOURCE_TEXT_FIELD")
    notion_resource_media_field: str = Field(default="Media", alias="NOTION_RESOURCE_MEDIA_FIELD")

    @field_validator("poll_interval_ms")
    @classmethod
    def _poll_interval_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("POLL_INTERVAL_MS must be > 0")
        return value

    @field_validator("data_dir")
    @classmethod
    def _data_dir_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("DATA_DIR must be non-empty")
        return value

    def allowed_users_list(self) -> list[int]:
        value = self.allowed_users
        if not value or not value.strip():
            return []
        return [int(item.strip()) for item in value.split(",") if item.strip()]

    def transient_media_hosts_list(self) -> list[str]:
        value = self.transient_media_hosts
        if not value or not value.strip():
            return []
        return [item.strip().lower() for item in value.split(",") if item.strip()]

    def resolved_data_dir(self) -> Path:
        return Path(self.data_dir).expanduser()

    def ensure_dirs(self) -> None:
        self.resolved_data_dir().mkdir(parents=True, exist_ok=True)

    def validate_notion(self) -> None:
        """Raise ValueError naming the first missing Notion setting."""
        required = {
            "NOTION_TOKEN": self.notion_token,
            "NOTION_VERSION": self.notion_version,
            "NOTION_MAIN_DB_ID": self.notion_main_db_id,
            "NOTION_MAIN_TITLE_FIELD": self.notion_main_title_field,
            "NOTION_RESOURCE_DB_ID": self.notion_resource_db_id,
            "NOTION_RESOURCE_RELATION_FIELD": self.notion_resource_relation_field,
            "NOTION_RESOURCE_ORDER_FIELD": self.notion_resource_order_field,
            "NOTION_RESOURCE_TEXT_FIELD": self.notion_resource_text_field,
            "NOTION_RESOURCE_MEDIA_FIELD": self.notion_resource_media_field,
        }
        for name, value in required.items():
            if not value or not value.strip():
                raise ValueError(f"{name} must be non-empty")

    def notion_ids(self) -> NotionIds:
        return NotionIds(
            main_db=self.notion_main_db_id,
            resource_db=self.notion_resource_db_id,
            f_main_title=self.notion_main_title_field,
            f_rel_parent=self.notion_resource_relation_field,
            f_res_order=self.notion_resource_order_field,
            f_res_text=self.notion_resource_text_field,
            f_res_media=self.notion_resource_media_field,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
