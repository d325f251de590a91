from __future__ import annotations

import os
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .schema import Layout

load_dotenv()

DEFAULT_BASE_URL = "https://firestore.googleapis.com/v1"


class Settings(BaseModel):
    FIRESTORE_PROJECT_ID: Optional[str] = Field(default=None)
    FIRESTORE_API_KEY: Optional[str] = Field(default=None)
    FIRESTORE_COLLECTION: str = Field(default="items")
    FIRESTORE_BASE_URL: str = Field(default=DEFAULT_BASE_URL)
    FIRESTORE_PAGE_SIZE: int = Field(default=1000)
    HTTP_TIMEOUT_SECONDS: float = Field(default=30.0)
    IDENTIFIER_COLUMN: str = Field(default="id")
    DECLARED_COLUMNS: str = Field(default="", description="comma-separated read order")
    WRITABLE_FIELDS: str = Field(default="", description="comma-separated write-back fields")
    LAYOUT_JSON_PATH: str = Field(default="layout.json")
    AUDIT_LABEL: str = Field(default="Last updated")
    DISPLAY_TIMEZONE: Optional[str] = Field(default=None)
    TIMESTAMP_FORMAT: str = Field(default="%x %X")
    GOOGLE_SHEET_ID: Optional[str] = Field(default=None)
    GOOGLE_WORKSHEET: str = Field(default="Sheet1")
    GOOGLE_OAUTH_CLIENT_SECRETS: Optional[str] = Field(default=None)
    GOOGLE_SERVICE_ACCOUNT_JSON: Optional[str] = Field(default=None)
    DELEGATED_SUBJECT: Optional[str] = Field(default=None)
    TOKEN_STORE: str = Field(default=".tokens/sheets.json")
    API_TOKEN: str = Field(default="dev_token")
    API_KEYS: str = Field(default="", description="comma-separated API keys")
    CORS_ALLOW_ORIGINS: str = Field(default="*")
    LOG_LEVEL: str = Field(default="INFO")


class SyncConfig(BaseModel):
    """Everything the engine needs, passed in explicitly."""

    project_id: str = ""
    api_key: str = ""
    collection: str = "items"
    base_url: str = DEFAULT_BASE_URL
    page_size: int = 1000
    timeout: float = 30.0
    identifier: str = "id"
    declared_columns: List[str] = Field(default_factory=list)
    writable_fields: List[str] = Field(default_factory=list)
    audit_label: str = "Last updated"

    def missing_credentials(self) -> list[str]:
        missing = []
        if not self.project_id.strip():
            missing.append("projectId")
        if not self.api_key.strip():
            missing.append("apiKey")
        return missing


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def load_settings() -> Settings:
    values: dict[str, Any] = {}
    for name in Settings.model_fields:
        env_value = os.getenv(name)
        if env_value is not None:
            values[name] = env_value
    return Settings(**values)


def layout_from(settings: Settings, stored: Layout | None = None) -> Layout:
    if stored is not None:
        return stored
    return Layout(
        identifier=settings.IDENTIFIER_COLUMN,
        columns=_split(settings.DECLARED_COLUMNS),
        writable=_split(settings.WRITABLE_FIELDS),
    )


def build_sync_config(settings: Settings, layout: Layout | None = None) -> SyncConfig:
    layout = layout_from(settings, layout)
    return SyncConfig(
        project_id=(settings.FIRESTORE_PROJECT_ID or "").strip(),
        api_key=(settings.FIRESTORE_API_KEY or "").strip(),
        collection=settings.FIRESTORE_COLLECTION.strip("/"),
        base_url=settings.FIRESTORE_BASE_URL.rstrip("/"),
        page_size=settings.FIRESTORE_PAGE_SIZE,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        identifier=layout.identifier,
        declared_columns=list(layout.columns),
        writable_fields=list(layout.writable),
        audit_label=settings.AUDIT_LABEL,
    )
