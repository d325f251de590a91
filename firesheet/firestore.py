"""Thin Firestore REST client used by the sync engine."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .config import SyncConfig

logger = logging.getLogger(__name__)

_SIMPLE_FIELD = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def field_path(name: str) -> str:
    """Quote a field name for ``updateMask.fieldPaths`` when it needs it."""

    if _SIMPLE_FIELD.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


class FirestoreClient:
    def __init__(self, config: SyncConfig, http: Optional[httpx.Client] = None):
        self.config = config
        self._owns_http = http is None
        self.http = http or httpx.Client(timeout=config.timeout)

    @property
    def collection_url(self) -> str:
        return (
            f"{self.config.base_url}/projects/{quote(self.config.project_id, safe='')}"
            f"/databases/(default)/documents/{self.config.collection}"
        )

    def document_url(self, document_id: str) -> str:
        return f"{self.collection_url}/{quote(document_id, safe='')}"

    def list_documents(self) -> httpx.Response:
        params = {"key": self.config.api_key, "pageSize": self.config.page_size}
        logger.info("GET %s", self.collection_url)
        return self.http.get(self.collection_url, params=params)

    def patch_document(self, document_id: str, fields: Dict[str, Any]) -> httpx.Response:
        params: list[tuple[str, Any]] = [("key", self.config.api_key)]
        params.extend(("updateMask.fieldPaths", field_path(name)) for name in fields)
        url = self.document_url(document_id)
        logger.info("PATCH %s fields=%s", url, sorted(fields))
        return self.http.patch(url, params=params, json={"fields": fields})

    def close(self) -> None:
        if self._owns_http:
            self.http.close()
