import json
from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest

from firesheet.codec import FieldCodec
from firesheet.config import SyncConfig
from firesheet.engine import SyncEngine
from firesheet.firestore import FirestoreClient

COLLECTION_NAME = "projects/demo/databases/(default)/documents/puzzles"


def _document(doc_id: str, **fields) -> dict:
    return {"name": f"{COLLECTION_NAME}/{doc_id}", "fields": fields}


class FakeFirestore:
    """Records requests and answers them through ``httpx.MockTransport``."""

    def __init__(self, documents=None, list_status: int = 200):
        self.documents = documents or []
        self.list_status = list_status
        self.requests: list[httpx.Request] = []
        self.patch_handler: Callable[[httpx.Request], httpx.Response] | None = None
        self.list_error: Exception | None = None
        self.next_page_token: str | None = None

    @property
    def patches(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "PATCH"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            if self.list_error is not None:
                raise self.list_error
            if self.list_status != 200:
                return httpx.Response(self.list_status, json={"error": {"message": "denied"}})
            body = {"documents": self.documents} if self.documents else {}
            if self.next_page_token:
                body["nextPageToken"] = self.next_page_token
            return httpx.Response(200, json=body)
        if self.patch_handler is not None:
            return self.patch_handler(request)
        return httpx.Response(200, json={"name": request.url.path, "fields": json.loads(request.content)["fields"]})


@pytest.fixture()
def config() -> SyncConfig:
    return SyncConfig(
        project_id="demo",
        api_key="secret-key",
        collection="puzzles",
        base_url="https://firestore.test/v1",
        identifier="id",
        declared_columns=["title"],
        writable_fields=["difficulty", "tags"],
        audit_label="Last updated",
    )


@pytest.fixture()
def fake() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture()
def engine(config: SyncConfig, fake: FakeFirestore) -> SyncEngine:
    http = httpx.Client(transport=httpx.MockTransport(fake))
    client = FirestoreClient(config, http=http)
    codec = FieldCodec(display_tz=timezone.utc, timestamp_format="%Y-%m-%d %H:%M")
    eng = SyncEngine(
        config,
        client=client,
        codec=codec,
        clock=lambda: datetime(2024, 5, 1, 9, 30, 0),
    )
    yield eng
    http.close()


@pytest.fixture()
def make_document():
    return _document
