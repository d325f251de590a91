from pathlib import Path

from firesheet import schema
from firesheet.config import build_sync_config, load_settings
from firesheet.firestore import FirestoreClient, field_path


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("FIRESTORE_PROJECT_ID", "demo")
    monkeypatch.setenv("FIRESTORE_API_KEY", "key")
    monkeypatch.setenv("FIRESTORE_COLLECTION", "/games/puzzles/")
    monkeypatch.setenv("DECLARED_COLUMNS", "title, difficulty")
    monkeypatch.setenv("WRITABLE_FIELDS", "difficulty,,tags")
    monkeypatch.setenv("FIRESTORE_PAGE_SIZE", "50")

    config = build_sync_config(load_settings())

    assert config.project_id == "demo"
    assert config.collection == "games/puzzles"
    assert config.page_size == 50
    assert config.declared_columns == ["title", "difficulty"]
    assert config.writable_fields == ["difficulty", "tags"]
    assert config.missing_credentials() == []


def test_missing_credentials_are_reported(monkeypatch):
    monkeypatch.delenv("FIRESTORE_PROJECT_ID", raising=False)
    monkeypatch.delenv("FIRESTORE_API_KEY", raising=False)
    config = build_sync_config(load_settings())
    assert config.missing_credentials() == ["projectId", "apiKey"]


def test_layout_file_wins_over_settings(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("WRITABLE_FIELDS", "difficulty")
    path = schema.save(schema.Layout(identifier="docId", writable=["score"]), str(tmp_path / "layout.json"))
    config = build_sync_config(load_settings(), schema.load(path))
    assert config.identifier == "docId"
    assert config.writable_fields == ["score"]


def test_document_urls_and_field_paths(config):
    client = FirestoreClient(config)
    try:
        assert client.document_url("a b") == (
            "https://firestore.test/v1/projects/demo/databases/(default)/documents/puzzles/a%20b"
        )
    finally:
        client.close()
    assert field_path("difficulty") == "difficulty"
    assert field_path("first name") == "`first name`"
    assert field_path("a`b") == "`a\\`b`"
