"""Tests for the papermirror CLI entry point."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import click.testing
import pytest

from papermirror.cli import cli
from papermirror.schemas.mirror import MirrorFields
from papermirror.schemas.paperless import DocumentPage, PaperlessDocument, PaperlessTag
from papermirror.schemas.suggestions import SuggestedChanges
from papermirror.store.mirror import MirrorStore

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _make_document(doc_id: int = 1, tags: list[int] | None = None) -> PaperlessDocument:
    return PaperlessDocument(
        id=doc_id,
        title=f"Document {doc_id}",
        content="Invoice from Acme Corp for $100.00",
        tags=tags or [],
        correspondent=None,
        created="2025-01-01",
        modified="2025-01-02T00:00:00Z",
    )


def _mock_paperless(docs=None, tags=None):
    """Create a mock PaperlessClient."""
    mock = AsyncMock()
    mock.fetch_documents.return_value = DocumentPage(results=docs or [], has_more=False)
    mock.fetch_tag_catalog.return_value = tags or []
    return mock


def _patch_async_context(target, mock_instance):
    """Create a patch that makes a class act as an async context manager returning mock_instance."""
    mock_cls = MagicMock()
    mock_cls.return_value.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    return patch(target, mock_cls)


@pytest.fixture()
def runner():
    return click.testing.CliRunner()


@pytest.fixture()
def configured(monkeypatch, tmp_path):
    """Point the CLI at a temp database and fake credentials."""
    db_path = tmp_path / "mirror.db"
    monkeypatch.setattr("papermirror.cli.PAPERLESS_BASE_URL", "http://localhost:8000")
    monkeypatch.setattr("papermirror.cli.PAPERLESS_API_TOKEN", "test-token")
    monkeypatch.setattr("papermirror.cli.MIRROR_DB_PATH", str(db_path))
    monkeypatch.setattr("papermirror.cli.INSTANCE_ID", "default")
    monkeypatch.setattr("papermirror.cli.IMPORT_FILTER_TAGS", ())
    return db_path


# ------------------------------------------------------------------
# Config validation
# ------------------------------------------------------------------


def test_sync_rejects_missing_config(runner, monkeypatch):
    monkeypatch.setattr("papermirror.cli.PAPERLESS_BASE_URL", "")
    monkeypatch.setattr("papermirror.cli.PAPERLESS_API_TOKEN", "")
    result = runner.invoke(cli, ["sync"])
    assert result.exit_code != 0
    assert "Missing required config" in result.output


def test_result_rejects_placeholder_token(runner, monkeypatch):
    monkeypatch.setattr("papermirror.cli.PAPERLESS_BASE_URL", "http://localhost:8000")
    monkeypatch.setattr("papermirror.cli.PAPERLESS_API_TOKEN", "placeholder")
    result = runner.invoke(cli, ["result", "1"])
    assert result.exit_code != 0
    assert "PAPERLESS_API_TOKEN" in result.output


# ------------------------------------------------------------------
# papermirror sync
# ------------------------------------------------------------------


def test_sync_imports_documents(runner, configured):
    paperless = _mock_paperless(docs=[_make_document(1), _make_document(2)])

    with _patch_async_context("papermirror.integrations.paperless.PaperlessClient", paperless):
        result = runner.invoke(cli, ["sync"])

    assert result.exit_code == 0, result.output
    assert "Imported: 2" in result.output
    assert "Filtered out: 0" in result.output
    with MirrorStore(configured) as store:
        assert store.count_documents("default") == 2
        assert len(store.list_imports("default")) == 1


def test_sync_filter_tags_option(runner, configured):
    paperless = _mock_paperless(docs=[_make_document(1, tags=[5]), _make_document(2)])

    with _patch_async_context("papermirror.integrations.paperless.PaperlessClient", paperless):
        result = runner.invoke(cli, ["sync", "--filter-tags", "5"])

    assert result.exit_code == 0, result.output
    assert "Imported: 1" in result.output
    assert "Filtered out: 1" in result.output


def test_sync_twice_reports_unchanged(runner, configured):
    paperless = _mock_paperless(docs=[_make_document(1)])

    with _patch_async_context("papermirror.integrations.paperless.PaperlessClient", paperless):
        runner.invoke(cli, ["sync"])
        result = runner.invoke(cli, ["sync"])

    assert "Imported: 0" in result.output
    assert "Unchanged: 1" in result.output


# ------------------------------------------------------------------
# papermirror attach / result
# ------------------------------------------------------------------


def _seed_document(db_path, tag_ids: list[int]) -> str:
    with MirrorStore(db_path) as store:
        doc = store.create_document(
            "default", 362, MirrorFields(title="WIZO Konzert", tag_ids=tag_ids)
        )
    return doc.id


def test_attach_and_result(runner, configured, tmp_path):
    _seed_document(configured, [10, 20])
    payload = tmp_path / "changes.json"
    payload.write_text(
        json.dumps(
            {"suggestedTitle": "WIZO Ticket", "suggestedTags": [{"id": 99, "name": "Finance"}]}
        )
    )

    result = runner.invoke(cli, ["attach", "362", str(payload), "--provider", "ollama"])
    assert result.exit_code == 0, result.output
    assert "Stored result" in result.output

    paperless = _mock_paperless(
        tags=[PaperlessTag(id=10, name="Finance"), PaperlessTag(id=20, name="Archive")]
    )
    with _patch_async_context("papermirror.integrations.paperless.PaperlessClient", paperless):
        result = runner.invoke(cli, ["result", "362"])

    assert result.exit_code == 0, result.output
    view = json.loads(result.output)
    assert view["aiProvider"] == "ollama"
    assert view["originalTitle"] == "WIZO Konzert"
    assert view["changes"]["suggestedTitle"] == "WIZO Ticket"
    assert view["changes"]["suggestedTags"] == [
        {"id": 10, "name": "Finance", "isAssigned": True},
        {"id": 20, "name": "Archive", "isAssigned": True, "isRemoved": True},
    ]


def test_attach_unknown_document(runner, configured, tmp_path):
    payload = tmp_path / "changes.json"
    payload.write_text("{}")
    result = runner.invoke(cli, ["attach", "999", str(payload)])
    assert result.exit_code != 0
    assert "not mirrored" in result.output


def test_result_unknown_document(runner, configured):
    result = runner.invoke(cli, ["result", "999"])
    assert result.exit_code != 0
    assert "not mirrored" in result.output


def test_result_without_processing_result(runner, configured):
    _seed_document(configured, [])
    paperless = _mock_paperless()
    with _patch_async_context("papermirror.integrations.paperless.PaperlessClient", paperless):
        result = runner.invoke(cli, ["result", "362"])
    assert result.exit_code != 0
    assert "No processing result" in result.output


def test_result_with_null_changes(runner, configured):
    doc_id = _seed_document(configured, [10])
    with MirrorStore(configured) as store:
        store.add_processing_result(doc_id, None)

    paperless = _mock_paperless()
    with _patch_async_context("papermirror.integrations.paperless.PaperlessClient", paperless):
        result = runner.invoke(cli, ["result", "362"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["changes"] is None
    paperless.fetch_tag_catalog.assert_not_awaited()


def test_attach_preserves_payload(runner, configured, tmp_path):
    doc_id = _seed_document(configured, [])
    payload = tmp_path / "changes.json"
    payload.write_text(json.dumps({"suggestedDate": "2026-02-07", "language": "de"}))

    runner.invoke(cli, ["attach", "362", str(payload)])

    with MirrorStore(configured) as store:
        stored = store.latest_processing_result(doc_id)
    assert stored.changes == SuggestedChanges.model_validate(
        {"suggestedDate": "2026-02-07", "language": "de"}
    )


# ------------------------------------------------------------------
# papermirror history / status
# ------------------------------------------------------------------


def test_history_empty(runner, configured):
    result = runner.invoke(cli, ["history"])
    assert result.exit_code == 0
    assert "No sync runs recorded." in result.output


def test_history_lists_runs(runner, configured):
    with MirrorStore(configured) as store:
        store.record_import("default", imported=2, updated=0, unchanged=0, total_in_catalog=2)

    result = runner.invoke(cli, ["history"])
    assert result.exit_code == 0
    assert "imported=2 updated=0 unchanged=0 total=2" in result.output


def test_status_empty(runner, configured):
    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 0
    assert "Mirrored documents: 0" in result.output
    assert "Last sync:          never" in result.output


def test_status_after_sync(runner, configured):
    _seed_document(configured, [])
    with MirrorStore(configured) as store:
        store.record_import("default", imported=1, updated=0, unchanged=0, total_in_catalog=1)

    result = runner.invoke(cli, ["status"])
    assert "Mirrored documents: 1" in result.output
    assert "never" not in result.output
