"""SQLite-backed local mirror of Paperless-ngx documents.

Holds three tables:

- ``mirror_documents``: one row per (instance, remote document id).
- ``import_history``: one append-only row per sync run.
- ``processing_results``: stored AI suggestion payloads per mirrored document.

Each write commits on its own. A sync that dies halfway leaves the rows it
already wrote; the next run recomputes from the full remote corpus.
"""

import json
import logging
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path

from papermirror.schemas.mirror import (
    ImportHistoryRecord,
    MirrorDocument,
    MirrorFields,
    MirrorIndexEntry,
)
from papermirror.schemas.suggestions import ProcessingResult, SuggestedChanges

logger = logging.getLogger(__name__)

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS mirror_documents (
    id                  TEXT PRIMARY KEY,
    instance_id         TEXT NOT NULL,
    paperless_id        INTEGER NOT NULL,
    title               TEXT NOT NULL,
    content             TEXT NOT NULL DEFAULT '',
    correspondent_id    INTEGER,
    tag_ids_json        TEXT NOT NULL DEFAULT '[]',
    document_date       TEXT,
    paperless_modified  TEXT,
    imported_at         TEXT NOT NULL,
    UNIQUE (instance_id, paperless_id)
);

CREATE TABLE IF NOT EXISTS import_history (
    id                  TEXT PRIMARY KEY,
    instance_id         TEXT NOT NULL,
    imported            INTEGER NOT NULL,
    updated             INTEGER NOT NULL,
    unchanged           INTEGER NOT NULL,
    total_in_catalog    INTEGER NOT NULL,
    imported_at         TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS processing_results (
    id                  TEXT PRIMARY KEY,
    document_id         TEXT NOT NULL REFERENCES mirror_documents(id),
    processed_at        TEXT NOT NULL,
    ai_provider         TEXT,
    input_tokens        INTEGER,
    output_tokens       INTEGER,
    estimated_cost      REAL,
    changes_json        TEXT,
    tool_calls_json     TEXT,
    original_title      TEXT
);

CREATE INDEX IF NOT EXISTS idx_import_history_instance
    ON import_history (instance_id, imported_at);
CREATE INDEX IF NOT EXISTS idx_processing_results_document
    ON processing_results (document_id, processed_at);
"""

# Upsert so two concurrent runs racing on the same new document end up with
# one row instead of an IntegrityError.
_UPSERT_DOCUMENT = """
INSERT INTO mirror_documents
    (id, instance_id, paperless_id, title, content, correspondent_id,
     tag_ids_json, document_date, paperless_modified, imported_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (instance_id, paperless_id) DO UPDATE SET
    title = excluded.title,
    content = excluded.content,
    correspondent_id = excluded.correspondent_id,
    tag_ids_json = excluded.tag_ids_json,
    document_date = excluded.document_date,
    paperless_modified = excluded.paperless_modified
"""

_UPDATE_DOCUMENT = """
UPDATE mirror_documents SET
    title = ?, content = ?, correspondent_id = ?, tag_ids_json = ?,
    document_date = ?, paperless_modified = ?
WHERE id = ?
"""

_SELECT_DOCUMENT = "SELECT * FROM mirror_documents WHERE instance_id = ? AND paperless_id = ?"
_SELECT_INDEX = "SELECT id, paperless_id, paperless_modified FROM mirror_documents WHERE instance_id = ?"

_INSERT_HISTORY = """
INSERT INTO import_history
    (id, instance_id, imported, updated, unchanged, total_in_catalog, imported_at)
VALUES (?, ?, ?, ?, ?, ?, ?)
"""
_SELECT_HISTORY = (
    "SELECT * FROM import_history WHERE instance_id = ? ORDER BY imported_at DESC, rowid DESC LIMIT ?"
)

_INSERT_RESULT = """
INSERT INTO processing_results
    (id, document_id, processed_at, ai_provider, input_tokens, output_tokens,
     estimated_cost, changes_json, tool_calls_json, original_title)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""
_SELECT_LATEST_RESULT = (
    "SELECT * FROM processing_results WHERE document_id = ? "
    "ORDER BY processed_at DESC, rowid DESC LIMIT 1"
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_document(row: sqlite3.Row) -> MirrorDocument:
    """Convert a database row to a MirrorDocument."""
    return MirrorDocument(
        id=row["id"],
        instance_id=row["instance_id"],
        paperless_id=row["paperless_id"],
        title=row["title"],
        content=row["content"],
        correspondent_id=row["correspondent_id"],
        tag_ids=json.loads(row["tag_ids_json"]),
        document_date=_parse(row["document_date"]),
        paperless_modified=_parse(row["paperless_modified"]),
        imported_at=datetime.fromisoformat(row["imported_at"]),
    )


def _row_to_history(row: sqlite3.Row) -> ImportHistoryRecord:
    return ImportHistoryRecord(
        id=row["id"],
        instance_id=row["instance_id"],
        imported=row["imported"],
        updated=row["updated"],
        unchanged=row["unchanged"],
        total_in_catalog=row["total_in_catalog"],
        imported_at=datetime.fromisoformat(row["imported_at"]),
    )


def _row_to_result(row: sqlite3.Row) -> ProcessingResult:
    changes = row["changes_json"]
    tool_calls = row["tool_calls_json"]
    return ProcessingResult(
        id=row["id"],
        document_id=row["document_id"],
        processed_at=datetime.fromisoformat(row["processed_at"]),
        ai_provider=row["ai_provider"],
        input_tokens=row["input_tokens"],
        output_tokens=row["output_tokens"],
        estimated_cost=row["estimated_cost"],
        changes=SuggestedChanges.model_validate_json(changes) if changes else None,
        tool_calls=json.loads(tool_calls) if tool_calls else None,
        original_title=row["original_title"],
    )


class MirrorStore:
    """SQLite-backed mirror repository for one or more Paperless instances.

    Usage::

        with MirrorStore("/path/to/mirror.db") as store:
            index = store.load_index("default")
            doc = store.get_document("default", 362)
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_CREATE_TABLES)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "MirrorStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Mirror documents
    # ------------------------------------------------------------------

    def load_index(self, instance_id: str) -> dict[int, MirrorIndexEntry]:
        """Map each mirrored paperless id to its local id and last-seen timestamp."""
        rows = self._conn.execute(_SELECT_INDEX, (instance_id,)).fetchall()
        return {
            row["paperless_id"]: MirrorIndexEntry(
                local_id=row["id"],
                paperless_modified=_parse(row["paperless_modified"]),
            )
            for row in rows
        }

    def get_document(self, instance_id: str, paperless_id: int) -> MirrorDocument | None:
        """Fetch one mirror row by its remote identity."""
        row = self._conn.execute(_SELECT_DOCUMENT, (instance_id, paperless_id)).fetchone()
        if row is None:
            return None
        return _row_to_document(row)

    def count_documents(self, instance_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM mirror_documents WHERE instance_id = ?", (instance_id,)
        ).fetchone()
        return row[0]

    def create_document(
        self, instance_id: str, paperless_id: int, fields: MirrorFields
    ) -> MirrorDocument:
        """Create the mirror row for a remote document.

        If another run created the row in the meantime, its fields are
        overwritten and its local id is kept.
        """
        self._conn.execute(
            _UPSERT_DOCUMENT,
            (
                str(uuid.uuid4()),
                instance_id,
                paperless_id,
                fields.title,
                fields.content,
                fields.correspondent_id,
                json.dumps(fields.tag_ids),
                _iso(fields.document_date),
                _iso(fields.paperless_modified),
                datetime.now(UTC).isoformat(),
            ),
        )
        self._conn.commit()
        logger.debug("Mirrored document %d for instance %s", paperless_id, instance_id)
        return self.get_document(instance_id, paperless_id)

    def update_document(self, local_id: str, fields: MirrorFields) -> None:
        """Overwrite the mutable fields of an existing mirror row.

        Raises:
            ValueError: If no row has this local id.
        """
        cursor = self._conn.execute(
            _UPDATE_DOCUMENT,
            (
                fields.title,
                fields.content,
                fields.correspondent_id,
                json.dumps(fields.tag_ids),
                _iso(fields.document_date),
                _iso(fields.paperless_modified),
                local_id,
            ),
        )
        self._conn.commit()
        if cursor.rowcount == 0:
            raise ValueError(f"Mirror document not found: {local_id}")
        logger.debug("Updated mirror document %s", local_id)

    # ------------------------------------------------------------------
    # Import history
    # ------------------------------------------------------------------

    def record_import(
        self,
        instance_id: str,
        *,
        imported: int,
        updated: int,
        unchanged: int,
        total_in_catalog: int,
    ) -> ImportHistoryRecord:
        """Append the outcome of one sync run."""
        record = ImportHistoryRecord(
            id=str(uuid.uuid4()),
            instance_id=instance_id,
            imported=imported,
            updated=updated,
            unchanged=unchanged,
            total_in_catalog=total_in_catalog,
            imported_at=datetime.now(UTC),
        )
        self._conn.execute(
            _INSERT_HISTORY,
            (
                record.id,
                record.instance_id,
                record.imported,
                record.updated,
                record.unchanged,
                record.total_in_catalog,
                record.imported_at.isoformat(),
            ),
        )
        self._conn.commit()
        return record

    def list_imports(self, instance_id: str, limit: int = 20) -> list[ImportHistoryRecord]:
        """Most recent sync runs first."""
        rows = self._conn.execute(_SELECT_HISTORY, (instance_id, limit)).fetchall()
        return [_row_to_history(r) for r in rows]

    # ------------------------------------------------------------------
    # Processing results
    # ------------------------------------------------------------------

    def add_processing_result(
        self,
        document_id: str,
        changes: SuggestedChanges | None,
        *,
        ai_provider: str | None = None,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        estimated_cost: float | None = None,
        tool_calls: object = None,
        original_title: str | None = None,
        processed_at: datetime | None = None,
    ) -> ProcessingResult:
        """Store an AI processing run for a mirrored document."""
        result = ProcessingResult(
            id=str(uuid.uuid4()),
            document_id=document_id,
            processed_at=processed_at or datetime.now(UTC),
            ai_provider=ai_provider,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_cost=estimated_cost,
            changes=changes,
            tool_calls=tool_calls,
            original_title=original_title,
        )
        self._conn.execute(
            _INSERT_RESULT,
            (
                result.id,
                result.document_id,
                result.processed_at.isoformat(),
                result.ai_provider,
                result.input_tokens,
                result.output_tokens,
                result.estimated_cost,
                (
                    changes.model_dump_json(by_alias=True, exclude_unset=True)
                    if changes is not None
                    else None
                ),
                json.dumps(tool_calls) if tool_calls is not None else None,
                result.original_title,
            ),
        )
        self._conn.commit()
        logger.info("Stored processing result %s for document %s", result.id, document_id)
        return result

    def latest_processing_result(self, document_id: str) -> ProcessingResult | None:
        """The newest processing run for a document, or None."""
        row = self._conn.execute(_SELECT_LATEST_RESULT, (document_id,)).fetchone()
        if row is None:
            return None
        return _row_to_result(row)
