"""Pull a Paperless-ngx corpus into the local mirror.

One call to ``sync_instance``:

1. Fetches every page of remote documents, one page at a time.
2. Drops documents missing any of the instance's import filter tags.
3. Loads the mirror index for the instance.
4. Creates, updates, or skips each remaining document in received order.
5. Appends one import history record.

Nothing is caught here. A remote or store failure aborts the run before the
history record is written; rows already written stay, and the next run
converges from the full corpus again.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Protocol

from papermirror.schemas.mirror import (
    ImportHistoryRecord,
    MirrorDocument,
    MirrorFields,
    MirrorIndexEntry,
    PaperlessInstance,
    SyncSummary,
)
from papermirror.schemas.paperless import DocumentPage, PaperlessDocument

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class RemoteDocumentSource(Protocol):
    """Anything that can list remote documents page by page."""

    async def fetch_documents(self, page: int, page_size: int) -> DocumentPage:
        ...  # pragma: no cover


class DocumentRepository(Protocol):
    """Local persistence the sync engine writes through."""

    def load_index(self, instance_id: str) -> dict[int, MirrorIndexEntry]:
        ...  # pragma: no cover

    def create_document(
        self, instance_id: str, paperless_id: int, fields: MirrorFields
    ) -> MirrorDocument:
        ...  # pragma: no cover

    def update_document(self, local_id: str, fields: MirrorFields) -> None:
        ...  # pragma: no cover

    def record_import(
        self,
        instance_id: str,
        *,
        imported: int,
        updated: int,
        unchanged: int,
        total_in_catalog: int,
    ) -> ImportHistoryRecord:
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


async def fetch_all_documents(
    source: RemoteDocumentSource, page_size: int = DEFAULT_PAGE_SIZE
) -> list[PaperlessDocument]:
    """Fetch the complete remote corpus.

    Each request depends on the previous page's ``has_more``, so pages are
    never requested concurrently.
    """
    documents: list[PaperlessDocument] = []
    page = 1
    has_more = True

    while has_more:
        result = await source.fetch_documents(page, page_size)
        documents.extend(result.results)
        has_more = result.has_more
        page += 1

    logger.info("Fetched %d remote document(s) in %d page(s)", len(documents), page - 1)
    return documents


def filter_by_tags(
    documents: list[PaperlessDocument], filter_tags: Iterable[int]
) -> list[PaperlessDocument]:
    """Keep documents carrying every filter tag. An empty filter keeps all."""
    required = set(filter_tags)
    if not required:
        return documents
    return [doc for doc in documents if required.issubset(doc.tags)]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def needs_update(stored: datetime | None, remote: datetime | None) -> bool:
    """Decide whether a mirrored row must be rewritten.

    No stored timestamp always rewrites. A missing remote timestamp never
    does. Otherwise only a strictly newer remote timestamp does; equal
    timestamps are left alone.
    """
    if stored is None:
        return True
    if remote is None:
        return False
    return _as_utc(remote) > _as_utc(stored)


def _parse_document_date(created: str | None) -> datetime | None:
    if not created:
        return None
    return datetime.fromisoformat(created)


def mirror_fields(doc: PaperlessDocument) -> MirrorFields:
    """The fields the mirror copies from a remote document."""
    return MirrorFields(
        title=doc.title,
        content=doc.content,
        correspondent_id=doc.correspondent,
        tag_ids=list(doc.tags),
        document_date=_parse_document_date(doc.created),
        paperless_modified=doc.modified,
    )


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


async def sync_instance(
    source: RemoteDocumentSource,
    repository: DocumentRepository,
    instance: PaperlessInstance,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> SyncSummary:
    """Bring the local mirror of one instance up to date.

    Args:
        source: Remote document listing (normally a ``PaperlessClient``).
        repository: Local mirror store (normally a ``MirrorStore``).
        instance: The instance being mirrored, including its filter tags.
        page_size: Documents requested per page.

    Returns:
        A ``SyncSummary`` with imported/updated/unchanged counters, the number
        of documents considered and the number excluded by the filter.
    """
    fetched = await fetch_all_documents(source, page_size)
    kept = filter_by_tags(fetched, instance.import_filter_tags)
    filtered_out = len(fetched) - len(kept)
    if filtered_out:
        logger.info(
            "Import filter %s excluded %d document(s)",
            list(instance.import_filter_tags),
            filtered_out,
        )

    index = repository.load_index(instance.id)

    imported = 0
    updated = 0
    unchanged = 0

    for doc in kept:
        existing = index.get(doc.id)
        if existing is None:
            repository.create_document(instance.id, doc.id, mirror_fields(doc))
            imported += 1
        elif needs_update(existing.paperless_modified, doc.modified):
            repository.update_document(existing.local_id, mirror_fields(doc))
            updated += 1
        else:
            unchanged += 1

    repository.record_import(
        instance.id,
        imported=imported,
        updated=updated,
        unchanged=unchanged,
        total_in_catalog=len(kept),
    )

    summary = SyncSummary(
        imported=imported,
        updated=updated,
        unchanged=unchanged,
        total=len(kept),
        filtered_out=filtered_out,
    )
    logger.info(
        "Sync of instance %s: imported=%d updated=%d unchanged=%d total=%d filtered_out=%d",
        instance.id,
        summary.imported,
        summary.updated,
        summary.unchanged,
        summary.total,
        summary.filtered_out,
    )
    return summary
