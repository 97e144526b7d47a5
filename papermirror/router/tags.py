"""Reconcile stored AI tag suggestions against the live Paperless tag catalog.

Suggestions may have been generated against an older catalog, so their ids
can be stale. Each suggestion is resolved to a current tag id (or left
unresolved when it names a tag that does not exist yet), marked as assigned
when the document already carries it, and every tag the document carries but
the suggestion leaves out is appended as a removal candidate.

No writes and no tag creation happen here; unresolved names are only shown.
"""

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from papermirror.schemas.mirror import MirrorDocument
from papermirror.schemas.paperless import PaperlessTag
from papermirror.schemas.suggestions import (
    EnrichedTagSuggestion,
    ProcessingResult,
    SuggestedTag,
)

logger = logging.getLogger(__name__)


class TagCatalogSource(Protocol):
    """Anything that can return the full remote tag catalog."""

    async def fetch_tag_catalog(self) -> list[PaperlessTag]:
        ...  # pragma: no cover


class ProcessingResultStore(Protocol):
    def latest_processing_result(self, document_id: str) -> ProcessingResult | None:
        ...  # pragma: no cover


# ------------------------------------------------------------------
# Catalog lookups (names compare case-insensitively)
# ------------------------------------------------------------------


class TagCatalog:
    """Id/name lookups over one fetched catalog."""

    def __init__(self, tags: Iterable[PaperlessTag]) -> None:
        self._names: dict[int, str] = {}
        self._ids: dict[str, int] = {}
        for tag in tags:
            self._names[tag.id] = tag.name
            self._ids[tag.name.lower()] = tag.id

    def name_for(self, tag_id: int) -> str | None:
        return self._names.get(tag_id)

    def id_for(self, name: str) -> int | None:
        return self._ids.get(name.lower())

    def matches(self, tag_id: int, name: str) -> bool:
        """True when the catalog knows ``tag_id`` under ``name``."""
        actual = self._names.get(tag_id)
        return actual is not None and actual.lower() == name.lower()


def _enriched(
    tag_id: int | None,
    name: str | None,
    *,
    is_assigned: bool,
    is_removed: bool | None = None,
    extra: dict[str, Any] | None = None,
) -> EnrichedTagSuggestion:
    # Unknown keys on the stored suggestion are kept; resolved fields win.
    return EnrichedTagSuggestion.model_validate(
        {
            **(extra or {}),
            "id": tag_id,
            "name": name,
            "isAssigned": is_assigned,
            "isRemoved": is_removed,
        }
    )


def resolve_tag_id(suggestion: SuggestedTag, catalog: TagCatalog) -> int | None:
    """Return the catalog id a suggestion refers to, or None if unresolved.

    - id and name: the id is kept when the catalog agrees on the name,
      otherwise the name decides.
    - name only: the name decides.
    - id only: trusted as-is.
    """
    if suggestion.id is not None and suggestion.name:
        if catalog.matches(suggestion.id, suggestion.name):
            return suggestion.id
        return catalog.id_for(suggestion.name)
    if suggestion.id is not None:
        return suggestion.id
    if suggestion.name:
        return catalog.id_for(suggestion.name)
    return None


def reconcile_suggested_tags(
    suggestions: list[SuggestedTag] | None,
    document_tag_ids: Iterable[int],
    catalog_tags: Iterable[PaperlessTag],
) -> list[EnrichedTagSuggestion]:
    """Resolve suggestions and append removal candidates.

    Args:
        suggestions: Stored suggestions; None is treated as an empty list.
        document_tag_ids: The document's current tag ids from the mirror.
        catalog_tags: The freshly fetched remote tag catalog.

    Returns:
        One entry per suggestion in the given order, followed by one
        ``is_removed`` entry per current tag no suggestion resolved to.
    """
    catalog = TagCatalog(catalog_tags)
    # Duplicate ids on the document yield a single removal entry.
    current = list(dict.fromkeys(document_tag_ids))
    current_set = set(current)
    suggested_ids: set[int] = set()
    enriched: list[EnrichedTagSuggestion] = []

    for suggestion in suggestions or []:
        tag_id = resolve_tag_id(suggestion, catalog)
        if tag_id is None:
            enriched.append(
                _enriched(
                    None, suggestion.name, is_assigned=False, extra=suggestion.model_extra
                )
            )
            continue
        suggested_ids.add(tag_id)
        enriched.append(
            _enriched(
                tag_id,
                suggestion.name,
                is_assigned=tag_id in current_set,
                extra=suggestion.model_extra,
            )
        )

    for tag_id in current:
        if tag_id in suggested_ids:
            continue
        name = catalog.name_for(tag_id)
        if name is None:
            logger.warning("Document tag %d is missing from the remote catalog", tag_id)
        enriched.append(_enriched(tag_id, name, is_assigned=True, is_removed=True))

    return enriched


# ------------------------------------------------------------------
# Processing result view
# ------------------------------------------------------------------


def build_result_view(
    result: ProcessingResult,
    document_tag_ids: Iterable[int],
    catalog_tags: Iterable[PaperlessTag],
) -> dict[str, Any]:
    """Render a stored processing result with its tag suggestions reconciled.

    Only ``changes.suggestedTags`` is rewritten; every other field of the
    payload is returned as stored.
    """
    view = result.model_dump(mode="json", by_alias=True, exclude={"changes", "document_id"})
    if result.changes is None:
        view["changes"] = None
        return view

    tags = reconcile_suggested_tags(
        result.changes.suggested_tags, document_tag_ids, catalog_tags
    )
    changes = result.changes.model_dump(mode="json", by_alias=True, exclude_unset=True)
    changes["suggestedTags"] = [
        t.model_dump(mode="json", by_alias=True, exclude_none=True) for t in tags
    ]
    view["changes"] = changes
    return view


async def get_enriched_result(
    store: ProcessingResultStore,
    catalog_source: TagCatalogSource,
    document: MirrorDocument,
) -> dict[str, Any] | None:
    """Load a document's latest processing result and reconcile its tags.

    Returns None when the document has never been processed. The tag
    catalog is fetched fresh on every call; a fetch failure propagates.
    """
    result = store.latest_processing_result(document.id)
    if result is None:
        return None
    if result.changes is None:
        return build_result_view(result, document.tag_ids, [])

    catalog = await catalog_source.fetch_tag_catalog()
    logger.debug(
        "Reconciling result %s for document %d against %d catalog tag(s)",
        result.id,
        document.paperless_id,
        len(catalog),
    )
    return build_result_view(result, document.tag_ids, catalog)
