"""Pydantic models mirroring Paperless-ngx API response shapes."""

from datetime import datetime

from pydantic import BaseModel


class PaperlessTag(BaseModel):
    """A tag from the Paperless-ngx API."""

    id: int
    name: str
    slug: str = ""


class PaperlessDocument(BaseModel):
    """A document from the Paperless-ngx API.

    Only includes the fields the mirror keeps. ``created`` is either a plain
    date (``2026-02-07``) or a full timestamp depending on the API version.
    """

    id: int
    title: str
    content: str = ""
    tags: list[int] = []
    correspondent: int | None = None
    document_type: int | None = None
    created: str | None = None
    modified: datetime | None = None
    added: str | None = None
    original_file_name: str = ""


class PaperlessPaginatedResponse(BaseModel):
    """Paginated list response wrapper from Paperless-ngx API."""

    count: int
    next: str | None = None
    previous: str | None = None
    results: list[dict]


class DocumentPage(BaseModel):
    """One page of remote documents.

    ``has_more`` replaces Paperless's ``next`` link so callers never look at
    transport details.
    """

    results: list[PaperlessDocument]
    has_more: bool
