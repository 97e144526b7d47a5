"""Schemas for the local document mirror and its import history."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PaperlessInstance(BaseModel):
    """A remote Paperless-ngx deployment the mirror is kept for."""

    id: str
    name: str = ""
    base_url: str = ""
    import_filter_tags: tuple[int, ...] = ()


class MirrorDocument(BaseModel):
    """Local copy of a remote document's fields."""

    id: str
    instance_id: str
    paperless_id: int
    title: str
    content: str = ""
    correspondent_id: int | None = None
    tag_ids: list[int] = []
    document_date: datetime | None = None
    paperless_modified: datetime | None = None
    imported_at: datetime


class MirrorIndexEntry(BaseModel):
    """What the sync engine needs to know about an existing mirror row."""

    local_id: str
    paperless_modified: datetime | None = None

    model_config = ConfigDict(frozen=True)


class MirrorFields(BaseModel):
    """The mutable fields written on create and on update."""

    title: str
    content: str = ""
    correspondent_id: int | None = None
    tag_ids: list[int] = []
    document_date: datetime | None = None
    paperless_modified: datetime | None = None


class ImportHistoryRecord(BaseModel):
    """One sync run. Written once, never changed afterwards."""

    id: str
    instance_id: str
    imported: int
    updated: int
    unchanged: int
    total_in_catalog: int
    imported_at: datetime


class SyncSummary(BaseModel):
    """Counters returned by a sync run.

    ``total`` counts documents that passed the import filter;
    ``filtered_out`` counts the ones that did not.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    imported: int = 0
    updated: int = 0
    unchanged: int = 0
    total: int = 0
    filtered_out: int = 0
