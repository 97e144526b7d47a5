"""Schemas for stored AI suggestions and their reconciled view.

The ``changes`` payload comes from an upstream classification step and is
only partially populated. Every field is optional and unknown keys are kept
so they pass through to the caller untouched.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SuggestedItem(BaseModel):
    """A correspondent or document type reference (existing items carry an id)."""

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    name: str | None = None


class SuggestedTag(BaseModel):
    """A tag reference proposed by the AI, by id, by name, or both."""

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    name: str | None = None


class EnrichedTagSuggestion(BaseModel):
    """A tag suggestion resolved against the remote catalog.

    ``is_removed`` is only set on entries synthesized for tags the document
    currently has but the suggestion leaves out. Unknown keys carried over from
    the stored suggestion are kept.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: int | None = None
    name: str | None = None
    is_assigned: bool
    is_removed: bool | None = None


class SuggestedChanges(BaseModel):
    """The AI ``changes`` payload."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    suggested_title: str | None = None
    suggested_correspondent: SuggestedItem | None = None
    suggested_document_type: SuggestedItem | None = None
    suggested_tags: list[SuggestedTag] | None = None
    suggested_date: str | None = None
    confidence: float | None = None
    reasoning: str | None = None


class ProcessingResult(BaseModel):
    """A stored AI processing run for one mirrored document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    document_id: str
    processed_at: datetime
    ai_provider: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    estimated_cost: float | None = None
    changes: SuggestedChanges | None = None
    tool_calls: Any = None
    original_title: str | None = None
