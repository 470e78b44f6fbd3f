"""Structured metadata filters for browsing and narrowing searches."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, field_validator

if TYPE_CHECKING:
    from voxindex.ingestion.models import ItemRecord

# Predicates resolved against the metadata store (stage 1). ``content_contains``
# is segment-level and only applies to the vector search (stage 2).
ITEM_PREDICATES = (
    "speaker_contains",
    "topic_contains",
    "summary_contains",
    "speakers",
    "topics",
    "tags",
    "date_from",
    "date_to",
)


def _lower_all(values: list[str] | None) -> set[str]:
    return {v.casefold() for v in values or [] if isinstance(v, str)}


def _any_contains(values: list[str] | None, needle: str) -> bool:
    needle = needle.casefold()
    return any(needle in v.casefold() for v in values or [] if isinstance(v, str))


class FilterSpec(BaseModel):
    """Conjunction of optional predicates over stored items.

    Substring predicates (``*_contains``) are case-insensitive. List
    predicates (``speakers``, ``topics``, ``tags``) match when any requested
    value equals any stored element, ignoring case. Date bounds are inclusive
    and compared against the item's creation time; naive values are read as
    UTC.
    """

    speaker_contains: str | None = None
    topic_contains: str | None = None
    summary_contains: str | None = None
    speakers: list[str] | None = None
    topics: list[str] | None = None
    tags: list[str] | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    content_contains: str | None = None

    @field_validator("date_from", "date_to")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def has_item_predicates(self) -> bool:
        """True if any stage-1 (metadata) predicate is set."""
        for name in ITEM_PREDICATES:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, (str, list)) and not value:
                continue
            return True
        return False

    def matches(self, record: ItemRecord) -> bool:
        """Evaluate every metadata predicate against *record*."""
        metadata: dict[str, Any] = record.metadata or {}
        speakers = metadata.get("speakers")
        topics = metadata.get("key_topics")

        if self.speaker_contains and not _any_contains(speakers, self.speaker_contains):
            return False
        if self.topic_contains and not _any_contains(topics, self.topic_contains):
            return False
        if self.summary_contains:
            summary = metadata.get("summary") or ""
            if self.summary_contains.casefold() not in summary.casefold():
                return False

        for wanted, stored in (
            (self.speakers, speakers),
            (self.topics, topics),
            (self.tags, metadata.get("tags")),
        ):
            if wanted and not (_lower_all(wanted) & _lower_all(stored)):
                return False

        if self.date_from or self.date_to:
            created_at = record.created_at
            if created_at is None:
                return False
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=UTC)
            if self.date_from and created_at < self.date_from:
                return False
            if self.date_to and created_at > self.date_to:
                return False

        return True

    def matches_content(self, content: str) -> bool:
        """Evaluate the segment-level ``content_contains`` predicate."""
        if not self.content_contains:
            return True
        return self.content_contains.casefold() in content.casefold()
