"""Data models for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from voxindex.extraction.models import ItemInsights


def segment_id(item_id: str, sequence_index: int) -> str:
    """Derived, globally unique id for a segment."""
    return f"{item_id}_chunk_{sequence_index}"


@dataclass
class ItemRecord:
    """One processed item: full transcript plus extracted insights."""

    id: str
    transcript: str | None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def insights(self) -> ItemInsights:
        """Insights rebuilt from the stored metadata."""
        return ItemInsights.from_metadata(self.metadata)


@dataclass
class SegmentRecord:
    """A chunk of an item's transcript with its embedding."""

    item_id: str
    sequence_index: int
    content: str
    embedding: list[float] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def id(self) -> str:
        return segment_id(self.item_id, self.sequence_index)


@dataclass
class VectorMatch:
    """A single nearest-neighbour hit from the vector index."""

    id: str
    item_id: str
    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


# Stage contexts. A run is either doing real work ("fresh") or replaying a
# stored item ("cached"); every stage handles both kinds.


@dataclass(frozen=True)
class FreshContext:
    """Context of a run that processes the item from scratch."""

    item_id: str
    keywords: tuple[str, ...] = ()
    audio_path: Path | None = None
    transcript: str | None = None
    insights: ItemInsights | None = None
    kind: Literal["fresh"] = "fresh"

    @property
    def already_exists(self) -> bool:
        return False


@dataclass(frozen=True)
class CachedContext:
    """Context of a run that short-circuits on an already stored item."""

    item_id: str
    record: ItemRecord
    segments: tuple[SegmentRecord, ...] = ()
    kind: Literal["cached"] = "cached"

    @property
    def already_exists(self) -> bool:
        return True

    @property
    def transcript(self) -> str:
        return self.record.transcript or ""

    @property
    def insights(self) -> ItemInsights:
        return self.record.insights


PipelineContext = FreshContext | CachedContext


@dataclass
class IngestionResult:
    """Terminal output of an ingestion run."""

    transcript: str
    insights: ItemInsights
    segments_created: int
    item_record: ItemRecord
    segment_records: list[SegmentRecord]
    reused: bool = False
