"""Pydantic request/response schemas for the voxindex API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from voxindex.extraction.models import ItemInsights
from voxindex.pipeline_config import SearchMode
from voxindex.retrieval.filters import FilterSpec


class IngestRequest(BaseModel):
    """Request body for the /api/ingest endpoint."""

    item_id: str = Field(min_length=1)
    keywords: list[str] | None = None
    force: bool = False


class ItemOut(BaseModel):
    """A stored item."""

    id: str
    transcript: str | None = None
    metadata: dict[str, Any] = {}
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SegmentOut(BaseModel):
    """A stored segment (embedding omitted)."""

    id: str
    item_id: str
    sequence_index: int
    content: str
    metadata: dict[str, Any] = {}


class IngestResponse(BaseModel):
    """Response body for the /api/ingest endpoint."""

    transcript: str
    insights: ItemInsights
    segments_created: int
    item: ItemOut
    segments: list[SegmentOut]
    reused: bool = False


class SearchRequest(BaseModel):
    """Request body for the /api/search endpoint."""

    query: str | None = None
    filter: FilterSpec | None = None
    top_k: int = Field(default=10, gt=0)


class ItemSummaryOut(BaseModel):
    """Item-level browse result."""

    id: str
    summary: str | None = None
    speakers: list[str] = []
    key_topics: list[str] = []
    tags: list[str] = []
    created_at: datetime | None = None


class ItemInfoOut(BaseModel):
    """Parent item fields attached to a segment match."""

    id: str
    summary: str | None = None
    speakers: list[str] = []
    key_topics: list[str] = []
    tags: list[str] = []
    processed_at: datetime | None = None


class EnrichedSegmentOut(BaseModel):
    """Segment-level search result."""

    content: str
    score: float
    item_info: ItemInfoOut


class SearchResponse(BaseModel):
    """Response body for the /api/search endpoint."""

    mode: SearchMode
    items: list[ItemSummaryOut] = []
    segments: list[EnrichedSegmentOut] = []


class ItemDetail(ItemOut):
    """Full item detail including segments."""

    segments: list[SegmentOut] = []
