"""Hybrid retrieval: metadata filtering (stage 1) followed by vector search (stage 2)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from voxindex.ingestion.models import ItemRecord
from voxindex.ingestion.protocols import EmbeddingClient, MetadataStore, VectorIndex
from voxindex.pipeline_config import SearchMode
from voxindex.retrieval.filters import FilterSpec

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 10


@dataclass
class ItemSummary:
    """Item-level browse result."""

    id: str
    summary: str | None
    speakers: list[str]
    key_topics: list[str]
    tags: list[str]
    created_at: datetime | None

    @classmethod
    def from_record(cls, record: ItemRecord) -> ItemSummary:
        metadata = record.metadata or {}
        return cls(
            id=record.id,
            summary=metadata.get("summary"),
            speakers=metadata.get("speakers") or [],
            key_topics=metadata.get("key_topics") or [],
            tags=metadata.get("tags") or [],
            created_at=record.created_at,
        )


@dataclass
class ItemInfo:
    """Parent-item insight fields attached to a segment match."""

    id: str
    summary: str | None = None
    speakers: list[str] = field(default_factory=list)
    key_topics: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    processed_at: datetime | None = None


@dataclass
class EnrichedSegment:
    """Segment-level search result."""

    content: str
    score: float
    item_info: ItemInfo


@dataclass
class SearchResult:
    """Either browse items or search segments; never both."""

    mode: SearchMode
    items: list[ItemSummary] = field(default_factory=list)
    segments: list[EnrichedSegment] = field(default_factory=list)


class HybridQueryPlanner:
    """Resolves filters against the metadata store and queries against the vector index."""

    def __init__(
        self,
        metadata_store: MetadataStore,
        vector_index: VectorIndex,
        embedder: EmbeddingClient,
    ) -> None:
        self.metadata_store = metadata_store
        self.vector_index = vector_index
        self.embedder = embedder

    def search(
        self,
        query: str | None = None,
        filter: FilterSpec | None = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> SearchResult:
        """Browse items by metadata, or search segments by meaning.

        Args:
            query: Free-text query. Empty or missing means "browse".
            filter: Optional metadata predicates.
            top_k: Maximum number of segments for a search.

        Returns:
            A browse result (items, oldest first) when no query is given, or a
            search result (segments, best match first) otherwise. No matches
            is an empty result, not an error.
        """
        if top_k <= 0:
            raise ValueError(f"top_k must be positive, got {top_k}")

        has_filter = filter is not None and filter.has_item_predicates()
        text = (query or "").strip()
        logger.info("Search - query: %r, filter: %s, top_k: %d", text, filter, top_k)

        if not text:
            if not has_filter:
                return SearchResult(mode=SearchMode.BROWSE)
            records = self.metadata_store.find_items(filter)
            logger.info("Found %d items matching metadata filters", len(records))
            return SearchResult(
                mode=SearchMode.BROWSE,
                items=[ItemSummary.from_record(r) for r in records],
            )

        # Stage 1: narrow candidates by metadata.
        item_ids: list[str] | None = None
        if has_filter:
            item_ids = [r.id for r in self.metadata_store.find_items(filter)]
            logger.info("Found %d items matching metadata filters", len(item_ids))
            if not item_ids:
                # An empty restriction would read as "unrestricted" downstream.
                return SearchResult(mode=SearchMode.SEARCH)

        # Stage 2: vector search, restricted to the candidates if any.
        vector = self.embedder.embed([text])[0]
        matches = self.vector_index.query(
            vector,
            top_k=top_k,
            item_ids=item_ids,
            content_contains=filter.content_contains if filter else None,
        )
        logger.info("Retrieved %d segment matches from vector search", len(matches))
        if not matches:
            return SearchResult(mode=SearchMode.SEARCH)

        parents = self.metadata_store.get_items(list(dict.fromkeys(m.item_id for m in matches)))
        segments: list[EnrichedSegment] = []
        for match in matches:
            parent = parents.get(match.item_id)
            segments.append(
                EnrichedSegment(
                    content=match.content,
                    score=match.score,
                    item_info=_item_info(match.item_id, parent, match.metadata),
                )
            )
        return SearchResult(mode=SearchMode.SEARCH, segments=segments)


def _item_info(item_id: str, parent: ItemRecord | None, segment_metadata: dict) -> ItemInfo:
    if parent is None:
        # Vector written before (or without) its item row; fall back to the
        # denormalised topics carried on the segment.
        return ItemInfo(id=item_id, key_topics=segment_metadata.get("key_topics") or [])
    metadata = parent.metadata or {}
    return ItemInfo(
        id=parent.id,
        summary=metadata.get("summary"),
        speakers=metadata.get("speakers") or [],
        key_topics=metadata.get("key_topics") or [],
        tags=metadata.get("tags") or [],
        processed_at=parent.updated_at,
    )
