"""Supabase storage for items, segments and the segment vector index."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from voxindex.errors import IndexConflict, LookupFailure, StoreUnavailable
from voxindex.ingestion.models import ItemRecord, SegmentRecord, VectorMatch

if TYPE_CHECKING:
    from voxindex.config import Settings
    from voxindex.retrieval.filters import FilterSpec

logger = logging.getLogger(__name__)

# Insert in batches of 50
BATCH_SIZE = 50

# Rows per page when listing items; PostgREST caps each response at max_rows
PAGE_SIZE = 1000

# Item columns needed to evaluate filters (no transcript)
_ITEM_SUMMARY_COLUMNS = "id, metadata, created_at, updated_at"

# Postgres error codes surfaced by PostgREST
_UNDEFINED_TABLE = "42P01"
_UNDEFINED_FUNCTION = "42883"
_DUPLICATE_TABLE = "42P07"
_UNIQUE_VIOLATION = "23505"

_STORE_ERRORS = (APIError, httpx.HTTPError)


def get_supabase_client(settings: Settings) -> Client:
    """Create a Supabase client from explicit settings."""
    return create_client(settings.supabase_url, settings.supabase_key)


def _parse_ts(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _parse_vector(value: Any) -> list[float]:
    # pgvector columns come back from PostgREST as "[0.1,0.2,...]" strings
    if value is None:
        return []
    if isinstance(value, str):
        return [float(v) for v in json.loads(value)]
    return [float(v) for v in value]


def _item_from_row(row: dict[str, Any]) -> ItemRecord:
    return ItemRecord(
        id=row["id"],
        transcript=row.get("transcript"),
        metadata=row.get("metadata") or {},
        created_at=_parse_ts(row.get("created_at")),
        updated_at=_parse_ts(row.get("updated_at")),
    )


def _segment_from_row(row: dict[str, Any]) -> SegmentRecord:
    return SegmentRecord(
        item_id=row["item_id"],
        sequence_index=row["sequence_index"],
        content=row["content"],
        embedding=_parse_vector(row.get("embedding")),
        metadata=row.get("metadata") or {},
        created_at=_parse_ts(row.get("created_at")),
    )


class SupabaseMetadataStore:
    """One row per item in the ``items`` table, keyed by item id."""

    def __init__(self, client: Client, table: str = "items") -> None:
        self._client = client
        self.table = table

    def get_item(self, item_id: str) -> ItemRecord | None:
        """Fetch one item.

        Raises:
            LookupFailure: If the store cannot be queried.
        """
        try:
            result = self._client.table(self.table).select("*").eq("id", item_id).execute()
        except _STORE_ERRORS as exc:
            raise LookupFailure(f"Could not look up item {item_id}: {exc}") from exc
        rows = cast(list[dict[str, Any]], result.data)
        return _item_from_row(rows[0]) if rows else None

    def get_items(self, item_ids: list[str]) -> dict[str, ItemRecord]:
        """Fetch several items in one request, keyed by id."""
        if not item_ids:
            return {}
        try:
            result = self._client.table(self.table).select("*").in_("id", item_ids).execute()
        except _STORE_ERRORS as exc:
            raise StoreUnavailable(f"Could not fetch items: {exc}") from exc
        rows = cast(list[dict[str, Any]], result.data)
        return {row["id"]: _item_from_row(row) for row in rows}

    def upsert_item(self, item_id: str, transcript: str, metadata: dict[str, Any]) -> ItemRecord:
        """Insert or update an item; ``created_at`` is left to the database default."""
        row = {
            "id": item_id,
            "transcript": transcript,
            "metadata": metadata,
            "updated_at": datetime.now(UTC).isoformat(),
        }
        result = self._client.table(self.table).upsert(row, on_conflict="id").execute()
        return _item_from_row(cast(list[dict[str, Any]], result.data)[0])

    def find_items(self, spec: FilterSpec | None = None) -> list[ItemRecord]:
        """Return items matching *spec*, oldest first, without transcripts.

        Date bounds are pushed down to the database. The remaining predicates
        are evaluated Python-side since JSONB case-insensitive element matching
        is not expressible through PostgREST filters. Items are read page by
        page until an empty page comes back, so a server-side row cap smaller
        than ``PAGE_SIZE`` still yields every item.
        """
        records: list[ItemRecord] = []
        offset = 0
        while True:
            try:
                result = (
                    self._items_query(spec)
                    .range(offset, offset + PAGE_SIZE - 1)
                    .execute()
                )
            except _STORE_ERRORS as exc:
                raise StoreUnavailable(f"Could not query items: {exc}") from exc
            rows = cast(list[dict[str, Any]], result.data)
            if not rows:
                break
            records.extend(_item_from_row(row) for row in rows)
            offset += len(rows)

        if spec is None:
            return records
        return [r for r in records if spec.matches(r)]

    def _items_query(self, spec: FilterSpec | None) -> Any:
        query = self._client.table(self.table).select(_ITEM_SUMMARY_COLUMNS)
        if spec is not None and spec.date_from is not None:
            query = query.gte("created_at", spec.date_from.isoformat())
        if spec is not None and spec.date_to is not None:
            query = query.lte("created_at", spec.date_to.isoformat())
        # id breaks created_at ties so pages never overlap
        return query.order("created_at").order("id")


class SupabaseSegmentStore:
    """One row per segment in the ``segments`` table, keyed by segment id."""

    def __init__(self, client: Client, table: str = "segments") -> None:
        self._client = client
        self.table = table

    def insert_segments(self, segments: list[SegmentRecord]) -> None:
        """Insert segments, ignoring ids that already exist."""
        rows = [
            {
                "id": seg.id,
                "item_id": seg.item_id,
                "sequence_index": seg.sequence_index,
                "content": seg.content,
                "embedding": seg.embedding,
                "metadata": seg.metadata,
            }
            for seg in segments
        ]
        for i in range(0, len(rows), BATCH_SIZE):
            self._client.table(self.table).upsert(
                rows[i : i + BATCH_SIZE], on_conflict="id", ignore_duplicates=True
            ).execute()

    def list_segments(self, item_id: str) -> list[SegmentRecord]:
        """All segments of an item, ordered by sequence index."""
        try:
            result = (
                self._client.table(self.table)
                .select("*")
                .eq("item_id", item_id)
                .order("sequence_index")
                .execute()
            )
        except _STORE_ERRORS as exc:
            raise StoreUnavailable(f"Could not fetch segments of {item_id}: {exc}") from exc
        return [_segment_from_row(row) for row in cast(list[dict[str, Any]], result.data)]


class SupabaseVectorIndex:
    """pgvector-backed nearest-neighbour index over segment vectors.

    All vectors live in the ``segment_vectors`` table, partitioned by a
    logical ``index_name``; the dimension is fixed when the namespace is
    created (see ``supabase/schema.sql``).
    """

    def __init__(
        self, client: Client, index_name: str = "video_chunks", table: str = "segment_vectors"
    ) -> None:
        self._client = client
        self.index_name = index_name
        self.table = table

    def create_index(self, dimension: int) -> None:
        """Register the index namespace.

        Raises:
            IndexConflict: If the namespace already exists.
        """
        try:
            self._client.rpc(
                "create_vector_index", {"index_name": self.index_name, "dimension": dimension}
            ).execute()
        except APIError as exc:
            if exc.code in (_DUPLICATE_TABLE, _UNIQUE_VIOLATION) or "already exists" in str(
                exc.message
            ):
                raise IndexConflict(f"Vector index {self.index_name!r} already exists") from exc
            raise

    def index_dimension(self) -> int | None:
        """Dimension the namespace was created with, or None if it does not exist."""
        try:
            result = (
                self._client.table("vector_indexes")
                .select("dimension")
                .eq("name", self.index_name)
                .execute()
            )
        except _STORE_ERRORS as exc:
            raise StoreUnavailable(f"Could not read vector index {self.index_name!r}: {exc}") from exc
        rows = cast(list[dict[str, Any]], result.data)
        return int(rows[0]["dimension"]) if rows else None

    def upsert(self, segments: list[SegmentRecord]) -> None:
        """Insert or replace one vector per segment id."""
        rows = [
            {
                "id": seg.id,
                "index_name": self.index_name,
                "item_id": seg.item_id,
                "content": seg.content,
                "embedding": seg.embedding,
                "metadata": {"chunk_id": seg.id, **seg.metadata},
            }
            for seg in segments
        ]
        for i in range(0, len(rows), BATCH_SIZE):
            self._client.table(self.table).upsert(rows[i : i + BATCH_SIZE], on_conflict="id").execute()

    def query(
        self,
        vector: list[float],
        top_k: int = 10,
        item_ids: list[str] | None = None,
        content_contains: str | None = None,
    ) -> list[VectorMatch]:
        """Return the *top_k* nearest segments, best first.

        Args:
            vector: Query embedding.
            top_k: Maximum number of matches.
            item_ids: Restrict matches to these items. ``None`` means
                unrestricted; an empty list is rejected since it would read as
                unrestricted on the database side.
            content_contains: Case-insensitive substring the segment content
                must contain, matched literally (``%`` and ``_`` included).
        """
        if item_ids is not None and not item_ids:
            raise ValueError("item_ids must be None or non-empty")
        try:
            result = self._client.rpc(
                "match_segment_vectors",
                {
                    "query_embedding": vector,
                    "match_count": top_k,
                    "filter_index_name": self.index_name,
                    "filter_item_ids": item_ids,
                    "filter_content": content_contains,
                },
            ).execute()
        except APIError as exc:
            if exc.code in (_UNDEFINED_TABLE, _UNDEFINED_FUNCTION):
                logger.warning("Vector index %s not created yet; no matches", self.index_name)
                return []
            raise StoreUnavailable(f"Vector search failed: {exc}") from exc
        except httpx.HTTPError as exc:
            raise StoreUnavailable(f"Vector search failed: {exc}") from exc

        # Supabase .data is typed as JSON (broad union); cast to concrete type.
        rows = cast(list[dict[str, Any]], result.data)
        return [
            VectorMatch(
                id=row["id"],
                item_id=row["item_id"],
                content=row["content"],
                score=float(row["similarity"]),
                metadata=row.get("metadata") or {},
            )
            for row in rows
        ]
