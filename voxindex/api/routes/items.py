"""Item endpoints: list and detail views."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from voxindex.api.deps import get_metadata_store, get_segment_store
from voxindex.api.models import ItemDetail, ItemSummaryOut, SegmentOut
from voxindex.errors import LookupFailure, StoreUnavailable
from voxindex.ingestion.protocols import MetadataStore, SegmentStore
from voxindex.retrieval.search import ItemSummary

router = APIRouter()


@router.get("/api/items", response_model=list[ItemSummaryOut])
def list_items(
    store: Annotated[MetadataStore, Depends(get_metadata_store)],
) -> list[ItemSummaryOut]:
    """List all items ordered by creation date (oldest first)."""
    try:
        records = store.find_items()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return [
        ItemSummaryOut.model_validate(ItemSummary.from_record(r), from_attributes=True)
        for r in records
    ]


@router.get("/api/items/{item_id}", response_model=ItemDetail)
def get_item(
    item_id: str,
    store: Annotated[MetadataStore, Depends(get_metadata_store)],
    segments: Annotated[SegmentStore, Depends(get_segment_store)],
) -> ItemDetail:
    """Get full item details including its segments."""
    try:
        record = store.get_item(item_id)
        rows = segments.list_segments(item_id) if record else []
    except (LookupFailure, StoreUnavailable) as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    if record is None:
        raise HTTPException(status_code=404, detail="Item not found")

    return ItemDetail(
        id=record.id,
        transcript=record.transcript,
        metadata=record.metadata,
        created_at=record.created_at,
        updated_at=record.updated_at,
        segments=[SegmentOut.model_validate(s, from_attributes=True) for s in rows],
    )
