"""Ingest endpoint: run the ingestion pipeline for one video id."""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from voxindex.api.deps import get_pipeline
from voxindex.api.models import IngestRequest, IngestResponse, ItemOut, SegmentOut
from voxindex.errors import IngestionError
from voxindex.ingestion.pipeline import IngestionPipeline

router = APIRouter()


@router.post("/api/ingest", response_model=IngestResponse)
async def ingest(
    request: IngestRequest,
    pipeline: Annotated[IngestionPipeline, Depends(get_pipeline)],
) -> IngestResponse:
    """Download, transcribe, analyse and index a video.

    Already-ingested videos are returned from storage without any external
    calls unless ``force`` is set. Failures in acquisition, transcription,
    extraction or embedding return 502 with the failing stage.
    """
    try:
        # The pipeline blocks on external services; keep it off the event loop.
        result = await asyncio.to_thread(
            pipeline.ingest, request.item_id, request.keywords, force=request.force
        )
    except IngestionError as exc:
        raise HTTPException(
            status_code=502,
            detail={"stage": exc.stage, "detail": exc.message},
        ) from exc

    return IngestResponse(
        transcript=result.transcript,
        insights=result.insights,
        segments_created=result.segments_created,
        item=ItemOut.model_validate(result.item_record, from_attributes=True),
        segments=[SegmentOut.model_validate(s, from_attributes=True) for s in result.segment_records],
        reused=result.reused,
    )
