"""Search endpoint: metadata browsing and filtered semantic search."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from voxindex.api.deps import get_planner
from voxindex.api.models import SearchRequest, SearchResponse
from voxindex.errors import EmbeddingFailure, StoreUnavailable
from voxindex.retrieval.search import HybridQueryPlanner

router = APIRouter()


@router.post("/api/search", response_model=SearchResponse)
def search(
    request: SearchRequest,
    planner: Annotated[HybridQueryPlanner, Depends(get_planner)],
) -> SearchResponse:
    """Browse videos by metadata (no query) or search transcript segments (query).

    Filters narrow both modes. An empty result is a normal 200 response.
    """
    try:
        result = planner.search(request.query, request.filter, request.top_k)
    except (StoreUnavailable, EmbeddingFailure) as exc:
        raise HTTPException(status_code=503, detail=f"Search unavailable: {exc}") from exc

    return SearchResponse.model_validate(result, from_attributes=True)
