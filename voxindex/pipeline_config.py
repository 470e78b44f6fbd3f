"""Pipeline configuration: stage and search-mode enums, ChunkingConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PipelineStage(str, Enum):
    """Ingestion stages, in execution order."""

    CHECK_EXISTING = "check_existing"
    ACQUIRE_CONTENT = "acquire_content"
    TRANSCRIBE = "transcribe"
    EXTRACT_INSIGHTS = "extract_insights"
    CHUNK_AND_EMBED = "chunk_and_embed"
    DONE = "done"


class SearchMode(str, Enum):
    """Shape of a search result."""

    BROWSE = "browse"
    SEARCH = "search"


@dataclass(frozen=True)
class ChunkingConfig:
    """Immutable chunking parameters, in characters.

    The values used for an ingestion run are recorded on the stored item so a
    run can be reproduced.
    """

    chunk_size: int = 500
    overlap: int = 100

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if not 0 <= self.overlap < self.chunk_size:
            raise ValueError(
                f"overlap must be in [0, chunk_size), got {self.overlap} for size {self.chunk_size}"
            )
