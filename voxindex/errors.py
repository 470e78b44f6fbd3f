"""Error taxonomy for ingestion and retrieval."""

from __future__ import annotations


class VoxIndexError(Exception):
    """Base class for all voxindex errors."""


class LookupFailure(VoxIndexError):
    """The metadata store could not be reached during an existence check."""


class IndexConflict(VoxIndexError):
    """The vector index namespace already exists."""


class StoreUnavailable(VoxIndexError):
    """A store or the vector index failed while serving a query."""


class IngestionError(VoxIndexError):
    """A fatal ingestion failure, tagged with the stage it came from."""

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class AcquisitionFailure(IngestionError):
    """No usable audio could be acquired for the item."""


class TranscriptionFailure(IngestionError):
    """The transcription service failed or returned an empty transcript."""


class ExtractionFailure(IngestionError):
    """Insight extraction failed or returned output violating the schema."""


class EmbeddingFailure(IngestionError):
    """The embedding service failed or returned malformed vectors."""
