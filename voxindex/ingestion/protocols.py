"""Interfaces of the collaborators injected into the pipeline and the planner."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from voxindex.extraction.models import ItemInsights
    from voxindex.ingestion.models import ItemRecord, SegmentRecord, VectorMatch
    from voxindex.retrieval.filters import FilterSpec


class ContentAcquirer(Protocol):
    def acquire(self, item_id: str) -> Path: ...


class Transcriber(Protocol):
    def transcribe(self, audio_path: Path, keywords: list[str] | None = None) -> str: ...


class InsightExtractor(Protocol):
    def extract(self, transcript: str) -> ItemInsights: ...


class EmbeddingClient(Protocol):
    dimension: int

    def embed(self, texts: list[str]) -> list[list[float]]: ...


class MetadataStore(Protocol):
    def get_item(self, item_id: str) -> ItemRecord | None: ...

    def get_items(self, item_ids: list[str]) -> dict[str, ItemRecord]: ...

    def upsert_item(self, item_id: str, transcript: str, metadata: dict[str, Any]) -> ItemRecord: ...

    def find_items(self, spec: FilterSpec | None = None) -> list[ItemRecord]: ...


class SegmentStore(Protocol):
    def insert_segments(self, segments: list[SegmentRecord]) -> None: ...

    def list_segments(self, item_id: str) -> list[SegmentRecord]: ...


class VectorIndex(Protocol):
    def create_index(self, dimension: int) -> None: ...

    def index_dimension(self) -> int | None: ...
    def upsert(self, segments: list[SegmentRecord]) -> None: ...

    def query(
        self,
        vector: list[float],
        top_k: int = 10,
        item_ids: list[str] | None = None,
        content_contains: str | None = None,
    ) -> list[VectorMatch]: ...
