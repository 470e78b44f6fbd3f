"""Shared in-memory doubles for the stores and external services."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from voxindex.errors import IndexConflict, LookupFailure
from voxindex.extraction.models import ItemInsights
from voxindex.ingestion.models import ItemRecord, SegmentRecord, VectorMatch
from voxindex.ingestion.pipeline import IngestionPipeline
from voxindex.pipeline_config import ChunkingConfig
from voxindex.retrieval.filters import FilterSpec

TRANSCRIPT = (
    "Welcome back to the show. Today we talk about retrieval augmented generation, "
    "vector databases and how agents call tools. Our guest built a TypeScript "
    "framework for agents and explains workflows, memory and evaluation in depth."
)


class FakeClock:
    """Strictly increasing timestamps so created/updated comparisons are stable."""

    def __init__(self) -> None:
        self._now = datetime(2025, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


class InMemoryMetadataStore:
    def __init__(self, clock: FakeClock | None = None) -> None:
        self.items: dict[str, ItemRecord] = {}
        self.clock = clock or FakeClock()
        self.fail_lookup = False
        self.get_items_calls = 0
        self.find_items_calls = 0

    def get_item(self, item_id: str) -> ItemRecord | None:
        if self.fail_lookup:
            raise LookupFailure("store unreachable")
        return self.items.get(item_id)

    def get_items(self, item_ids: list[str]) -> dict[str, ItemRecord]:
        self.get_items_calls += 1
        return {i: self.items[i] for i in item_ids if i in self.items}

    def upsert_item(self, item_id: str, transcript: str, metadata: dict[str, Any]) -> ItemRecord:
        now = self.clock()
        existing = self.items.get(item_id)
        record = ItemRecord(
            id=item_id,
            transcript=transcript,
            metadata=dict(metadata),
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self.items[item_id] = record
        return record

    def find_items(self, spec: FilterSpec | None = None) -> list[ItemRecord]:
        self.find_items_calls += 1
        records = sorted(self.items.values(), key=lambda r: r.created_at or datetime.min)
        return [r for r in records if spec is None or spec.matches(r)]


class InMemorySegmentStore:
    def __init__(self) -> None:
        self.rows: dict[str, SegmentRecord] = {}
        self.fail_next_insert: Exception | None = None

    def insert_segments(self, segments: list[SegmentRecord]) -> None:
        if self.fail_next_insert is not None:
            error, self.fail_next_insert = self.fail_next_insert, None
            raise error
        for seg in segments:
            self.rows.setdefault(seg.id, seg)

    def list_segments(self, item_id: str) -> list[SegmentRecord]:
        rows = [s for s in self.rows.values() if s.item_id == item_id]
        return sorted(rows, key=lambda s: s.sequence_index)

    def count(self, item_id: str) -> int:
        return len(self.list_segments(item_id))


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorIndex:
    def __init__(self) -> None:
        self.vectors: dict[str, SegmentRecord] = {}
        self.dimension: int | None = None
        self.create_calls = 0
        self.query_calls: list[dict[str, Any]] = []

    def create_index(self, dimension: int) -> None:
        self.create_calls += 1
        if self.dimension is not None:
            raise IndexConflict("exists")
        self.dimension = dimension

    def index_dimension(self) -> int | None:
        return self.dimension

    def upsert(self, segments: list[SegmentRecord]) -> None:
        for seg in segments:
            self.vectors[seg.id] = seg

    def query(
        self,
        vector: list[float],
        top_k: int = 10,
        item_ids: list[str] | None = None,
        content_contains: str | None = None,
    ) -> list[VectorMatch]:
        self.query_calls.append(
            {"top_k": top_k, "item_ids": item_ids, "content_contains": content_contains}
        )
        if item_ids is not None and not item_ids:
            raise ValueError("empty restriction")
        hits = [
            VectorMatch(
                id=seg.id,
                item_id=seg.item_id,
                content=seg.content,
                score=_cosine(vector, seg.embedding),
                metadata=seg.metadata,
            )
            for seg in self.vectors.values()
            if (item_ids is None or seg.item_id in item_ids)
            and (not content_contains or content_contains.lower() in seg.content.lower())
        ]
        hits.sort(key=lambda m: m.score, reverse=True)
        return hits[:top_k]


class FakeEmbedder:
    dimension = 3

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector_for(t) for t in texts]

    @staticmethod
    def vector_for(text: str) -> list[float]:
        lowered = text.lower()
        return [
            float(lowered.count("agent") + 1),
            float(lowered.count("vector") + 1),
            float(len(lowered) % 5 + 1),
        ]


class FakeAcquirer:
    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.calls: list[str] = []
        self.error: Exception | None = None
        self.last_path: Path | None = None

    def acquire(self, item_id: str) -> Path:
        self.calls.append(item_id)
        if self.error is not None:
            raise self.error
        path = self.directory / f"{item_id}.webm"
        path.write_bytes(b"\x1aE\xdf\xa3 fake audio")
        self.last_path = path
        return path


class FakeTranscriber:
    def __init__(self, transcript: str = TRANSCRIPT) -> None:
        self.transcript = transcript
        self.calls: list[tuple[Path, list[str] | None]] = []
        self.error: Exception | None = None

    def transcribe(self, audio_path: Path, keywords: list[str] | None = None) -> str:
        self.calls.append((audio_path, keywords))
        if self.error is not None:
            raise self.error
        return self.transcript


class FakeExtractor:
    def __init__(self, insights: ItemInsights | None = None) -> None:
        self.insights = insights or ItemInsights(
            summary="A conversation about RAG, vector databases and agent tooling.",
            key_topics=["RAG", "Vector databases", "Agents"],
            speakers=["Shane", "Abhi"],
            action_items=["Try the agent framework"],
            tags=["ai", "typescript"],
        )
        self.calls = 0
        self.error: Exception | None = None

    def extract(self, transcript: str) -> ItemInsights:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.insights


class Harness:
    """A pipeline wired to in-memory doubles, with handles on every double."""

    def __init__(self, tmp_path: Path, chunking: ChunkingConfig | None = None) -> None:
        self.acquirer = FakeAcquirer(tmp_path)
        self.transcriber = FakeTranscriber()
        self.extractor = FakeExtractor()
        self.embedder = FakeEmbedder()
        self.metadata_store = InMemoryMetadataStore()
        self.segment_store = InMemorySegmentStore()
        self.vector_index = InMemoryVectorIndex()
        self.pipeline = IngestionPipeline(
            acquirer=self.acquirer,
            transcriber=self.transcriber,
            extractor=self.extractor,
            embedder=self.embedder,
            metadata_store=self.metadata_store,
            segment_store=self.segment_store,
            vector_index=self.vector_index,
            chunking=chunking or ChunkingConfig(chunk_size=60, overlap=15),
            default_keywords=["AI", "RAG"],
        )

    def external_calls(self) -> int:
        return (
            len(self.acquirer.calls)
            + len(self.transcriber.calls)
            + self.extractor.calls
            + len(self.embedder.calls)
        )


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)
