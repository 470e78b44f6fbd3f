"""Resumable ingestion pipeline: check -> acquire -> transcribe -> extract -> chunk/embed/store.

Each stage maps a :data:`PipelineContext` to the next one. A run starts with a
``FreshContext``; if the item is already stored with all of its segments,
CHECK_EXISTING swaps it for a ``CachedContext`` and every later stage replays
stored data instead of calling external services.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import TypeVar, assert_never

from voxindex.errors import (
    AcquisitionFailure,
    EmbeddingFailure,
    ExtractionFailure,
    IndexConflict,
    IngestionError,
    LookupFailure,
    StoreUnavailable,
    TranscriptionFailure,
)
from voxindex.ingestion.chunking import chunk_text
from voxindex.ingestion.models import (
    CachedContext,
    FreshContext,
    IngestionResult,
    ItemRecord,
    PipelineContext,
    SegmentRecord,
)
from voxindex.ingestion.protocols import (
    ContentAcquirer,
    EmbeddingClient,
    InsightExtractor,
    MetadataStore,
    SegmentStore,
    Transcriber,
    VectorIndex,
)
from voxindex.pipeline_config import ChunkingConfig, PipelineStage

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STAGE_FAILURES: dict[PipelineStage, type[IngestionError]] = {
    PipelineStage.ACQUIRE_CONTENT: AcquisitionFailure,
    PipelineStage.TRANSCRIBE: TranscriptionFailure,
    PipelineStage.EXTRACT_INSIGHTS: ExtractionFailure,
}


def _discard_audio(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not delete audio file %s", path, exc_info=True)
    else:
        logger.info("Deleted audio file %s", path)


class IngestionPipeline:
    """Drives one item from "unknown" to "fully indexed".

    Collaborators are injected; nothing here reaches for global clients. The
    pipeline takes no lock: concurrent runs for the same item id may repeat
    external work, while the final writes stay idempotent.
    """

    def __init__(
        self,
        *,
        acquirer: ContentAcquirer,
        transcriber: Transcriber,
        extractor: InsightExtractor,
        embedder: EmbeddingClient,
        metadata_store: MetadataStore,
        segment_store: SegmentStore,
        vector_index: VectorIndex,
        chunking: ChunkingConfig | None = None,
        default_keywords: Sequence[str] = (),
    ) -> None:
        self.acquirer = acquirer
        self.transcriber = transcriber
        self.extractor = extractor
        self.embedder = embedder
        self.metadata_store = metadata_store
        self.segment_store = segment_store
        self.vector_index = vector_index
        self.chunking = chunking or ChunkingConfig()
        self.default_keywords = tuple(default_keywords)

    def ingest(
        self,
        item_id: str,
        keywords: Sequence[str] | None = None,
        *,
        force: bool = False,
        chunking: ChunkingConfig | None = None,
    ) -> IngestionResult:
        """Run every stage for *item_id* and return the stored result.

        Args:
            item_id: Externally assigned item id (e.g. a YouTube video id).
            keywords: Vocabulary hints for transcription. ``None`` uses the
                configured defaults.
            force: Reprocess even if the item is already stored.
            chunking: Chunk parameters for this run, recorded on the item.

        Raises:
            IngestionError: A typed subclass carrying the failing stage.
        """
        hints = self.default_keywords if keywords is None else tuple(keywords)
        ctx: PipelineContext = FreshContext(item_id=item_id, keywords=hints)

        steps: list[tuple[PipelineStage, Callable[[PipelineContext], PipelineContext]]] = [
            (PipelineStage.CHECK_EXISTING, partial(self._check_existing, force=force)),
            (PipelineStage.ACQUIRE_CONTENT, self._acquire_content),
            (PipelineStage.TRANSCRIBE, self._transcribe),
            (PipelineStage.EXTRACT_INSIGHTS, self._extract_insights),
        ]
        for stage, step in steps:
            ctx = self._run_stage(stage, step, ctx)

        result = self._run_stage(
            PipelineStage.CHUNK_AND_EMBED,
            partial(self._chunk_and_embed, chunking=chunking or self.chunking),
            ctx,
        )
        logger.info(
            "[%s] %s: %d segments (reused=%s)",
            item_id,
            PipelineStage.DONE.value,
            result.segments_created,
            result.reused,
        )
        return result

    def _run_stage(
        self, stage: PipelineStage, step: Callable[[PipelineContext], T], ctx: PipelineContext
    ) -> T:
        logger.info("[%s] %s (already_exists=%s)", ctx.item_id, stage.value, ctx.already_exists)
        try:
            return step(ctx)
        except IngestionError as exc:
            if exc.stage is None:
                exc.stage = stage.value
            raise
        except Exception as exc:
            failure = _STAGE_FAILURES.get(stage, IngestionError)
            raise failure(str(exc) or type(exc).__name__, stage=stage.value) from exc

    # -- stages --------------------------------------------------------------

    def _check_existing(self, ctx: PipelineContext, force: bool = False) -> PipelineContext:
        if isinstance(ctx, CachedContext):
            return ctx
        if isinstance(ctx, FreshContext):
            if force:
                logger.info("Forced reprocessing of %s", ctx.item_id)
                return ctx
            try:
                record = self.metadata_store.get_item(ctx.item_id)
            except LookupFailure:
                # A failed lookup reads as "not found".
                logger.warning(
                    "Existence check for %s failed; processing from scratch",
                    ctx.item_id,
                    exc_info=True,
                )
                return ctx
            if record is None or not record.transcript:
                return ctx
            segments = self._stored_segments(record)
            if segments is None:
                return ctx
            logger.info("Item %s already exists in the metadata store", ctx.item_id)
            return CachedContext(item_id=ctx.item_id, record=record, segments=tuple(segments))
        assert_never(ctx)

    def _acquire_content(self, ctx: PipelineContext) -> PipelineContext:
        if isinstance(ctx, CachedContext):
            logger.info("Item %s already exists, skipping download", ctx.item_id)
            return ctx
        if isinstance(ctx, FreshContext):
            audio_path = self.acquirer.acquire(ctx.item_id)
            return replace(ctx, audio_path=audio_path)
        assert_never(ctx)

    def _transcribe(self, ctx: PipelineContext) -> PipelineContext:
        if isinstance(ctx, CachedContext):
            logger.info("Item %s already exists, using stored transcript", ctx.item_id)
            return ctx
        if isinstance(ctx, FreshContext):
            if ctx.audio_path is None:
                raise TranscriptionFailure("Audio file is required for transcription")
            try:
                transcript = self.transcriber.transcribe(ctx.audio_path, list(ctx.keywords))
            finally:
                _discard_audio(ctx.audio_path)
            if not transcript or not transcript.strip():
                raise TranscriptionFailure("Transcription returned no text")
            return replace(ctx, audio_path=None, transcript=transcript)
        assert_never(ctx)

    def _extract_insights(self, ctx: PipelineContext) -> PipelineContext:
        if isinstance(ctx, CachedContext):
            logger.info("Item %s already exists, using stored insights", ctx.item_id)
            return ctx
        if isinstance(ctx, FreshContext):
            if ctx.transcript is None:
                raise ExtractionFailure("Transcript is required for extraction")
            insights = self.extractor.extract(ctx.transcript)
            return replace(ctx, insights=insights)
        assert_never(ctx)

    def _chunk_and_embed(self, ctx: PipelineContext, chunking: ChunkingConfig) -> IngestionResult:
        if isinstance(ctx, CachedContext):
            logger.info("Item %s already exists, retrieving stored segments", ctx.item_id)
            return IngestionResult(
                transcript=ctx.transcript,
                insights=ctx.insights,
                segments_created=len(ctx.segments),
                item_record=ctx.record,
                segment_records=list(ctx.segments),
                reused=True,
            )
        if isinstance(ctx, FreshContext):
            return self._store_fresh(ctx, chunking)
        assert_never(ctx)

    def _store_fresh(self, ctx: FreshContext, chunking: ChunkingConfig) -> IngestionResult:
        if ctx.transcript is None or ctx.insights is None:
            raise IngestionError("Transcript and insights are required before chunking")
        transcript, insights = ctx.transcript, ctx.insights

        chunks = chunk_text(transcript, chunking.chunk_size, chunking.overlap)
        logger.info("Created %d chunks for %s", len(chunks), ctx.item_id)

        embeddings = self._embed(chunks)

        total = len(chunks)
        segments = [
            SegmentRecord(
                item_id=ctx.item_id,
                sequence_index=index,
                content=content,
                embedding=embedding,
                metadata={"total_segments": total, "key_topics": list(insights.key_topics)},
            )
            for index, (content, embedding) in enumerate(zip(chunks, embeddings, strict=True))
        ]
        metadata = {
            **insights.model_dump(),
            "chunk_count": total,
            "chunk_size": chunking.chunk_size,
            "chunk_overlap": chunking.overlap,
        }

        self._ensure_index()
        # The item row goes last: a stored transcript implies its segments
        # and vectors were written. All writes are idempotent.
        self.segment_store.insert_segments(segments)
        self.vector_index.upsert(segments)
        item_record = self.metadata_store.upsert_item(ctx.item_id, transcript, metadata)

        logger.info("Successfully processed %d chunks for %s", total, ctx.item_id)
        return IngestionResult(
            transcript=transcript,
            insights=insights,
            segments_created=total,
            item_record=item_record,
            segment_records=segments,
        )

    def _ensure_index(self) -> None:
        dimension = self.embedder.dimension
        try:
            self.vector_index.create_index(dimension)
        except IndexConflict:
            existing = self.vector_index.index_dimension()
            if existing is not None and existing != dimension:
                raise EmbeddingFailure(
                    f"Vector index holds {existing}-dimensional vectors, "
                    f"embedder produces {dimension}"
                ) from None
            logger.info("Vector index already exists")

    def _stored_segments(self, record: ItemRecord) -> list[SegmentRecord] | None:
        """Segments of a stored item, or None if the stored set is incomplete."""
        expected = (record.metadata or {}).get("chunk_count")
        if not isinstance(expected, int):
            logger.warning("Item %s has no chunk count; reprocessing", record.id)
            return None
        try:
            stored = self.segment_store.list_segments(record.id)
        except StoreUnavailable:
            logger.warning("Could not list segments of %s; reprocessing", record.id, exc_info=True)
            return None
        segments = [s for s in stored if s.sequence_index < expected]
        if len(segments) != expected:
            logger.warning(
                "Item %s has %d of %d segments; reprocessing", record.id, len(segments), expected
            )
            return None
        return segments

    def _embed(self, chunks: list[str]) -> list[list[float]]:
        try:
            embeddings = self.embedder.embed(chunks)
        except EmbeddingFailure:
            raise
        except Exception as exc:
            raise EmbeddingFailure(f"Embedding request failed: {exc}") from exc

        if len(embeddings) != len(chunks):
            raise EmbeddingFailure(f"Expected {len(chunks)} embeddings, got {len(embeddings)}")
        if any(len(vector) != self.embedder.dimension for vector in embeddings):
            raise EmbeddingFailure(
                f"Embeddings do not match the declared dimension {self.embedder.dimension}"
            )
        return embeddings
