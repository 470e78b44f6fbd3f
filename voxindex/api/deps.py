"""FastAPI dependencies wiring the pipeline and planner from settings.

Tests replace these through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from voxindex.config import get_settings
from voxindex.extraction.extractor import ClaudeInsightExtractor
from voxindex.ingestion.acquisition import YouTubeAudioDownloader
from voxindex.ingestion.embeddings import OpenAIEmbeddingClient
from voxindex.ingestion.pipeline import IngestionPipeline
from voxindex.ingestion.storage import (
    SupabaseMetadataStore,
    SupabaseSegmentStore,
    SupabaseVectorIndex,
    get_supabase_client,
)
from voxindex.ingestion.transcription import AssemblyAITranscriber
from voxindex.pipeline_config import ChunkingConfig
from voxindex.retrieval.search import HybridQueryPlanner


@lru_cache(maxsize=1)
def get_metadata_store() -> SupabaseMetadataStore:
    return SupabaseMetadataStore(get_supabase_client(get_settings()))


@lru_cache(maxsize=1)
def get_segment_store() -> SupabaseSegmentStore:
    return SupabaseSegmentStore(get_supabase_client(get_settings()))


@lru_cache(maxsize=1)
def get_vector_index() -> SupabaseVectorIndex:
    settings = get_settings()
    return SupabaseVectorIndex(get_supabase_client(settings), index_name=settings.vector_index_name)


@lru_cache(maxsize=1)
def get_embedder() -> OpenAIEmbeddingClient:
    settings = get_settings()
    return OpenAIEmbeddingClient(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimension=settings.embedding_dimensions,
    )


@lru_cache(maxsize=1)
def get_pipeline() -> IngestionPipeline:
    settings = get_settings()
    return IngestionPipeline(
        acquirer=YouTubeAudioDownloader(settings.audio_dir),
        transcriber=AssemblyAITranscriber(settings.assemblyai_api_key),
        extractor=ClaudeInsightExtractor(settings.anthropic_api_key, settings.llm_model),
        embedder=get_embedder(),
        metadata_store=get_metadata_store(),
        segment_store=get_segment_store(),
        vector_index=get_vector_index(),
        chunking=ChunkingConfig(chunk_size=settings.chunk_size, overlap=settings.chunk_overlap),
        default_keywords=settings.default_keywords,
    )


@lru_cache(maxsize=1)
def get_planner() -> HybridQueryPlanner:
    return HybridQueryPlanner(get_metadata_store(), get_vector_index(), get_embedder())
