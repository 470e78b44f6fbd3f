"""Speech-to-text via the AssemblyAI SDK."""

from __future__ import annotations

import logging
from pathlib import Path

import assemblyai as aai  # type: ignore[import-untyped]  # no stubs

from voxindex.errors import TranscriptionFailure

logger = logging.getLogger(__name__)


class AssemblyAITranscriber:
    """Transcribes a local audio file into plain punctuated text."""

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    def transcribe(self, audio_path: Path, keywords: list[str] | None = None) -> str:
        """Return the full transcript of *audio_path*.

        Args:
            audio_path: Local audio file.
            keywords: Domain vocabulary hints boosted during recognition.

        Raises:
            TranscriptionFailure: If the API rejects the audio, errors out,
                or returns an empty transcript.
        """
        if not self.api_key:
            raise TranscriptionFailure("Audio transcription is not configured (ASSEMBLYAI_API_KEY)")

        aai.settings.api_key = self.api_key
        config = aai.TranscriptionConfig(
            speech_models=["universal-3-pro"],
            punctuate=True,
            word_boost=list(keywords or []),
        )

        logger.info("Transcribing %s (%d keyword hints)", audio_path, len(keywords or []))
        try:
            transcript = aai.Transcriber().transcribe(str(audio_path), config=config)
        except Exception as exc:
            # Infrastructure error: invalid API key, network failure, provider outage.
            raise TranscriptionFailure(f"Transcription service unavailable: {exc}") from exc

        if transcript.status == aai.TranscriptStatus.error:
            raise TranscriptionFailure(f"Transcription failed: {transcript.error}")

        text = (transcript.text or "").strip()
        if not text:
            raise TranscriptionFailure("No transcription results found")
        return text
