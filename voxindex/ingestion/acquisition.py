"""Audio acquisition: download the best audio-only track of a YouTube video."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yt_dlp
from yt_dlp.utils import DownloadError

from voxindex.errors import AcquisitionFailure

logger = logging.getLogger(__name__)

YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


def _safe_title(title: str) -> str:
    """Strip special characters and collapse whitespace to underscores."""
    return re.sub(r"\s+", "_", re.sub(r"[^\w\s-]", "", title)).strip("_") or "audio"


def _audio_only_formats(info: dict[str, Any]) -> list[dict[str, Any]]:
    formats = info.get("formats") or []
    return [
        f
        for f in formats
        if f.get("acodec") not in (None, "none") and f.get("vcodec") in (None, "none")
    ]


class YouTubeAudioDownloader:
    """Downloads audio for a video id into *output_dir*.

    The caller owns the returned file and is expected to delete it once it
    has been transcribed.
    """

    def __init__(self, output_dir: Path = Path("./audio")) -> None:
        self.output_dir = output_dir

    def acquire(self, item_id: str) -> Path:
        """Download the highest-bitrate audio-only format for *item_id*.

        Raises:
            AcquisitionFailure: If the video cannot be resolved or has no
                audio-only format.
        """
        url = YOUTUBE_WATCH_URL.format(video_id=item_id)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        try:
            with yt_dlp.YoutubeDL({"quiet": True, "noprogress": True}) as ydl:
                info = ydl.extract_info(url, download=False)
        except DownloadError as exc:
            raise AcquisitionFailure(f"Could not resolve video {item_id}: {exc}") from exc

        audio_formats = _audio_only_formats(info)
        if not audio_formats:
            raise AcquisitionFailure(f"No audio-only formats available for {item_id}")

        best = max(audio_formats, key=lambda f: f.get("abr") or 0)
        stem = f"{_safe_title(info.get('title') or '')}_{item_id}"
        options = {
            "quiet": True,
            "noprogress": True,
            "format": best["format_id"],
            "outtmpl": str(self.output_dir / f"{stem}.%(ext)s"),
        }
        logger.info(
            "Downloading audio for %s (%s kbps %s)", item_id, best.get("abr"), best.get("ext")
        )

        try:
            with yt_dlp.YoutubeDL(options) as ydl:
                downloaded = ydl.process_ie_result(info, download=True)
                path = Path(ydl.prepare_filename(downloaded))
        except DownloadError as exc:
            raise AcquisitionFailure(f"Audio download failed for {item_id}: {exc}") from exc

        if not path.exists():
            raise AcquisitionFailure(f"Downloaded audio for {item_id} not found at {path}")
        logger.info("Downloaded %s", path)
        return path
