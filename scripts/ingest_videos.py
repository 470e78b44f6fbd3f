"""Ingest one or more videos into the knowledge base via the ingestion pipeline."""

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from voxindex.api.deps import get_pipeline
from voxindex.errors import IngestionError
from voxindex.ingestion.models import IngestionResult

logger = logging.getLogger("ingest_videos")


def ingest_one(video_id: str, keywords: list[str] | None, force: bool) -> IngestionResult:
    return get_pipeline().ingest(video_id, keywords, force=force)


def main() -> int:
    parser = argparse.ArgumentParser(description="Ingest videos by id")
    parser.add_argument("video_ids", nargs="+", help="YouTube video ids")
    parser.add_argument(
        "--keyword",
        action="append",
        dest="keywords",
        help="Transcription vocabulary hint (repeatable; defaults to configured keywords)",
    )
    parser.add_argument("--force", action="store_true", help="Reprocess stored videos")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Parallel runs for distinct video ids (default: 1)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Same-id runs are not coordinated, so never schedule an id twice.
    video_ids = list(dict.fromkeys(args.video_ids))
    failures = 0

    with ThreadPoolExecutor(max_workers=max(1, args.workers)) as pool:
        futures = {
            pool.submit(ingest_one, video_id, args.keywords, args.force): video_id
            for video_id in video_ids
        }
        for future in as_completed(futures):
            video_id = futures[future]
            try:
                result = future.result()
            except IngestionError as exc:
                failures += 1
                logger.error("%s failed at %s: %s", video_id, exc.stage, exc.message)
                continue
            status = "reused" if result.reused else "ingested"
            print(f"{video_id}: {status}, {result.segments_created} segments")

    print(f"\nDone: {len(video_ids) - failures} succeeded, {failures} failed")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
