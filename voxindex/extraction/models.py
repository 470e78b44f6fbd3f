"""Data models for structured extraction results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ItemInsights(BaseModel):
    """Structured insights extracted from a transcript."""

    summary: str = Field(min_length=1)
    key_topics: list[str]
    speakers: list[str] | None = None
    action_items: list[str] | None = None
    tags: list[str]

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> ItemInsights:
        """Rebuild insights from a stored item's metadata map."""
        return cls(
            summary=metadata.get("summary") or "No summary available",
            key_topics=metadata.get("key_topics") or [],
            speakers=metadata.get("speakers"),
            action_items=metadata.get("action_items"),
            tags=metadata.get("tags") or [],
        )
