"""Claude-powered extraction of summary, topics, speakers, action items and tags."""

from __future__ import annotations

import json
from typing import Any

from anthropic import Anthropic, AnthropicError
from pydantic import ValidationError

from voxindex.errors import ExtractionFailure
from voxindex.extraction.models import ItemInsights

TOOL_NAME = "store_video_insights"

# Tool definition for Claude structured output
EXTRACTION_TOOL: dict[str, Any] = {
    "name": TOOL_NAME,
    "description": (
        "Store structured insights extracted from a video transcript. "
        "Call this once with the complete set of insights."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "summary": {
                "type": "string",
                "description": "A comprehensive summary of the content (2-3 sentences).",
            },
            "key_topics": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Main topics or themes discussed, most important first.",
            },
            "speakers": {
                "type": ["array", "null"],
                "items": {"type": "string"},
                "description": "Identified speakers or participants (null if unknown).",
            },
            "action_items": {
                "type": ["array", "null"],
                "items": {"type": "string"},
                "description": "Action items, recommendations or conclusions (null if none).",
            },
            "tags": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Relevant tags or categories for the content.",
            },
        },
        "required": ["summary", "key_topics", "tags"],
    },
}

SYSTEM_PROMPT = (
    "You analyse transcripts of long-form talks, podcasts and livestreams.\n\n"
    "Extract:\n"
    "1. **Summary** : a comprehensive 2-3 sentence summary.\n"
    "2. **Key topics** : the main topics or themes discussed.\n"
    "3. **Speakers** : speakers or participants mentioned by name.\n"
    "4. **Action items** : recommendations, next steps or conclusions.\n"
    "5. **Tags** : short category labels for the content.\n\n"
    f"Use the {TOOL_NAME} tool to return your results. "
    "Only extract information clearly supported by the transcript."
)


class ClaudeInsightExtractor:
    """Extracts :class:`ItemInsights` from a transcript with a forced tool call."""

    def __init__(self, api_key: str, model: str, client: Anthropic | None = None) -> None:
        self.model = model
        self._client = client or Anthropic(api_key=api_key)

    def extract(self, transcript: str) -> ItemInsights:
        """Extract insights from *transcript*.

        Raises:
            ExtractionFailure: If the API call fails or the tool output does
                not match the insight schema. No default insights are
                substituted.
        """
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=4096,
                system=SYSTEM_PROMPT,
                tools=[EXTRACTION_TOOL],
                tool_choice={"type": "tool", "name": TOOL_NAME},
                messages=[
                    {
                        "role": "user",
                        "content": (
                            "Analyse this video transcript and extract structured "
                            f"information:\n\n{transcript}"
                        ),
                    }
                ],
            )
        except AnthropicError as exc:
            raise ExtractionFailure(f"Insight extraction failed: {exc}") from exc

        return _parse_tool_response(response)


def _parse_tool_response(response: Any) -> ItemInsights:
    """Parse the Claude tool_use response into ItemInsights."""
    for block in response.content:
        if block.type != "tool_use" or block.name != TOOL_NAME:
            continue

        data = block.input
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as exc:
                raise ExtractionFailure(f"Tool input is not valid JSON: {exc}") from exc

        try:
            return ItemInsights.model_validate(data)
        except ValidationError as exc:
            raise ExtractionFailure(f"Extracted insights violate the schema: {exc}") from exc

    raise ExtractionFailure(f"Response contained no {TOOL_NAME} tool call")
