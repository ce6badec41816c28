"""
Meeting summarization service.

Sends a whole transcript to the configured LLM with a fixed prompt and
parses the JSON object it answers with into key points, action items,
participants and general notes.
"""

import json
import logging

import pydantic

from meetnotes.core.exceptions import SummaryParseError
from meetnotes.core.models import SummaryResult
from meetnotes.core.utils import extract_json_span
from meetnotes.services.llm.base import BaseLLM

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You summarize meeting transcripts."

USER_PROMPT_TEMPLATE = (
    "You are an AI assistant that summarizes meeting transcripts. "
    'Extract four sections: "Key Points", "Action Items", "Participants", and "General Notes".\n\n'
    "Transcript:\n{transcript}\n\n"
    "Respond as JSON with keys: main_points (array of strings), next_steps (array of strings), "
    "participants (array of strings), general_notes (string). Output ONLY the JSON object."
)

# model key -> SummaryResult field
_FIELD_MAP = {
    "main_points": "key_points",
    "next_steps": "action_items",
    "participants": "participants",
    "general_notes": "general_notes",
}


def build_summary_prompt(transcript: str) -> str:
    """Embed a transcript in the summarization prompt."""
    return USER_PROMPT_TEMPLATE.format(transcript=transcript)


def parse_summary_response(raw: str) -> SummaryResult:
    """Parse the model's answer into a :class:`SummaryResult`.

    Everything outside the first ``{`` and last ``}`` is discarded before
    decoding. Individual missing keys default to empty values, but an
    object carrying none of the four keys is rejected, as are keys of the
    wrong type.

    Raises:
        SummaryParseError: If no valid summary object can be extracted.
    """
    span = extract_json_span(raw or "")
    if span is None:
        raise SummaryParseError("Summary response contains no JSON object", raw=raw)
    try:
        data = json.loads(span)
    except json.JSONDecodeError as exc:
        raise SummaryParseError(f"Summary response is not valid JSON: {exc.msg}", raw=raw) from exc
    if not isinstance(data, dict):
        raise SummaryParseError("Summary response is not a JSON object", raw=raw)
    if not any(key in data for key in _FIELD_MAP):
        raise SummaryParseError("Summary response has none of the expected keys", raw=raw)

    fields = {target: data[source] for source, target in _FIELD_MAP.items() if data.get(source) is not None}
    try:
        return SummaryResult.model_validate(fields)
    except pydantic.ValidationError as exc:
        raise SummaryParseError(
            f"Summary response has unexpected field types ({exc.error_count()} errors)", raw=raw
        ) from exc


class MeetingSummarizer:
    """Summarizes meeting transcripts using an LLM provider.

    Args:
        llm: An LLM provider implementing ``BaseLLM``.
        temperature: Sampling temperature for the single model call.
    """

    def __init__(self, llm: BaseLLM, temperature: float = 0.7) -> None:
        self._llm = llm
        self._temperature = temperature

    @property
    def model_used(self) -> str:
        return f"{self._llm.provider}:{self._llm.model_name}" if self._llm.provider else self._llm.model_name

    async def summarize(self, transcript: str) -> SummaryResult:
        """Summarize one transcript.

        Raises:
            SummarizationError: If the model call fails.
            SummaryParseError: If the answer is not the expected JSON.
        """
        raw = await self._llm.generate(
            build_summary_prompt(transcript),
            system=SYSTEM_PROMPT,
            temperature=self._temperature,
        )
        result = parse_summary_response(raw)
        logger.debug(
            "Summary parsed: %d key points, %d action items, %d participants",
            len(result.key_points),
            len(result.action_items),
            len(result.participants),
        )
        return result.model_copy(update={"model_used": self.model_used})
