"""Meeting summarization: prompt, parsing and persistence."""

from meetnotes.services.summarization.invoker import SummarizationInvoker
from meetnotes.services.summarization.meeting_summarizer import (
    MeetingSummarizer,
    build_summary_prompt,
    parse_summary_response,
)

__all__ = ["MeetingSummarizer", "SummarizationInvoker", "build_summary_prompt", "parse_summary_response"]
