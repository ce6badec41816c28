"""Shared utility functions for meetnotes."""

import mimetypes
import re

_EXTENSION_OVERRIDES = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/x-wav": "wav",
    "audio/wav": "wav",
    "audio/webm": "webm",
    "video/webm": "webm",
    "audio/ogg": "ogg",
}

_SAFE_EXTENSION = re.compile(r"[a-z0-9]{1,8}")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapping JSON from LLM responses."""
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```\w*\n?", "", text)
        text = re.sub(r"\n?```$", "", text)
    return text.strip()


def extract_json_span(text: str) -> str | None:
    """Return the substring from the first ``{`` to the last ``}``.

    Returns None when the text holds no such span.
    """
    text = strip_code_fences(text)
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    return text[start : end + 1]


def extension_for(mime_type: str, file_name: str = "") -> str:
    """Pick a file extension for a stored object."""
    if "." in file_name:
        ext = file_name.rsplit(".", 1)[1].lower()
        if _SAFE_EXTENSION.fullmatch(ext):
            return ext
    if mime_type in _EXTENSION_OVERRIDES:
        return _EXTENSION_OVERRIDES[mime_type]
    guessed = mimetypes.guess_extension(mime_type) or ".bin"
    return guessed.lstrip(".")


def recording_object_path(owner_id: str, millis: int, mime_type: str, file_name: str = "") -> str:
    """Build ``recordings/<owner>/<millis>.<ext>``."""
    return f"recordings/{owner_id}/{millis}.{extension_for(mime_type, file_name)}"
