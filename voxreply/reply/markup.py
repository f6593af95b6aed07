"""Speech markup helpers."""

from __future__ import annotations

import html
import re

SPEAK_OPEN = "<speak>"
SPEAK_CLOSE = "</speak>"

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"[ \t]+")


def strip_markup(text: str) -> str:
    """Remove markup tags and decode entities."""
    text = _TAG_RE.sub("", text)
    return _WS_RE.sub(" ", html.unescape(text)).strip()


def to_ssml(statement: str | None) -> str | None:
    """Wrap *statement* in ``<speak>`` unless it already starts with it.

    Only ``&`` is escaped. Statements commonly carry inline SSML tags, so
    ``<`` and ``>`` must reach the platform untouched.
    """
    if not statement:
        return None
    if statement.startswith(SPEAK_OPEN):
        return statement
    statement = statement.replace("&", "&amp;")
    return f"{SPEAK_OPEN}{statement}{SPEAK_CLOSE}"
