"""Final session-continuation decision for a reply."""

from __future__ import annotations

from typing import TYPE_CHECKING

from voxreply.directives.types import DIRECTIVE_VIDEO_LAUNCH

if TYPE_CHECKING:
    from voxreply.reply.accumulator import Reply


def resolve_should_end_session(reply: Reply) -> bool | None:
    """Return the ``shouldEndSession`` value, or None when it must be omitted.

    Video playback controls its own session lifecycle, so the flag is left
    out whenever a video launch directive is present.
    """
    if reply.has_directive(DIRECTIVE_VIDEO_LAUNCH):
        return None
    return bool(reply.terminate)
