"""Cross-directive invariants checked after every directive-list change."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from voxreply.directives.types import (
    DIRECTIVE_AUDIO_PLAY,
    DIRECTIVE_HINT,
    DIRECTIVE_RENDER_TEMPLATE,
    DIRECTIVE_VIDEO_LAUNCH,
    directive_type,
)
from voxreply.errors import (
    ConflictingMediaDirectives,
    DirectiveValidationError,
    TooManyHintDirectives,
    TooManyTemplateDirectives,
)
from voxreply.logging import get_logger

logger = get_logger(__name__)


def _check(directives: Sequence[Mapping[str, Any]]) -> DirectiveValidationError | None:
    types = [directive_type(d) for d in directives]
    if types.count(DIRECTIVE_RENDER_TEMPLATE) > 1:
        return TooManyTemplateDirectives(
            f"At most one {DIRECTIVE_RENDER_TEMPLATE} directive can be specified in a response",
            types=[DIRECTIVE_RENDER_TEMPLATE],
        )
    if types.count(DIRECTIVE_HINT) > 1:
        return TooManyHintDirectives(
            f"At most one {DIRECTIVE_HINT} directive can be specified in a response",
            types=[DIRECTIVE_HINT],
        )
    if DIRECTIVE_AUDIO_PLAY in types and DIRECTIVE_VIDEO_LAUNCH in types:
        return ConflictingMediaDirectives(
            f"Do not include both an {DIRECTIVE_AUDIO_PLAY} directive and a "
            f"{DIRECTIVE_VIDEO_LAUNCH} directive in the same response",
            types=[DIRECTIVE_AUDIO_PLAY, DIRECTIVE_VIDEO_LAUNCH],
        )
    return None


def validate_directives(directives: Sequence[Mapping[str, Any]]) -> None:
    """Raise a ``DirectiveValidationError`` if *directives* break a platform invariant."""
    error = _check(directives)
    if error is None:
        return
    logger.warning(
        "directive_validation_failed",
        error_code=error.code,
        directive_types=list(error.types),
        directive_count=len(directives),
    )
    raise error
