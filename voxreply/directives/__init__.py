"""Directive classification, normalization and validation."""

from voxreply.directives.normalizer import DirectiveNormalizer
from voxreply.directives.types import DirectiveDescriptor, classify_directive
from voxreply.directives.validator import validate_directives

__all__ = ["DirectiveDescriptor", "DirectiveNormalizer", "classify_directive", "validate_directives"]
