# reconciler/integrations/__init__.py

from reconciler.integrations.base import (
    SemanticMatcher,
    SemanticServiceError,
    SemanticServiceUnavailable,
)
from reconciler.integrations.claude import ClaudeSemanticMatcher

__all__ = [
    "SemanticMatcher",
    "SemanticServiceError",
    "SemanticServiceUnavailable",
    "ClaudeSemanticMatcher",
]
