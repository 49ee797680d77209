# reconciler/dependencies.py

"""
Semantic matcher dependency for FastAPI.

Resolves the reasoning service once per request so that missing
credentials fail the request before any matching starts.
"""

from fastapi import Depends, HTTPException, status

from reconciler.config import Settings, get_settings
from reconciler.integrations import (
    ClaudeSemanticMatcher,
    SemanticMatcher,
    SemanticServiceUnavailable,
)


def get_semantic_matcher(settings: Settings = Depends(get_settings)) -> SemanticMatcher:
    """Build the Claude-backed matcher or answer 503."""
    try:
        return ClaudeSemanticMatcher(settings=settings)
    except SemanticServiceUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Semantic reasoning service unavailable: {e}",
        )
