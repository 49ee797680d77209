# reconciler/routers/reconcile.py

"""
Reconciliation routes.

Runs the matching engine over two row sets supplied by the caller. Nothing
is persisted here; the caller stores the result against its own run id.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from reconciler.config import Settings, get_settings
from reconciler.core.matching import run_matching
from reconciler.dependencies import get_semantic_matcher
from reconciler.integrations import SemanticMatcher
from reconciler.models import MatchingResult, MatchingRules, SourceConfig

router = APIRouter()


class ReconcileRequest(BaseModel):
    source_a_rows: list[dict] = Field(default_factory=list)
    source_b_rows: list[dict] = Field(default_factory=list)
    source_a_config: SourceConfig
    source_b_config: SourceConfig
    matching_rules: MatchingRules = Field(default_factory=MatchingRules)
    deterministic_only: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ============================================
# Main Reconciliation Endpoint
# ============================================

@router.post("/reconcile", response_model=MatchingResult)
async def run_reconciliation(
    request: ReconcileRequest,
    matcher: SemanticMatcher = Depends(get_semantic_matcher),
    settings: Settings = Depends(get_settings),
):
    """
    Reconcile two row sets.

    1. Deterministic scoring and greedy assignment
    2. AI fuzzy matching (if the rules enable it)
    3. Exception classification of the leftovers
    """
    rules = request.matching_rules
    if request.deterministic_only:
        rules = rules.deterministic()

    return await run_matching(
        request.source_a_rows,
        request.source_b_rows,
        request.source_a_config,
        request.source_b_config,
        rules,
        semantic_matcher=matcher,
        settings=settings,
    )
