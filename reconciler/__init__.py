# reconciler/__init__.py

from reconciler.core.matching import run_matching
from reconciler.models import MatchingResult, MatchingRules, SourceConfig, ColumnDef

__all__ = ["run_matching", "MatchingResult", "MatchingRules", "SourceConfig", "ColumnDef"]
