# reconciler/models/source.py

from typing import Optional, Literal
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


# ============================================
# Column Schema
# ============================================

ColumnType = Literal["date", "amount", "text", "reference"]


class ColumnDef(BaseModel):
    """One column of a source schema."""

    key: str
    label: str = ""
    type: ColumnType


class SourceConfig(BaseModel):
    """A labelled, ordered column schema for one side of a reconciliation."""

    label: str
    columns: list[ColumnDef] = Field(default_factory=list)

    def columns_of_type(self, column_type: ColumnType) -> list[ColumnDef]:
        return [c for c in self.columns if c.type == column_type]

    def has_column_type(self, column_type: ColumnType) -> bool:
        return any(c.type == column_type for c in self.columns)


# ============================================
# Matching Rules
# ============================================

AmountMatchMode = Literal["exact", "tolerance"]


class ColumnTolerance(BaseModel):
    """Per-column override of the global amount/date tolerance."""

    tolerance: float = Field(ge=0)


class MatchingRules(BaseModel):
    """How strictly two rows must agree to be paired."""

    amount_match: AmountMatchMode = "exact"
    amount_tolerance: Optional[float] = Field(default=None, ge=0)
    date_window_days: int = Field(default=0, ge=0)
    fuzzy_description: bool = False
    column_tolerances: dict[str, ColumnTolerance] = Field(default_factory=dict)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def deterministic(self) -> "MatchingRules":
        """Copy of these rules with the semantic fuzzy pass switched off."""
        return self.model_copy(update={"fuzzy_description": False})
