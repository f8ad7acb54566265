from enum import Enum

from pydantic import BaseModel, Field

from stylecheck.models.evaluation import PairEvaluation
from stylecheck.models.item import Item
from stylecheck.models.trust_filter import MatchAction


class FinalTier(str, Enum):
    HIGH = "HIGH"
    NEAR = "NEAR"
    HIDDEN = "HIDDEN"


class MatchEntry(BaseModel):
    evaluation: PairEvaluation
    item: Item


class FinalizedMeta(BaseModel):
    tf_demoted_count: int = 0
    tf_hidden_count: int = 0
    ai_demoted_count: int = 0
    ai_hidden_count: int = 0
    ai_dry_run: bool = False
    tf_applied: bool = False
    violations: list[str] = Field(default_factory=list)


class FinalizedMatches(BaseModel):
    """Terminal structure handed to outfit assembly."""

    high_final: list[MatchEntry] = Field(default_factory=list)
    near_final: list[MatchEntry] = Field(default_factory=list)
    hidden: list[MatchEntry] = Field(default_factory=list)
    action_by_id: dict[str, MatchAction] = Field(default_factory=dict)
    final_tier_by_id: dict[str, FinalTier] = Field(default_factory=dict)
    meta: FinalizedMeta = Field(default_factory=FinalizedMeta)

    def ids(self, bucket: str) -> list[str]:
        return [entry.item.id for entry in getattr(self, bucket)]
