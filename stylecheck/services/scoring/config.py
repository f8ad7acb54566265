from pydantic import BaseModel, Field

from stylecheck.core.config import settings


class ScoringConfig(BaseModel):
    """Tunable thresholds for tier assignment. Defaults come from settings."""

    high_threshold: float = 0.78
    high_threshold_shoes: float = 0.82
    medium_threshold: float = 0.58
    high_threshold_overrides: dict[str, float] = Field(default_factory=dict)
    silhouette_enabled: bool = False
    explanations_enabled: bool = True
    explanations_allow_shoes: bool = False

    @classmethod
    def from_settings(cls) -> "ScoringConfig":
        return cls(
            high_threshold=settings.SCORE_HIGH_THRESHOLD,
            high_threshold_shoes=settings.SCORE_HIGH_THRESHOLD_SHOES,
            medium_threshold=settings.SCORE_MEDIUM_THRESHOLD,
            high_threshold_overrides=dict(settings.SCORE_HIGH_THRESHOLD_OVERRIDES),
            silhouette_enabled=settings.SILHOUETTE_ENABLED,
            explanations_enabled=settings.EXPLANATIONS_ENABLED,
            explanations_allow_shoes=settings.EXPLANATIONS_ALLOW_SHOES,
        )

    def high_threshold_for(self, pair_type: str | None, is_shoes: bool) -> float:
        if pair_type and pair_type in self.high_threshold_overrides:
            return self.high_threshold_overrides[pair_type]
        return self.high_threshold_shoes if is_shoes else self.high_threshold
