"""
Facet comparisons for a single pair of items.

Each facet yields an integer in -2..+2 plus a ``known`` flag. Unknown facets
carry no weight in the final score.
"""

import math

from stylecheck.models.evaluation import UNKNOWN_FEATURE, FeatureResult, FeatureSignals
from stylecheck.models.item import ColorProfile, Item, Level, SilhouetteVolume, StyleFamily, TextureType
from stylecheck.services.scoring.constants import (
    FORMALITY_DIFF_FLOOR,
    FORMALITY_DIFF_SCORES,
    HUE_DISTANCE_BANDS,
    HUE_DISTANCE_FALLBACK,
    STYLE_ADJACENCY,
    USAGE_FORMALITY_ONLY_WEIGHT,
    USAGE_FORMALITY_WEIGHT,
    USAGE_STYLE_WEIGHT,
)

_VALUE_RANK = {Level.LOW: 1, Level.MED: 2, Level.HIGH: 3}
_COMPLEMENTARY_TEXTURES = (
    frozenset({TextureType.SMOOTH, TextureType.TEXTURED}),
    frozenset({TextureType.SOFT, TextureType.STRUCTURED}),
)
_HIGH_IMPACT_TEXTURES = frozenset({TextureType.TEXTURED, TextureType.STRUCTURED})


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, so -0.5 -> 0 and 0.5 -> 1."""
    return int(math.floor(value + 0.5))


def clamp_feature(value: int) -> int:
    return max(-2, min(2, value))


def hue_distance(hue_a: float, hue_b: float) -> float:
    diff = abs(hue_a - hue_b)
    return min(diff, 360 - diff)


def color_score(a: ColorProfile, b: ColorProfile) -> int:
    if a.is_neutral and b.is_neutral:
        return 2
    if a.is_neutral or b.is_neutral:
        return 1

    dist = hue_distance(a.dominant_hue or 0.0, b.dominant_hue or 0.0)
    score = HUE_DISTANCE_FALLBACK
    for upper_bound, band_score in HUE_DISTANCE_BANDS:
        if dist <= upper_bound:
            score = band_score
            break

    if a.saturation is Level.HIGH and b.saturation is Level.HIGH:
        score = score + 1 if score > 0 else score - 1
    elif a.saturation is Level.LOW and b.saturation is Level.LOW:
        score = round_half_up(score * 0.5)

    if abs(_VALUE_RANK[a.value] - _VALUE_RANK[b.value]) >= 2:
        score += 1

    return clamp_feature(score)


def style_score(a: StyleFamily, b: StyleFamily) -> int:
    if a is StyleFamily.UNKNOWN or b is StyleFamily.UNKNOWN:
        return 0
    if a is b:
        return 2
    return STYLE_ADJACENCY.get(frozenset((a, b)), 0)


def formality_score(level_a: int, level_b: int) -> int:
    return FORMALITY_DIFF_SCORES.get(abs(level_a - level_b), FORMALITY_DIFF_FLOOR)


def texture_score(a: TextureType, b: TextureType) -> int:
    if a is TextureType.UNKNOWN or b is TextureType.UNKNOWN:
        return 0
    if a is b:
        return 1
    pair = frozenset((a, b))
    if pair in _COMPLEMENTARY_TEXTURES:
        return 2
    if TextureType.MIXED in pair:
        return 1
    if pair <= _HIGH_IMPACT_TEXTURES:
        return -1
    return 0


def usage_score(formality: int, style: int | None) -> int:
    """Blend formality and style alignment; style may be unknown."""
    if style is None:
        return round_half_up(formality * USAGE_FORMALITY_ONLY_WEIGHT)
    return round_half_up(formality * USAGE_FORMALITY_WEIGHT + style * USAGE_STYLE_WEIGHT)


def silhouette_score(a: SilhouetteVolume, b: SilhouetteVolume) -> int:
    if {a, b} == {SilhouetteVolume.FITTED, SilhouetteVolume.OVERSIZED}:
        return 2
    if SilhouetteVolume.REGULAR in (a, b):
        return 1
    return 0


def _color_feature(a: Item, b: Item) -> FeatureResult:
    if a.color_profile is None or b.color_profile is None:
        return UNKNOWN_FEATURE
    for profile in (a.color_profile, b.color_profile):
        if not profile.is_neutral and profile.dominant_hue is None:
            return UNKNOWN_FEATURE
    return FeatureResult(value=color_score(a.color_profile, b.color_profile), known=True)


def _style_feature(a: Item, b: Item) -> FeatureResult:
    if a.style_family is StyleFamily.UNKNOWN or b.style_family is StyleFamily.UNKNOWN:
        return UNKNOWN_FEATURE
    return FeatureResult(value=style_score(a.style_family, b.style_family), known=True)


def _formality_feature(a: Item, b: Item) -> FeatureResult:
    if a.formality_level is None or b.formality_level is None:
        return UNKNOWN_FEATURE
    return FeatureResult(value=formality_score(a.formality_level, b.formality_level), known=True)


def _texture_feature(a: Item, b: Item) -> FeatureResult:
    if a.texture_type is TextureType.UNKNOWN or b.texture_type is TextureType.UNKNOWN:
        return UNKNOWN_FEATURE
    return FeatureResult(value=texture_score(a.texture_type, b.texture_type), known=True)


def _usage_feature(formality: FeatureResult, style: FeatureResult) -> FeatureResult:
    if not formality.known:
        return UNKNOWN_FEATURE
    value = usage_score(formality.value, style.value if style.known else None)
    return FeatureResult(value=clamp_feature(value), known=True)


def _vibe_feature(a: Item, b: Item) -> FeatureResult:
    if a.silhouette_profile is None or b.silhouette_profile is None:
        return UNKNOWN_FEATURE
    vol_a, vol_b = a.silhouette_profile.volume, b.silhouette_profile.volume
    if SilhouetteVolume.UNKNOWN in (vol_a, vol_b):
        return UNKNOWN_FEATURE
    return FeatureResult(value=silhouette_score(vol_a, vol_b), known=True)


def compute_features(a: Item, b: Item, silhouette_enabled: bool = False) -> FeatureSignals:
    formality = _formality_feature(a, b)
    style = _style_feature(a, b)
    return FeatureSignals(
        color=_color_feature(a, b),
        style=style,
        formality=formality,
        texture=_texture_feature(a, b),
        usage=_usage_feature(formality, style),
        vibe=_vibe_feature(a, b) if silhouette_enabled else None,
    )
