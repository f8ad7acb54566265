from typing import Final

from stylecheck.models.item import StyleFamily

# Compatible pair types, keyed by the two category names joined with "_" in either order
VALID_PAIR_TYPES: Final[frozenset[str]] = frozenset(
    {
        "tops_bottoms",
        "tops_shoes",
        "tops_outerwear",
        "bottoms_shoes",
        "bottoms_outerwear",
        "shoes_outerwear",
        "tops_accessories",
        "bottoms_accessories",
        "shoes_accessories",
        "outerwear_accessories",
        "tops_bags",
        "bottoms_bags",
        "dresses_shoes",
        "dresses_outerwear",
        "dresses_accessories",
        "dresses_bags",
        "skirts_tops",
        "skirts_shoes",
        "skirts_outerwear",
    }
)

# Facet weights (sum to 1.0 per vector)
DEFAULT_WEIGHTS: Final[dict[str, float]] = {
    "color": 0.20,
    "style": 0.20,
    "formality": 0.25,
    "texture": 0.15,
    "usage": 0.20,
    "vibe": 0.0,
}

_SHOE_PAIR_WEIGHTS = {"color": 0.15, "style": 0.20, "formality": 0.25, "texture": 0.10, "usage": 0.30, "vibe": 0.0}
_OUTERWEAR_PAIR_WEIGHTS = {"color": 0.15, "style": 0.20, "formality": 0.20, "texture": 0.25, "usage": 0.20, "vibe": 0.0}

PAIR_TYPE_WEIGHTS: Final[dict[str, dict[str, float]]] = {
    "tops_shoes": _SHOE_PAIR_WEIGHTS,
    "bottoms_shoes": _SHOE_PAIR_WEIGHTS,
    "dresses_shoes": _SHOE_PAIR_WEIGHTS,
    "skirts_shoes": _SHOE_PAIR_WEIGHTS,
    "tops_outerwear": _OUTERWEAR_PAIR_WEIGHTS,
    "bottoms_outerwear": _OUTERWEAR_PAIR_WEIGHTS,
    "dresses_outerwear": _OUTERWEAR_PAIR_WEIGHTS,
    "shoes_outerwear": {"color": 0.10, "style": 0.20, "formality": 0.25, "texture": 0.20, "usage": 0.25, "vibe": 0.0},
}

# Score used when no facet is known
NEUTRAL_SCORE: Final[float] = 0.5

# Formality alignment by absolute level difference
FORMALITY_DIFF_SCORES: Final[dict[int, int]] = {0: 2, 1: 1, 2: 0, 3: -1}
FORMALITY_DIFF_FLOOR: Final[int] = -2

# Hue distance bands (upper bound in degrees, score)
HUE_DISTANCE_BANDS: Final[list[tuple[float, int]]] = [
    (30, 2),  # analogous
    (45, -2),  # muddy near-miss
    (90, -1),
    (120, 0),
    (150, 1),
]
HUE_DISTANCE_FALLBACK: Final[int] = 2  # complementary

# Style family adjacency (unordered pairs)
STYLE_ADJACENCY: Final[dict[frozenset[StyleFamily], int]] = {
    frozenset(pair): score
    for score, pairs in (
        (
            2,
            [
                (StyleFamily.MINIMAL, StyleFamily.CLASSIC),
                (StyleFamily.MINIMAL, StyleFamily.PREPPY),
                (StyleFamily.CLASSIC, StyleFamily.PREPPY),
                (StyleFamily.CLASSIC, StyleFamily.ROMANTIC),
                (StyleFamily.STREET, StyleFamily.ATHLEISURE),
                (StyleFamily.STREET, StyleFamily.EDGY),
                (StyleFamily.ROMANTIC, StyleFamily.BOHO),
                (StyleFamily.EDGY, StyleFamily.BOHO),
                (StyleFamily.FORMAL, StyleFamily.CLASSIC),
                (StyleFamily.FORMAL, StyleFamily.MINIMAL),
            ],
        ),
        (
            1,
            [
                (StyleFamily.MINIMAL, StyleFamily.EDGY),
                (StyleFamily.CLASSIC, StyleFamily.BOHO),
                (StyleFamily.PREPPY, StyleFamily.ROMANTIC),
                (StyleFamily.MINIMAL, StyleFamily.ROMANTIC),
            ],
        ),
        (
            -1,
            [
                (StyleFamily.PREPPY, StyleFamily.STREET),
                (StyleFamily.ROMANTIC, StyleFamily.STREET),
                (StyleFamily.FORMAL, StyleFamily.BOHO),
                (StyleFamily.ROMANTIC, StyleFamily.ATHLEISURE),
                (StyleFamily.ATHLEISURE, StyleFamily.MINIMAL),
                (StyleFamily.ATHLEISURE, StyleFamily.CLASSIC),
            ],
        ),
        (
            -2,
            [
                (StyleFamily.FORMAL, StyleFamily.ATHLEISURE),
                (StyleFamily.FORMAL, StyleFamily.STREET),
                (StyleFamily.PREPPY, StyleFamily.EDGY),
            ],
        ),
    )
    for pair in pairs
}

# Families that read as statement pieces on their own
STATEMENT_STYLE_FAMILIES: Final[frozenset[StyleFamily]] = frozenset(
    {StyleFamily.EDGY, StyleFamily.ROMANTIC, StyleFamily.STREET, StyleFamily.BOHO}
)
STATEMENT_FORMALITY_LEVEL: Final[int] = 4

# Usage blend of formality and style
USAGE_FORMALITY_WEIGHT: Final[float] = 0.6
USAGE_STYLE_WEIGHT: Final[float] = 0.4
USAGE_FORMALITY_ONLY_WEIGHT: Final[float] = 0.7

# Explanation rule ids
FORBIDDEN_STATEMENT_STATEMENT: Final[str] = "statement_statement"
FORBIDDEN_SHOES_CONTENTIOUS: Final[str] = "shoes_contentious"
FORBIDDEN_TEXTURE_CLASH: Final[str] = "texture_clash"
FORBIDDEN_STYLE_OPPOSITION: Final[str] = "style_opposition"
FORBIDDEN_FEATURE_DISABLED: Final[str] = "feature_disabled"
FORBIDDEN_CONFIDENCE_TOO_LOW: Final[str] = "confidence_too_low"
