from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from stylecheck.core.constants import STYLE_SIGNALS_VERSION

SECONDARY_MIN_CONFIDENCE = 0.35
MAX_PALETTE_COLORS = 4


class Archetype(str, Enum):
    MINIMALIST = "minimalist"
    CLASSIC = "classic"
    WORKWEAR = "workwear"
    ROMANTIC = "romantic"
    BOHO = "boho"
    WESTERN = "western"
    STREET = "street"
    SPORTY = "sporty"
    EDGY = "edgy"
    GLAM = "glam"
    PREPPY = "preppy"
    OUTDOOR_UTILITY = "outdoor_utility"
    UNKNOWN = "unknown"
    NONE = "none"


class FormalityBand(str, Enum):
    ATHLEISURE = "athleisure"
    CASUAL = "casual"
    SMART_CASUAL = "smart_casual"
    OFFICE = "office"
    DRESSY = "dressy"
    FORMAL = "formal"
    EVENING = "evening"
    UNKNOWN = "unknown"


class StatementLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class SeasonHeaviness(str, Enum):
    LIGHT = "light"
    MID = "mid"
    HEAVY = "heavy"
    UNKNOWN = "unknown"


class PatternLevel(str, Enum):
    SOLID = "solid"
    SUBTLE = "subtle"
    BOLD = "bold"
    UNKNOWN = "unknown"


class MaterialFamily(str, Enum):
    DENIM = "denim"
    KNIT = "knit"
    LEATHER = "leather"
    SILK_SATIN = "silk_satin"
    COTTON = "cotton"
    WOOL = "wool"
    SYNTHETIC_TECH = "synthetic_tech"
    OTHER = "other"
    UNKNOWN = "unknown"


class PaletteColor(str, Enum):
    BLACK = "black"
    WHITE = "white"
    CREAM = "cream"
    GRAY = "gray"
    BROWN = "brown"
    TAN = "tan"
    BEIGE = "beige"
    NAVY = "navy"
    DENIM_BLUE = "denim_blue"
    BLUE = "blue"
    RED = "red"
    PINK = "pink"
    GREEN = "green"
    OLIVE = "olive"
    YELLOW = "yellow"
    ORANGE = "orange"
    PURPLE = "purple"
    METALLIC = "metallic"
    MULTICOLOR = "multicolor"
    UNKNOWN = "unknown"


ConfidenceScore = Annotated[float, Field(ge=0.0, le=1.0)]


class AestheticSignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: Archetype = Archetype.UNKNOWN
    primary_confidence: ConfidenceScore = 0.0
    secondary: Archetype = Archetype.NONE
    secondary_confidence: ConfidenceScore = 0.0


class FormalitySignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    band: FormalityBand = FormalityBand.UNKNOWN
    confidence: ConfidenceScore = 0.0


class StatementSignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: StatementLevel = StatementLevel.UNKNOWN
    confidence: ConfidenceScore = 0.0


class SeasonSignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    heaviness: SeasonHeaviness = SeasonHeaviness.UNKNOWN
    confidence: ConfidenceScore = 0.0


class PaletteSignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    colors: tuple[PaletteColor, ...] = (PaletteColor.UNKNOWN,)
    confidence: ConfidenceScore = 0.0


class PatternSignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: PatternLevel = PatternLevel.UNKNOWN
    confidence: ConfidenceScore = 0.0


class MaterialSignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    family: MaterialFamily = MaterialFamily.UNKNOWN
    confidence: ConfidenceScore = 0.0


class StyleSignals(BaseModel):
    """
    Categorical style fingerprint of a single item.

    Every facet carries a categorical value plus a confidence in [0, 1].
    Records are immutable; a refetch replaces the whole record.
    """

    model_config = ConfigDict(frozen=True)

    version: int = STYLE_SIGNALS_VERSION
    aesthetic: AestheticSignal = Field(default_factory=AestheticSignal)
    formality: FormalitySignal = Field(default_factory=FormalitySignal)
    statement: StatementSignal = Field(default_factory=StatementSignal)
    season: SeasonSignal = Field(default_factory=SeasonSignal)
    palette: PaletteSignal = Field(default_factory=PaletteSignal)
    pattern: PatternSignal = Field(default_factory=PatternSignal)
    material: MaterialSignal = Field(default_factory=MaterialSignal)

    @classmethod
    def from_raw(cls, raw: Any) -> "StyleSignals":
        """Build a record from loosely-typed generator output.

        Unknown enum values fall back to ``unknown`` (``none`` for the secondary
        archetype), confidences are clamped to [0, 1] and the palette keeps at
        most four recognised colors. Never raises for bad values; a non-dict
        input yields an all-unknown record.
        """
        data = raw if isinstance(raw, dict) else {}

        aesthetic = _section(data, "aesthetic")
        primary = _coerce(Archetype, aesthetic.get("primary"), Archetype.UNKNOWN)
        if primary is Archetype.NONE:
            primary = Archetype.UNKNOWN
        secondary = _coerce(Archetype, aesthetic.get("secondary"), Archetype.NONE)
        secondary_confidence = _clamp(aesthetic.get("secondary_confidence"))
        if secondary is Archetype.UNKNOWN or secondary == primary or secondary_confidence < SECONDARY_MIN_CONFIDENCE:
            secondary, secondary_confidence = Archetype.NONE, 0.0

        formality = _section(data, "formality")
        statement = _section(data, "statement")
        season = _section(data, "season")
        palette = _section(data, "palette")
        pattern = _section(data, "pattern")
        material = _section(data, "material")

        return cls(
            aesthetic=AestheticSignal(
                primary=primary,
                primary_confidence=_clamp(aesthetic.get("primary_confidence")),
                secondary=secondary,
                secondary_confidence=secondary_confidence,
            ),
            formality=FormalitySignal(
                band=_coerce(FormalityBand, formality.get("band"), FormalityBand.UNKNOWN),
                confidence=_clamp(formality.get("confidence")),
            ),
            statement=StatementSignal(
                level=_coerce(StatementLevel, statement.get("level"), StatementLevel.UNKNOWN),
                confidence=_clamp(statement.get("confidence")),
            ),
            season=SeasonSignal(
                heaviness=_coerce(SeasonHeaviness, season.get("heaviness"), SeasonHeaviness.UNKNOWN),
                confidence=_clamp(season.get("confidence")),
            ),
            palette=PaletteSignal(
                colors=_normalize_colors(palette.get("colors")),
                confidence=_clamp(palette.get("confidence")),
            ),
            pattern=PatternSignal(
                level=_coerce(PatternLevel, pattern.get("level"), PatternLevel.UNKNOWN),
                confidence=_clamp(pattern.get("confidence")),
            ),
            material=MaterialSignal(
                family=_coerce(MaterialFamily, material.get("family"), MaterialFamily.UNKNOWN),
                confidence=_clamp(material.get("confidence")),
            ),
        )


def _section(data: dict, key: str) -> dict:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _coerce(enum_cls: type[Enum], value: Any, default: Enum):
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        return default


def _clamp(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        return 0.0
    return max(0.0, min(1.0, float(value)))


def _normalize_colors(colors: Any) -> tuple[PaletteColor, ...]:
    if not isinstance(colors, list):
        return (PaletteColor.UNKNOWN,)
    valid: list[PaletteColor] = []
    for color in colors:
        coerced = _coerce(PaletteColor, color, None)
        if coerced is not None and coerced is not PaletteColor.UNKNOWN and coerced not in valid:
            valid.append(coerced)
    return tuple(valid[:MAX_PALETTE_COLORS]) or (PaletteColor.UNKNOWN,)
