from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from stylecheck.models.signals import StyleSignals


class Category(str, Enum):
    TOPS = "tops"
    BOTTOMS = "bottoms"
    OUTERWEAR = "outerwear"
    SHOES = "shoes"
    BAGS = "bags"
    ACCESSORIES = "accessories"
    DRESSES = "dresses"
    SKIRTS = "skirts"


class StyleFamily(str, Enum):
    MINIMAL = "minimal"
    CLASSIC = "classic"
    STREET = "street"
    ATHLEISURE = "athleisure"
    ROMANTIC = "romantic"
    EDGY = "edgy"
    BOHO = "boho"
    PREPPY = "preppy"
    FORMAL = "formal"
    UNKNOWN = "unknown"


class Level(str, Enum):
    LOW = "low"
    MED = "med"
    HIGH = "high"


class TextureType(str, Enum):
    SMOOTH = "smooth"
    TEXTURED = "textured"
    SOFT = "soft"
    STRUCTURED = "structured"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class SilhouetteVolume(str, Enum):
    FITTED = "fitted"
    REGULAR = "regular"
    OVERSIZED = "oversized"
    UNKNOWN = "unknown"


class SilhouetteLength(str, Enum):
    SHORT = "short"
    REGULAR = "regular"
    LONG = "long"
    UNKNOWN = "unknown"


class SeasonWeight(str, Enum):
    LIGHT = "light"
    MID = "mid"
    HEAVY = "heavy"


class ColorProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_neutral: bool
    dominant_hue: float | None = Field(default=None, ge=0, le=360)  # omitted for neutrals
    saturation: Level = Level.MED
    value: Level = Level.MED


class SilhouetteProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    volume: SilhouetteVolume = SilhouetteVolume.UNKNOWN
    length: SilhouetteLength = SilhouetteLength.UNKNOWN


class Item(BaseModel):
    """
    A target or candidate garment as produced by the capture subsystem.
    Any attribute left out is treated as unknown by the scoring engine.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    category: Category
    color_profile: ColorProfile | None = None
    style_family: StyleFamily = StyleFamily.UNKNOWN
    formality_level: int | None = Field(default=None, ge=1, le=5)
    texture_type: TextureType = TextureType.UNKNOWN
    silhouette_profile: SilhouetteProfile | None = None
    season_weight: SeasonWeight | None = None
    image_uri: str | None = None
    label: str | None = None
    style_signals: StyleSignals | None = None
