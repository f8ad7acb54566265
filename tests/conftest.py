"""
Shared fixtures for the stylecheck test suite.

Provides:
1. In-memory stand-ins for RedisService, GeminiService and SignalGenerator
2. Factories for items, style signals and pair evaluations
3. A tiny real image for the payload guard and generator tests
"""

import asyncio
import base64
import io
import json
from typing import Any

import pytest
from PIL import Image

from stylecheck.models.evaluation import ConfidenceTier, PairEvaluation
from stylecheck.models.item import Category, ColorProfile, Item, StyleFamily, TextureType
from stylecheck.models.signals import (
    AestheticSignal,
    Archetype,
    FormalityBand,
    FormalitySignal,
    MaterialFamily,
    MaterialSignal,
    PaletteColor,
    PaletteSignal,
    PatternLevel,
    PatternSignal,
    SeasonHeaviness,
    SeasonSignal,
    StatementLevel,
    StatementSignal,
    StyleSignals,
)
from stylecheck.services.signals.generator import SignalErrorKind, SignalResult, SignalSource

# =============================================================================
# Fakes
# =============================================================================


class FakeRedisService:
    """Dict-backed RedisService. With ``available=False`` every call behaves like a Redis outage."""

    def __init__(self, available: bool = True):
        self.available = available
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        if not self.available:
            return False
        self.data[key] = str(value)
        self.ttls[key] = ttl
        return True

    async def get(self, key: str) -> str | None:
        if not self.available:
            return None
        return self.data.get(key)

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        return json.loads(raw) if raw else None

    async def incr(self, key: str, ttl: int | None = None) -> int | None:
        if not self.available:
            return None
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        if value == 1:
            self.ttls[key] = ttl
        return value

    async def close(self) -> None:
        pass


class FakeGemini:
    """
    GeminiService stand-in. ``responses`` are consumed in order; an exception
    instance is raised instead of returned. The last response repeats.
    """

    def __init__(self, responses: list[Any] | None = None, configured: bool = True, model: str = "fake-model"):
        self.responses = list(responses or [])
        self.configured = configured
        self.model = model
        self.calls: list[dict[str, Any]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    @staticmethod
    def image_part(data: bytes, mime_type: str = "image/jpeg") -> tuple[str, int]:
        return mime_type, len(data)

    async def generate_content_async(self, contents, system_prompt=None, timeout=None) -> str:
        self.calls.append({"contents": contents, "system_prompt": system_prompt, "timeout": timeout})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


class FakeSignalGenerator:
    """
    SignalGenerator stand-in keyed by item id. Unknown ids fail as malformed.
    When ``gate`` is set, every call waits on it first.
    """

    def __init__(self, signals_by_id: dict[str, StyleSignals] | None = None, gate: asyncio.Event | None = None):
        self.signals_by_id = signals_by_id or {}
        self.gate = gate
        self.calls: list[str] = []

    async def generate(self, item: Item) -> SignalResult:
        self.calls.append(item.id)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        signals = self.signals_by_id.get(item.id)
        if signals is None:
            return SignalResult.failed(item.id, SignalErrorKind.MALFORMED, "no signals for this item")
        return SignalResult(item_id=item.id, signals=signals, source=SignalSource.GENERATED)

    async def close(self) -> None:
        pass


# =============================================================================
# Factories
# =============================================================================

NEUTRAL = ColorProfile(is_neutral=True)


def build_signals(
    primary: str = "classic",
    primary_confidence: float = 0.9,
    secondary: str = "none",
    secondary_confidence: float = 0.0,
    formality: str = "office",
    formality_confidence: float = 0.9,
    statement: str = "low",
    statement_confidence: float = 0.9,
    season: str = "mid",
    season_confidence: float = 0.9,
    pattern: str = "solid",
    pattern_confidence: float = 0.9,
    material: str = "cotton",
    palette: tuple[str, ...] = ("navy",),
) -> StyleSignals:
    return StyleSignals(
        aesthetic=AestheticSignal(
            primary=Archetype(primary),
            primary_confidence=primary_confidence,
            secondary=Archetype(secondary),
            secondary_confidence=secondary_confidence,
        ),
        formality=FormalitySignal(band=FormalityBand(formality), confidence=formality_confidence),
        statement=StatementSignal(level=StatementLevel(statement), confidence=statement_confidence),
        season=SeasonSignal(heaviness=SeasonHeaviness(season), confidence=season_confidence),
        palette=PaletteSignal(colors=tuple(PaletteColor(c) for c in palette), confidence=0.9),
        pattern=PatternSignal(level=PatternLevel(pattern), confidence=pattern_confidence),
        material=MaterialSignal(family=MaterialFamily(material), confidence=0.9),
    )


def build_item(
    item_id: str,
    category: Category = Category.BOTTOMS,
    style_family: StyleFamily = StyleFamily.CLASSIC,
    formality_level: int | None = 3,
    texture_type: TextureType = TextureType.TEXTURED,
    color_profile: ColorProfile | None = NEUTRAL,
    **kwargs,
) -> Item:
    """Defaults describe a neutral classic piece that scores HIGH against the ``target_item`` top."""
    return Item(
        id=item_id,
        category=category,
        color_profile=color_profile,
        style_family=style_family,
        formality_level=formality_level,
        texture_type=texture_type,
        **kwargs,
    )


def build_evaluation(
    item_id: str,
    tier: ConfidenceTier = ConfidenceTier.HIGH,
    raw_score: float = 0.9,
    target_id: str = "target",
    pair_type: str = "tops_bottoms",
) -> PairEvaluation:
    return PairEvaluation(
        item_a_id=target_id,
        item_b_id=item_id,
        pair_type=pair_type,
        raw_score=raw_score,
        confidence_tier=tier,
        high_threshold_used=0.78,
    )


@pytest.fixture
def make_signals():
    return build_signals


@pytest.fixture
def make_item():
    return build_item


@pytest.fixture
def make_evaluation():
    return build_evaluation


@pytest.fixture
def target_item() -> Item:
    """Neutral classic top; pairs HIGH with the default ``make_item`` bottom."""
    return build_item("target", category=Category.TOPS, texture_type=TextureType.SMOOTH)


@pytest.fixture
def fake_redis() -> FakeRedisService:
    return FakeRedisService()


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (64, 48), (20, 30, 90)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_data_uri(png_bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode()


@pytest.fixture
def make_redis():
    return FakeRedisService


@pytest.fixture
def make_gemini():
    return FakeGemini


@pytest.fixture
def make_generator():
    return FakeSignalGenerator
