import asyncio
import base64
import json
from enum import Enum
from pathlib import Path

import httpx
from google.genai import errors as genai_errors
from loguru import logger
from pydantic import BaseModel, ConfigDict

from stylecheck.core.config import settings
from stylecheck.models.item import Item
from stylecheck.models.signals import StyleSignals
from stylecheck.services.gemini import GeminiNotConfiguredError, GeminiService, strip_markdown_fences
from stylecheck.services.signals.image import InvalidImageError, PayloadTooLargeError, prepare_image_payload

STYLE_SIGNALS_PROMPT = """You label a single clothing item from its photo.
Respond with one JSON object only: no markdown fences, no commentary.

Shape (every key required):
{
  "version": 1,
  "aesthetic": {"primary": "<archetype>", "primary_confidence": 0.0,
                "secondary": "<archetype or none>", "secondary_confidence": 0.0},
  "formality": {"band": "<band>", "confidence": 0.0},
  "statement": {"level": "<low|medium|high>", "confidence": 0.0},
  "season": {"heaviness": "<light|mid|heavy>", "confidence": 0.0},
  "palette": {"colors": ["<color>"], "confidence": 0.0},
  "pattern": {"level": "<solid|subtle|bold>", "confidence": 0.0},
  "material": {"family": "<family>", "confidence": 0.0}
}

Archetypes: minimalist, classic, workwear, romantic, boho, western, street,
sporty, edgy, glam, preppy, outdoor_utility. Use "none" as the secondary
when the piece reads as a single aesthetic.

Formality bands: athleisure, casual, smart_casual, office, dressy, formal,
evening.

Palette: two to four dominant colors from black, white, cream, gray, brown,
tan, beige, navy, denim_blue, blue, red, pink, green, olive, yellow, orange,
purple, metallic, multicolor.

Material families: denim, knit, leather, silk_satin, cotton, wool,
synthetic_tech, other.

Confidences are numbers between 0 and 1. Use "unknown" for any facet you
cannot judge from the photo."""

MAX_MALFORMED_RETRIES = 1


class SignalErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    MALFORMED = "malformed"
    NETWORK = "network"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    NOT_CONFIGURED = "not_configured"


class SignalSource(str, Enum):
    ITEM = "item"
    CACHE = "cache"
    STORE = "store"
    GENERATED = "generated"


class SignalError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: SignalErrorKind
    message: str


class SignalResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    signals: StyleSignals | None = None
    source: SignalSource | None = None
    error: SignalError | None = None

    @property
    def ok(self) -> bool:
        return self.signals is not None

    @classmethod
    def failed(cls, item_id: str, kind: SignalErrorKind, message: str) -> "SignalResult":
        return cls(item_id=item_id, error=SignalError(kind=kind, message=message))


class SignalGenerator:
    """Produces style signals for an item photo with a hosted model."""

    def __init__(
        self,
        gemini: GeminiService | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = settings.SIGNAL_GENERATION_TIMEOUT_SECONDS,
    ) -> None:
        self.gemini = gemini or GeminiService(model=settings.SIGNALS_GEMINI_MODEL)
        self._http_client = http_client
        self.timeout_seconds = timeout_seconds

    async def _http(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=10.0, follow_redirects=True)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def load_image(self, uri: str) -> bytes:
        """Read image bytes from an http(s) URL, a base64 data URI or a local path."""
        if uri.startswith(("http://", "https://")):
            client = await self._http()
            response = await client.get(uri)
            response.raise_for_status()
            return response.content
        if uri.startswith("data:"):
            _, _, encoded = uri.partition(",")
            return base64.b64decode(encoded)
        return await asyncio.to_thread(Path(uri.removeprefix("file://")).read_bytes)

    async def generate(self, item: Item) -> SignalResult:
        if not self.gemini.is_configured:
            return SignalResult.failed(item.id, SignalErrorKind.NOT_CONFIGURED, "Signal generator is not configured")
        if not item.image_uri:
            return SignalResult.failed(item.id, SignalErrorKind.MALFORMED, "Item has no image to analyse")

        try:
            raw = await self.load_image(item.image_uri)
        except httpx.HTTPError as exc:
            return SignalResult.failed(item.id, SignalErrorKind.NETWORK, f"Failed to fetch image: {exc}")
        except (OSError, ValueError) as exc:
            return SignalResult.failed(item.id, SignalErrorKind.MALFORMED, f"Failed to read image: {exc}")

        try:
            prepared = await asyncio.to_thread(prepare_image_payload, raw)
        except PayloadTooLargeError as exc:
            return SignalResult.failed(item.id, SignalErrorKind.PAYLOAD_TOO_LARGE, str(exc))
        except InvalidImageError as exc:
            return SignalResult.failed(item.id, SignalErrorKind.MALFORMED, str(exc))

        contents = [self.gemini.image_part(prepared.data, prepared.mime_type), STYLE_SIGNALS_PROMPT]
        attempt = 0
        while True:
            try:
                text = await self.gemini.generate_content_async(contents, timeout=self.timeout_seconds)
                return SignalResult(
                    item_id=item.id, signals=parse_signals(text), source=SignalSource.GENERATED
                )
            except ValueError as exc:
                attempt += 1
                logger.warning(f"Malformed signals for {item.id} (attempt {attempt}): {exc}")
                if attempt > MAX_MALFORMED_RETRIES:
                    return SignalResult.failed(item.id, SignalErrorKind.MALFORMED, "Unparseable model response")
            except asyncio.TimeoutError:
                return SignalResult.failed(
                    item.id, SignalErrorKind.TIMEOUT, f"No response within {self.timeout_seconds}s"
                )
            except GeminiNotConfiguredError as exc:
                return SignalResult.failed(item.id, SignalErrorKind.NOT_CONFIGURED, str(exc))
            except genai_errors.APIError as exc:
                if exc.code == 429:
                    return SignalResult.failed(item.id, SignalErrorKind.RATE_LIMITED, "Model rate limit reached")
                return SignalResult.failed(item.id, SignalErrorKind.NETWORK, f"Model API error {exc.code}")
            except (httpx.HTTPError, OSError) as exc:
                return SignalResult.failed(item.id, SignalErrorKind.NETWORK, str(exc))


def parse_signals(text: str) -> StyleSignals:
    """Parse model output into normalized signals. Raises ValueError on anything but a JSON object."""
    if not text:
        raise ValueError("Empty model response")
    data = json.loads(strip_markdown_fences(text))
    if not isinstance(data, dict):
        raise ValueError("Model response is not a JSON object")
    return StyleSignals.from_raw(data)
