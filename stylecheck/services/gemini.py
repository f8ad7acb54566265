import asyncio
from typing import Any

from google import genai
from google.genai import types
from loguru import logger

from stylecheck.core.config import settings


class GeminiNotConfiguredError(RuntimeError):
    pass


class GeminiService:
    """
    Minimal wrapper over the google-genai client.

    Unlike most services here, failures propagate to the caller: the signal
    generator and the safety-check service each map them to their own typed
    fallbacks.
    """

    def __init__(self, model: str, api_key: str | None = None):
        self.model = model
        self.client = None
        if api_key := api_key or settings.GEMINI_API_KEY:
            try:
                self.client = genai.Client(api_key=api_key)
            except Exception as e:
                logger.warning(f"Failed to initialize Gemini client: {e}")
        else:
            logger.warning("GEMINI_API_KEY not set. Gemini features will be disabled.")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    @staticmethod
    def image_part(data: bytes, mime_type: str = "image/jpeg") -> types.Part:
        return types.Part.from_bytes(data=data, mime_type=mime_type)

    def generate_content(self, contents: list[Any], system_prompt: str | None = None) -> str:
        if not self.client:
            raise GeminiNotConfiguredError("Gemini client not initialized")
        config = types.GenerateContentConfig(system_instruction=system_prompt) if system_prompt else None
        response = self.client.models.generate_content(model=self.model, contents=contents, config=config)
        return (response.text or "").strip()

    async def generate_content_async(
        self, contents: list[Any], system_prompt: str | None = None, timeout: float | None = None
    ) -> str:
        """Async wrapper to avoid blocking the event loop during network calls."""
        loop = asyncio.get_running_loop()
        call = loop.run_in_executor(None, lambda: self.generate_content(contents, system_prompt))
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout)


def strip_markdown_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper some models add around JSON output."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()
