# aravalli/gemini_client.py
import json
from typing import Any, Optional

import google.generativeai as genai

from . import config
from .errors import ExternalServiceError
from .log import get_logger

logger = get_logger(__name__)

MISSING_KEY_MESSAGE = "Gemini API key is missing."


def parse_json_text(text: Optional[str]) -> Any:
    """Parse model output as JSON, tolerating ```json fences. None if it is not JSON."""
    if not text:
        return None
    # Gemini sometimes wraps JSON in ```json ... ```
    cleaned = text.strip().replace("```json", "").replace("```", "").strip()
    try:
        return json.loads(cleaned)
    except ValueError:
        logger.warning("Model returned non-JSON output (%d chars)", len(cleaned))
        return None


class GeminiClient:
    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.api_key = api_key
        self.model_name = model_name or config.GEMINI_MODEL
        self.timeout = timeout if timeout is not None else config.LLM_TIMEOUT_SECONDS
        if api_key:
            genai.configure(api_key=api_key)
            logger.info("Gemini configured with model %s", self.model_name)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _model(self, system_instruction: Optional[str] = None):
        if not self.configured:
            raise ExternalServiceError(MISSING_KEY_MESSAGE)
        return genai.GenerativeModel(self.model_name, system_instruction=system_instruction)

    async def _generate(self, contents, system_instruction: Optional[str] = None,
                        json_mode: bool = False) -> str:
        model = self._model(system_instruction)
        generation_config = None
        if json_mode:
            generation_config = genai.GenerationConfig(response_mime_type="application/json")
        try:
            response = await model.generate_content_async(
                contents,
                generation_config=generation_config,
                request_options={"timeout": self.timeout},
            )
            return response.text or ""
        except Exception as e:
            logger.error("Gemini call failed: %s", e)
            raise ExternalServiceError(f"AI service error: {e}") from e

    async def generate_text(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        return await self._generate(prompt, system_instruction=system_instruction)

    async def generate_json(self, prompt: str) -> Any:
        text = await self._generate(prompt, json_mode=True)
        return parse_json_text(text)

    async def describe_image(self, image_bytes: bytes, mime_type: str, prompt: str) -> str:
        image_part = {"mime_type": mime_type, "data": image_bytes}
        return await self._generate([image_part, prompt])


def build_default_client() -> GeminiClient:
    return GeminiClient(api_key=config.GOOGLE_API_KEY)
