"""
Gemini Provider — Google Gemini API implementation.

Uses the google.genai SDK. Client is lazily initialized, so the app
loads without an API key and only fails on an actual classifier call.

One request per call: no retries, no fallback model. A failure is
raised to the analyzer, which turns it into an error value.
"""

from __future__ import annotations

from typing import Optional

from google import genai
from google.genai import types

from spanlens.config import settings
from spanlens.llm import LLMProvider
from spanlens.logging import get_logger

logger = get_logger("llm.gemini")


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self._api_key = api_key or settings.GEMINI_API_KEY
        self._model = model or settings.GEMINI_MODEL
        self._client: Optional[genai.Client] = None

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise RuntimeError(
                    "GEMINI_API_KEY not set. Get one from "
                    "https://aistudio.google.com/apikey"
                )
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> str:
        config = types.GenerateContentConfig(
            temperature=temperature,
            system_instruction=system_instruction,
        )
        if json_mode:
            config.response_mime_type = "application/json"

        client = self._get_client()
        response = await client.aio.models.generate_content(
            model=self._model,
            contents=prompt,
            config=config,
        )
        logger.debug("Gemini response received (%s)", self._model)
        return response.text or ""
