"""
External translation providers.

Every provider exposes `async translate(text, target_language, source_language) -> str`
and is expected to be unreliable; callers isolate each call.
"""

import logging
from typing import Optional, Protocol

import httpx
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from sitecfg.core.config import Settings, settings as app_settings
from sitecfg.core.errors import TranslationProviderError

logger = logging.getLogger("sitecfg.translation")


class TranslationProvider(Protocol):
    async def translate(self, text: str, target_language: str, source_language: str) -> str: ...


def get_httpx_timeout() -> httpx.Timeout:
    return httpx.Timeout(30.0, connect=10.0)


class GoogleTranslateProvider:
    """Google Cloud Translation v2 REST API."""

    def __init__(self, api_key: str, url: str, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.url = url
        self._client = client

    async def translate(self, text: str, target_language: str, source_language: str) -> str:
        payload = {"q": text, "target": target_language, "source": source_language, "format": "text"}
        client = self._client or httpx.AsyncClient(timeout=get_httpx_timeout())
        try:
            response = await client.post(self.url, params={"key": self.api_key}, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise TranslationProviderError(target_language, f"Google Translate request failed: {e}") from e
        finally:
            if self._client is None:
                await client.aclose()

        translations = data.get("data", {}).get("translations") or []
        if not translations or "translatedText" not in translations[0]:
            raise TranslationProviderError(target_language, "Google Translate returned no translation")
        return translations[0]["translatedText"]


class LLMTranslationProvider:
    """OpenAI-compatible chat model used as a translator."""

    SYSTEM_PROMPT = (
        "You are a professional website translator. Translate the user's text from {source} to {target}. "
        "Keep placeholders, HTML tags and line breaks unchanged. Reply with the translation only."
    )

    def __init__(self, llm: ChatOpenAI):
        self.llm = llm

    async def translate(self, text: str, target_language: str, source_language: str) -> str:
        messages = [
            SystemMessage(content=self.SYSTEM_PROMPT.format(source=source_language, target=target_language)),
            HumanMessage(content=text),
        ]
        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            raise TranslationProviderError(target_language, f"LLM translation failed: {e}") from e

        translated = str(response.content).strip()
        if not translated:
            raise TranslationProviderError(target_language, "LLM returned an empty translation")
        return translated


def get_llm_client(config: Settings, temperature: float = 0) -> ChatOpenAI:
    logger.info(f"Initializing LLM translator: base_url={config.LLM_BASE_URL}, model={config.LLM_MODEL}")
    return ChatOpenAI(
        model=config.LLM_MODEL,
        api_key=config.LLM_API_KEY,
        base_url=config.LLM_BASE_URL,
        temperature=temperature,
        streaming=False,
    )


def get_translation_provider(config: Optional[Settings] = None) -> Optional[TranslationProvider]:
    """Provider selected by TRANSLATION_PROVIDER; None disables translation."""
    config = config or app_settings
    name = config.TRANSLATION_PROVIDER.lower()

    if name == "google":
        if not config.GOOGLE_TRANSLATE_API_KEY:
            logger.warning("TRANSLATION_PROVIDER=google but GOOGLE_TRANSLATE_API_KEY is not set. Translation disabled.")
            return None
        return GoogleTranslateProvider(config.GOOGLE_TRANSLATE_API_KEY, config.GOOGLE_TRANSLATE_URL)
    if name == "llm":
        return LLMTranslationProvider(get_llm_client(config))
    if name != "none":
        logger.warning(f"Unknown TRANSLATION_PROVIDER '{config.TRANSLATION_PROVIDER}'. Translation disabled.")
    return None
