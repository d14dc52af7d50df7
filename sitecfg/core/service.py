"""
Wiring of the settings/schema components and the operations exposed to the
rest of the product.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from sitecfg.core.config import Settings, settings as app_settings
from sitecfg.core.fanout import TranslationFanout
from sitecfg.core.languages import LanguageManager
from sitecfg.core.mq import TranslationQueue
from sitecfg.core.mutator import BatchResult, SettingMutator
from sitecfg.core.resolver import SettingResolver
from sitecfg.core.rules import ClassificationRules, ResolverRules, TextTreeRules
from sitecfg.core.scheduler import TranslationScheduler
from sitecfg.core.schema_store import SchemaStore
from sitecfg.core.translation import TranslationProvider, get_translation_provider
from sitecfg.core.worker import TranslationWorkerPool
from sitecfg.models.schema import DEFAULT_LANGUAGE

logger = logging.getLogger("sitecfg.service")


class SiteConfigService:
    def __init__(
        self,
        config: Optional[Settings] = None,
        provider: Optional[TranslationProvider] = None,
        queue: Optional[TranslationQueue] = None,
        session_factory=None,
    ):
        config = config or app_settings
        self.config = config
        self.queue = queue or TranslationQueue.from_url(config.TRANSLATION_QUEUE_URL, config.TRANSLATION_QUEUE_MAXSIZE)
        self.provider = provider if provider is not None else get_translation_provider(config)

        self.resolver = SettingResolver(ResolverRules.from_settings(config), session_factory=session_factory)
        self.mutator = SettingMutator(ClassificationRules.from_settings(config), session_factory=session_factory)
        self.schemas = SchemaStore(self.queue, session_factory=session_factory)
        self.languages = LanguageManager(
            self.resolver, self.mutator, self.schemas, default_language=config.DEFAULT_SITE_LANGUAGE
        )
        self.fanout = TranslationFanout(
            self.provider,
            self.schemas,
            self.resolver,
            rules=TextTreeRules.from_settings(config),
            default_language=config.DEFAULT_SITE_LANGUAGE,
        )
        self.workers = TranslationWorkerPool(
            self.queue,
            self.fanout,
            workers=config.TRANSLATION_WORKERS,
            max_attempts=config.TRANSLATION_MAX_ATTEMPTS,
            base_delay=config.TRANSLATION_RETRY_BASE_DELAY,
        )
        self.scheduler = TranslationScheduler(self.queue, config.TRANSLATION_DLQ_RETRY_MINUTES)

    async def start(self):
        if self.provider is None:
            logger.warning("Translation provider disabled; default-language writes will not be translated.")
        await self.workers.start()
        await self.scheduler.start()

    async def stop(self):
        await self.scheduler.stop()
        await self.workers.stop()
        await self.queue.close()

    async def resolve_settings(
        self, tenant_id: Optional[str], theme_id: Optional[str] = None, category: Optional[str] = None, key: Optional[str] = None
    ) -> Dict[str, Dict[str, Optional[str]]]:
        return await self.resolver.resolve(tenant_id, theme_id, category=category, key=key)

    async def apply_settings_batch(
        self, settings: Mapping[str, Any], tenant_id: str, theme_id: Optional[str] = None
    ) -> BatchResult:
        return await self.mutator.apply_all(settings, tenant_id, theme_id)

    async def get_schema(self, schema_key: str, tenant_id: str, language: str = DEFAULT_LANGUAGE) -> Optional[Any]:
        return await self.schemas.get(schema_key, tenant_id, language)

    async def upsert_schema(self, schema_key: str, value: Any, tenant_id: str, language: str = DEFAULT_LANGUAGE):
        await self.schemas.upsert(schema_key, value, tenant_id, language=language)

    async def public_seo_settings(self, tenant_id: Optional[str], theme_id: Optional[str] = None) -> Dict[str, Optional[str]]:
        return await self.resolver.public_seo_settings(tenant_id, theme_id)


_service: Optional[SiteConfigService] = None


def get_service() -> SiteConfigService:
    global _service
    if _service is None:
        _service = SiteConfigService()
    return _service


def set_service(service: Optional[SiteConfigService]):
    global _service
    _service = service


async def resolve_settings(tenant_id, theme_id=None, category=None, key=None):
    return await get_service().resolve_settings(tenant_id, theme_id, category=category, key=key)


async def apply_settings_batch(settings, tenant_id, theme_id=None):
    return await get_service().apply_settings_batch(settings, tenant_id, theme_id)


async def get_schema(schema_key, tenant_id, language=DEFAULT_LANGUAGE):
    return await get_service().get_schema(schema_key, tenant_id, language)


async def upsert_schema(schema_key, value, tenant_id, language=DEFAULT_LANGUAGE):
    await get_service().upsert_schema(schema_key, value, tenant_id, language)


async def public_seo_settings(tenant_id, theme_id=None):
    return await get_service().public_seo_settings(tenant_id, theme_id)
