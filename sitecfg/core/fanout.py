"""
Translation fan-out: one default-language schema -> one localized copy per
configured target language. Languages fail independently.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from sitecfg.core.errors import SiteConfigError, TranslationProviderError
from sitecfg.core.languages import LanguageConfig, load_language_config
from sitecfg.core.mq import TranslationJob
from sitecfg.core.resolver import SettingResolver
from sitecfg.core.rules import TextTreeRules
from sitecfg.core.schema_store import SchemaStore
from sitecfg.core.text_tree import extract_text, inject_text
from sitecfg.core.translation import TranslationProvider
from sitecfg.models.schema import DEFAULT_LANGUAGE

logger = logging.getLogger("sitecfg.fanout")


@dataclass
class FanoutReport:
    succeeded: List[str] = field(default_factory=list)
    # language -> error message
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def target_languages(config: LanguageConfig, only: Optional[str] = None) -> List[str]:
    targets = config.additional_languages
    if only is not None:
        return [only] if only in targets else []
    return targets


class TranslationFanout:
    def __init__(
        self,
        provider: Optional[TranslationProvider],
        schema_store: SchemaStore,
        resolver: SettingResolver,
        rules: Optional[TextTreeRules] = None,
        default_language: Optional[str] = None,
    ):
        self.provider = provider
        self.schema_store = schema_store
        self.resolver = resolver
        self.rules = rules or TextTreeRules.from_settings()
        self.default_language = default_language

    async def run(self, job: TranslationJob) -> FanoutReport:
        report = FanoutReport()
        if self.provider is None:
            logger.warning(f"No translation provider configured; dropping job {job.id} ({job.schema_key})")
            return report

        config = await load_language_config(self.resolver, job.tenant_id, self.default_language)
        targets = target_languages(config, job.target_language)
        if not targets:
            logger.debug(f"No target languages for tenant {job.tenant_id}; nothing to translate")
            return report

        document = await self.schema_store.get_exact(job.schema_key, job.tenant_id, DEFAULT_LANGUAGE)
        if document is None:
            logger.info(f"Schema '{job.schema_key}' has no default document for tenant {job.tenant_id}")
            return report

        texts = extract_text(document, self.rules)
        if not texts:
            logger.debug(f"Schema '{job.schema_key}' has no translatable text")
            return report

        for language in targets:
            try:
                translated = await self.translate_document(document, texts, language, config.default_language)
                await self.schema_store.upsert(
                    job.schema_key, translated, job.tenant_id, language=language, schedule_translation=False
                )
            except (TranslationProviderError, SiteConfigError, SQLAlchemyError) as e:
                logger.error(f"Translation of '{job.schema_key}' to {language} failed for tenant {job.tenant_id}: {e}")
                report.failed[language] = str(e)
                continue
            report.succeeded.append(language)
            logger.info(f"Translated '{job.schema_key}' to {language} for tenant {job.tenant_id} ({len(texts)} strings)")

        return report

    async def translate_document(
        self, document: Any, texts: Dict[str, str], target_language: str, source_language: str
    ) -> Any:
        """
        Translate every leaf independently. A failed leaf keeps its source text;
        the language fails only when no leaf could be translated.
        """
        paths = list(texts)
        results = await asyncio.gather(
            *(self.provider.translate(texts[p], target_language, source_language) for p in paths),
            return_exceptions=True,
        )

        translations: Dict[str, str] = {}
        errors: List[str] = []
        for path, result in zip(paths, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(f"Leaf '{path}' not translated to {target_language}: {result}")
                errors.append(str(result))
                continue
            translations[path] = result

        if not translations:
            raise TranslationProviderError(target_language, f"all {len(paths)} strings failed: {errors[0]}")

        return inject_text(copy.deepcopy(document), translations)
