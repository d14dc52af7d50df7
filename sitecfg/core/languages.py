import logging
import re
from typing import Iterable, List, NamedTuple, Optional

from sitecfg.core.config import settings
from sitecfg.core.errors import LanguageConfigError
from sitecfg.core.mutator import SettingMutator, require_tenant
from sitecfg.core.resolver import SettingResolver
from sitecfg.core.schema_store import SchemaStore
from sitecfg.models.schema import DEFAULT_LANGUAGE

logger = logging.getLogger("sitecfg.languages")

SITE_LANGUAGE_KEY = "site_language"
CONTENT_LANGUAGES_KEY = "site_content_languages"

LANGUAGE_CODE_RE = re.compile(r"^[A-Za-z]{2,3}(?:[-_][A-Za-z0-9]{2,8})*$")


def parse_language_list(raw: Optional[str]) -> List[str]:
    """
    'en, fr,,de' -> ['en', 'fr', 'de'] (blanks and duplicates dropped, order kept).

    The schema sentinel 'default' is never a content language.
    """
    languages: List[str] = []
    for part in (raw or "").split(","):
        code = part.strip()
        if code and code.lower() != DEFAULT_LANGUAGE and code not in languages:
            languages.append(code)
    return languages


def format_language_list(languages: Iterable[str]) -> str:
    return ",".join(languages)


def validate_language_code(code: str) -> str:
    code = (code or "").strip()
    if code.lower() == DEFAULT_LANGUAGE:
        raise LanguageConfigError(f"'{DEFAULT_LANGUAGE}' is reserved for the source document")
    if not LANGUAGE_CODE_RE.match(code):
        raise LanguageConfigError(f"Invalid language code: '{code}'")
    return code


class LanguageConfig(NamedTuple):
    default_language: str
    # site_content_languages as stored; may include the default language
    content_languages: List[str]

    @property
    def additional_languages(self) -> List[str]:
        return [
            lang for lang in self.content_languages if lang not in (self.default_language, DEFAULT_LANGUAGE)
        ]


async def load_language_config(
    resolver: SettingResolver, tenant_id: str, default_language: Optional[str] = None
) -> LanguageConfig:
    values = await resolver.get_values([SITE_LANGUAGE_KEY, CONTENT_LANGUAGES_KEY], tenant_id)
    default = (values.get(SITE_LANGUAGE_KEY) or "").strip()
    if not default or default.lower() == DEFAULT_LANGUAGE:
        default = default_language or settings.DEFAULT_SITE_LANGUAGE
    return LanguageConfig(default, parse_language_list(values.get(CONTENT_LANGUAGES_KEY)))


class LanguageManager:
    """
    Per-tenant language configuration.

    Language settings are written through the bulk mutator; adding a language
    schedules a translation of every default-language schema of the tenant.
    """

    def __init__(
        self,
        resolver: SettingResolver,
        mutator: SettingMutator,
        schema_store: Optional[SchemaStore] = None,
        default_language: Optional[str] = None,
    ):
        self.resolver = resolver
        self.mutator = mutator
        self.schema_store = schema_store
        self.default_language = default_language or settings.DEFAULT_SITE_LANGUAGE

    async def get_config(self, tenant_id: str) -> LanguageConfig:
        return await load_language_config(self.resolver, tenant_id, self.default_language)

    async def add_language(self, tenant_id: str, code: str) -> LanguageConfig:
        require_tenant(tenant_id)
        code = validate_language_code(code)
        config = await self.get_config(tenant_id)

        if code == config.default_language:
            raise LanguageConfigError("Cannot add the default language as an additional language")
        if code in config.content_languages:
            raise LanguageConfigError(f"Language {code} already exists")

        languages = list(config.content_languages)
        if config.default_language not in languages:
            languages.insert(0, config.default_language)
        languages.append(code)

        await self.mutator.apply_all({CONTENT_LANGUAGES_KEY: format_language_list(languages)}, tenant_id)
        logger.info(f"Added language {code} for tenant {tenant_id}")

        scheduled = await self._schedule_language(tenant_id, code)
        if scheduled:
            logger.info(f"Scheduled {scheduled} schema translations to {code} for tenant {tenant_id}")
        return LanguageConfig(config.default_language, languages)

    async def remove_language(self, tenant_id: str, code: str) -> LanguageConfig:
        """Localized schema copies are kept; deleting them is an administrative task."""
        require_tenant(tenant_id)
        code = (code or "").strip()
        config = await self.get_config(tenant_id)

        if code == config.default_language:
            raise LanguageConfigError("Cannot remove the default language")
        if code not in config.content_languages:
            raise LanguageConfigError(f"Language {code} does not exist")

        languages = [lang for lang in config.content_languages if lang != code]
        await self.mutator.apply_all({CONTENT_LANGUAGES_KEY: format_language_list(languages)}, tenant_id)
        logger.info(f"Removed language {code} for tenant {tenant_id}")
        return LanguageConfig(config.default_language, languages)

    async def set_default_language(self, tenant_id: str, code: str) -> LanguageConfig:
        require_tenant(tenant_id)
        code = validate_language_code(code)
        config = await self.get_config(tenant_id)

        if code == config.default_language:
            return config

        languages = [lang for lang in config.content_languages if lang != code]
        if config.default_language not in languages:
            languages.append(config.default_language)

        await self.mutator.apply_all(
            {SITE_LANGUAGE_KEY: code, CONTENT_LANGUAGES_KEY: format_language_list(languages)},
            tenant_id,
        )
        logger.info(f"Default language for tenant {tenant_id} changed {config.default_language} -> {code}")
        return LanguageConfig(code, languages)

    async def _schedule_language(self, tenant_id: str, code: str) -> int:
        if self.schema_store is None:
            return 0
        count = 0
        for schema_key in await self.schema_store.schema_keys(tenant_id):
            if await self.schema_store.schedule_translation(schema_key, tenant_id, target_language=code):
                count += 1
        return count
