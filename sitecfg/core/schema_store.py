import copy
import logging
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from sitecfg.core import db
from sitecfg.core.errors import UniquenessRace, is_unique_violation
from sitecfg.core.mq import TranslationJob, TranslationQueue
from sitecfg.core.mutator import require_tenant
from sitecfg.models.schema import DEFAULT_LANGUAGE, SiteSchema
from sitecfg.models.setting import utcnow

logger = logging.getLogger(__name__)


class SchemaStore:
    """
    Per-language JSON document store, scoped by tenant.

    Writes under the "default" language hand a TranslationJob to the queue
    once the transaction has committed.
    """

    def __init__(self, queue: Optional[TranslationQueue] = None, session_factory=None):
        self.queue = queue
        self._session_factory = session_factory

    @property
    def session_factory(self):
        return self._session_factory or db.AsyncSessionLocal

    async def get_exact(self, schema_key: str, tenant_id: str, language: str = DEFAULT_LANGUAGE) -> Optional[Any]:
        async with self.session_factory() as session:
            row = await self._find(session, schema_key, tenant_id, language)
            return row.schema_value if row else None

    async def get(self, schema_key: str, tenant_id: str, language: str = DEFAULT_LANGUAGE) -> Optional[Any]:
        """Exact language preferred, falling back to the default-language document."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(SiteSchema).where(
                    SiteSchema.schema_key == schema_key,
                    SiteSchema.tenant_id == tenant_id,
                    SiteSchema.language.in_([language, DEFAULT_LANGUAGE]),
                )
            )
            rows = {row.language: row for row in result.scalars().all()}

        row = rows.get(language) or rows.get(DEFAULT_LANGUAGE)
        return row.schema_value if row else None

    async def languages(self, schema_key: str, tenant_id: str) -> List[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SiteSchema.language)
                .where(SiteSchema.schema_key == schema_key, SiteSchema.tenant_id == tenant_id)
                .order_by(SiteSchema.language)
            )
            return list(result.scalars().all())

    async def schema_keys(self, tenant_id: str, language: str = DEFAULT_LANGUAGE) -> List[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SiteSchema.schema_key)
                .where(SiteSchema.tenant_id == tenant_id, SiteSchema.language == language)
                .order_by(SiteSchema.schema_key)
            )
            return list(result.scalars().all())

    async def upsert(
        self,
        schema_key: str,
        value: Any,
        tenant_id: str,
        language: str = DEFAULT_LANGUAGE,
        schedule_translation: bool = True,
    ):
        """Find-or-create by (schema_key, tenant_id, language); only the value is updated."""
        require_tenant(tenant_id)
        value = copy.deepcopy(value)

        async with self.session_factory() as session:
            row = await self._find(session, schema_key, tenant_id, language)
            if row is None:
                try:
                    async with session.begin_nested():
                        session.add(
                            SiteSchema(schema_key=schema_key, tenant_id=tenant_id, language=language, schema_value=value)
                        )
                except IntegrityError as e:
                    if not is_unique_violation(e):
                        raise
                    row = await self._find(session, schema_key, tenant_id, language)
                    if row is None:
                        raise UniquenessRace(schema_key, e) from e
            if row is not None:
                row.schema_value = value
                row.updated_at = utcnow()
            await session.commit()

        logger.info(f"Schema '{schema_key}' saved for tenant {tenant_id} ({language})")

        if language == DEFAULT_LANGUAGE and schedule_translation:
            await self.schedule_translation(schema_key, tenant_id)

    async def schedule_translation(self, schema_key: str, tenant_id: str, target_language: Optional[str] = None) -> bool:
        """Hand a job to the translation queue. Never raises into the writer."""
        if self.queue is None:
            return False
        job = TranslationJob(schema_key=schema_key, tenant_id=tenant_id, target_language=target_language)
        try:
            await self.queue.push(job)
        except Exception as e:
            logger.error(f"Translation handoff failed for '{schema_key}' (tenant {tenant_id}): {e}")
            return False
        return True

    @staticmethod
    async def _find(session, schema_key: str, tenant_id: str, language: str) -> Optional[SiteSchema]:
        result = await session.execute(
            select(SiteSchema).where(
                SiteSchema.schema_key == schema_key,
                SiteSchema.tenant_id == tenant_id,
                SiteSchema.language == language,
            )
        )
        return result.scalars().first()
