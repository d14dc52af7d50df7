"""
Bulk write path for scoped settings.

A batch is applied in one transaction and is all-or-nothing. Per key:
classify, tolerant lookup on (key, tenant) ignoring theme, update in place or
insert inside a SAVEPOINT. A uniqueness race on insert is healed by a strict
lookup on the exact triple followed by an update.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from sitecfg.core import db
from sitecfg.core.errors import (
    AggregateMutationError,
    KeyFailure,
    ScopeValidationError,
    SiteConfigError,
    UniquenessRace,
    is_transaction_poisoned,
    is_unique_violation,
)
from sitecfg.core.rules import ClassificationRules, SettingTraits, classify_setting
from sitecfg.models.setting import SiteSetting, utcnow

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
RECOVERED = "recovered"


@dataclass
class BatchResult:
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    # keys whose insert lost a uniqueness race and were updated instead
    recovered: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.updated) + len(self.recovered)


def encode_value(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def require_tenant(tenant_id: Optional[str]) -> str:
    if not isinstance(tenant_id, str) or not tenant_id.strip():
        raise ScopeValidationError("tenant_id is required for setting writes")
    return tenant_id


class SettingMutator:
    def __init__(self, rules: Optional[ClassificationRules] = None, session_factory=None):
        self.rules = rules or ClassificationRules.from_settings()
        self._session_factory = session_factory

    @property
    def session_factory(self):
        return self._session_factory or db.AsyncSessionLocal

    async def apply_all(
        self, settings: Mapping[str, Any], tenant_id: str, theme_id: Optional[str] = None
    ) -> BatchResult:
        """
        Apply every (key, value) in caller order inside one transaction.

        Raises AggregateMutationError naming the first real failure when any
        key could not be written; nothing from the batch is persisted then.
        """
        require_tenant(tenant_id)
        result = BatchResult()
        items = list(settings.items())
        if not items:
            return result

        failures: List[KeyFailure] = []
        skipped: List[str] = []

        async with self.session_factory() as session:
            for index, (key, value) in enumerate(items):
                try:
                    outcome = await self._apply_key(session, key, encode_value(value), tenant_id, theme_id)
                except (SQLAlchemyError, SiteConfigError) as e:
                    if is_transaction_poisoned(e):
                        # Every later statement would fail the same way
                        if failures:
                            skipped.append(key)
                        else:
                            failures.append(KeyFailure(key, e))
                        skipped.extend(k for k, _ in items[index + 1 :])
                        logger.warning(
                            f"Transaction poisoned at key '{key}' for tenant {tenant_id}; "
                            f"skipping {len(items) - index - 1} remaining keys"
                        )
                        break
                    logger.error(f"Failed to apply setting '{key}' for tenant {tenant_id}: {e}")
                    failures.append(KeyFailure(key, e))
                    continue
                getattr(result, outcome).append(key)

            if failures:
                await session.rollback()
                root = failures[0]
                raise AggregateMutationError(root.key, root.error, failures, skipped)

            await session.commit()

        logger.info(
            f"Applied {result.total} settings for tenant {tenant_id} (theme={theme_id}): "
            f"{len(result.created)} created, {len(result.updated)} updated, {len(result.recovered)} recovered"
        )
        return result

    async def apply_one(self, key: str, value: Any, tenant_id: str, theme_id: Optional[str] = None) -> BatchResult:
        return await self.apply_all({key: value}, tenant_id, theme_id)

    async def _apply_key(
        self, session: AsyncSession, key: str, value: Optional[str], tenant_id: str, theme_id: Optional[str]
    ) -> str:
        traits = classify_setting(key, self.rules)

        row = await self._tolerant_lookup(session, key, tenant_id, theme_id)
        if row is not None:
            self._assign(row, value, traits, theme_id)
            await session.flush()
            return UPDATED

        try:
            async with session.begin_nested():
                session.add(
                    SiteSetting(
                        setting_key=key,
                        setting_value=value,
                        setting_type=traits.setting_type,
                        setting_category=traits.category,
                        is_public=traits.is_public,
                        tenant_id=tenant_id,
                        theme_id=theme_id,
                    )
                )
            return CREATED
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            logger.info(f"Concurrent insert of '{key}' for tenant {tenant_id} (theme={theme_id}); updating instead")
            row = await self._strict_lookup(session, key, tenant_id, theme_id)
            if row is None:
                raise UniquenessRace(key, e) from e
            self._assign(row, value, traits, theme_id)
            await session.flush()
            return RECOVERED

    async def _tolerant_lookup(
        self, session: AsyncSession, key: str, tenant_id: str, theme_id: Optional[str]
    ) -> Optional[SiteSetting]:
        # theme_id is ignored on purpose: legacy rows predate theme scoping
        result = await session.execute(
            select(SiteSetting)
            .where(SiteSetting.setting_key == key, SiteSetting.tenant_id == tenant_id)
            .order_by(SiteSetting.id)
        )
        rows = list(result.scalars().all())
        if not rows:
            return None
        return next((r for r in rows if r.theme_id == theme_id), rows[0])

    async def _strict_lookup(
        self, session: AsyncSession, key: str, tenant_id: str, theme_id: Optional[str]
    ) -> Optional[SiteSetting]:
        theme_cond = SiteSetting.theme_id.is_(None) if theme_id is None else SiteSetting.theme_id == theme_id
        result = await session.execute(
            select(SiteSetting).where(
                SiteSetting.setting_key == key,
                SiteSetting.tenant_id == tenant_id,
                theme_cond,
            )
        )
        return result.scalars().first()

    @staticmethod
    def _assign(row: SiteSetting, value: Optional[str], traits: SettingTraits, theme_id: Optional[str]):
        row.setting_value = value
        row.setting_type = traits.setting_type
        row.setting_category = traits.category
        row.is_public = traits.is_public
        row.theme_id = theme_id
        row.updated_at = utcnow()
