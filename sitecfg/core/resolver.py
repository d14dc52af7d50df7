import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlmodel import select

from sitecfg.core import db
from sitecfg.core.errors import StoreUnavailable
from sitecfg.core.rules import ResolverRules
from sitecfg.core.scope import candidate_scopes, order_most_specific_first
from sitecfg.models.setting import SiteSetting

logger = logging.getLogger(__name__)


def scope_clause(tenant_id: Optional[str], theme_id: Optional[str] = None):
    """SQL filter selecting exactly the candidate scopes of a request."""
    clauses = []
    for scope in candidate_scopes(tenant_id, theme_id):
        tenant_cond = SiteSetting.tenant_id.is_(None) if scope.tenant_id is None else SiteSetting.tenant_id == scope.tenant_id
        theme_cond = SiteSetting.theme_id.is_(None) if scope.theme_id is None else SiteSetting.theme_id == scope.theme_id
        clauses.append(and_(tenant_cond, theme_cond))
    return or_(*clauses)


def merge_most_specific(rows: Iterable[SiteSetting]) -> Dict[str, SiteSetting]:
    """First row seen per key wins once rows are ordered most specific first."""
    merged: Dict[str, SiteSetting] = {}
    for row in order_most_specific_first(list(rows)):
        merged.setdefault(row.setting_key, row)
    return merged


class SettingResolver:
    """
    Read path for scoped settings.

    Every lookup considers the master, tenant and (optionally) tenant+theme
    scopes and keeps the most specific row per key, whatever order the store
    returns rows in.
    """

    def __init__(self, rules: Optional[ResolverRules] = None, session_factory=None):
        self.rules = rules or ResolverRules.from_settings()
        self._session_factory = session_factory

    @property
    def session_factory(self):
        return self._session_factory or db.AsyncSessionLocal

    async def _fetch(self, *conditions) -> List[SiteSetting]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(SiteSetting).where(*conditions).order_by(SiteSetting.id))
                return list(result.scalars().all())
        except (OperationalError, InterfaceError, OSError) as e:
            raise StoreUnavailable(str(e)) from e

    def _visible(self):
        return or_(
            SiteSetting.is_public.is_(True),
            SiteSetting.setting_category.in_(sorted(self.rules.public_categories)),
        )

    async def resolve(
        self,
        tenant_id: Optional[str],
        theme_id: Optional[str] = None,
        category: Optional[str] = None,
        key: Optional[str] = None,
    ) -> Dict[str, Dict[str, Optional[str]]]:
        """
        Resolve visible settings grouped by category: {category: {key: value}}.
        Filter by `category` or `key`; with neither, every visible key is returned.
        """
        conditions = [scope_clause(tenant_id, theme_id), self._visible()]
        if category:
            conditions.append(SiteSetting.setting_category == category)
        if key:
            conditions.append(SiteSetting.setting_key == key)

        grouped: Dict[str, Dict[str, Optional[str]]] = {}
        for setting_key, row in merge_most_specific(await self._fetch(*conditions)).items():
            grouped.setdefault(row.setting_category, {})[setting_key] = row.setting_value
        return grouped

    async def resolve_flat(
        self,
        tenant_id: Optional[str],
        theme_id: Optional[str] = None,
        category: Optional[str] = None,
        key: Optional[str] = None,
    ) -> Dict[str, Optional[str]]:
        flat: Dict[str, Optional[str]] = {}
        for values in (await self.resolve(tenant_id, theme_id, category=category, key=key)).values():
            flat.update(values)
        return flat

    async def get_values(
        self, keys: Iterable[str], tenant_id: Optional[str], theme_id: Optional[str] = None
    ) -> Dict[str, Optional[str]]:
        """Internal read without the visibility filter. Missing keys are absent from the result."""
        keys = list(keys)
        if not keys:
            return {}
        rows = await self._fetch(scope_clause(tenant_id, theme_id), SiteSetting.setting_key.in_(keys))
        return {k: row.setting_value for k, row in merge_most_specific(rows).items()}

    async def get_setting(
        self, key: str, tenant_id: Optional[str], theme_id: Optional[str] = None
    ) -> Optional[SiteSetting]:
        rows = await self._fetch(scope_clause(tenant_id, theme_id), SiteSetting.setting_key == key)
        return merge_most_specific(rows).get(key)

    async def list_tenant_settings(self, tenant_id: str) -> List[SiteSetting]:
        """Rows stored at the tenant itself, across all of its themes."""
        rows = await self._fetch(SiteSetting.tenant_id == tenant_id)
        return sorted(rows, key=lambda r: (r.setting_key, r.theme_id or ""))

    async def public_seo_settings(self, tenant_id: Optional[str], theme_id: Optional[str] = None) -> Dict[str, Optional[str]]:
        """
        Flat public SEO mapping for page rendering.

        Degraded mode: an unreachable store yields {} instead of an error.
        Only this read path fails open.
        """
        conditions = [
            scope_clause(tenant_id, theme_id),
            SiteSetting.is_public.is_(True),
            or_(
                SiteSetting.setting_category == self.rules.seo_category,
                SiteSetting.setting_key.in_(sorted(self.rules.public_seo_keys)),
            ),
        ]
        try:
            rows = await self._fetch(*conditions)
        except StoreUnavailable as e:
            logger.warning(f"Public SEO settings unavailable for tenant {tenant_id}, serving empty: {e}")
            return {}
        return {k: row.setting_value for k, row in merge_most_specific(rows).items()}
