"""
Master-scope defaults and tenant bootstrap.

Master rows (tenant NULL, theme NULL) are the fallback every tenant sees;
initializing a tenant copies them to the tenant scope so they can be edited
without touching the master.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from sitecfg.core import db
from sitecfg.core.errors import is_unique_violation
from sitecfg.core.mutator import require_tenant
from sitecfg.core.rules import ClassificationRules, classify_setting
from sitecfg.models.schema import SiteSchema
from sitecfg.models.setting import SiteSetting

logger = logging.getLogger("sitecfg.tenants")

# (key, value); type, category and visibility follow the key naming rules
MASTER_SETTINGS: List[Tuple[str, str]] = [
    # Branding
    ("site_name", "My Site"),
    ("site_tagline", "Welcome to our website"),
    ("site_description", "A modern website"),
    ("site_logo", ""),
    ("site_favicon", ""),
    # SEO
    ("meta_title", "My Site - Welcome"),
    ("meta_description", "A modern website"),
    ("meta_keywords", "website, cms, modern"),
    ("meta_author", ""),
    ("og_title", "My Site"),
    ("og_description", "A modern website"),
    ("og_image", ""),
    ("og_type", "website"),
    ("twitter_card", "summary_large_image"),
    ("twitter_site", ""),
    ("twitter_image", ""),
    # Localization
    ("site_language", "en"),
    ("site_country", "US"),
    ("site_timezone", "UTC"),
    # Theme
    ("theme_styles", json.dumps({})),
]


def master_rows(rules: Optional[ClassificationRules] = None) -> List[SiteSetting]:
    rules = rules or ClassificationRules.from_settings()
    rows = []
    for key, value in MASTER_SETTINGS:
        traits = classify_setting(key, rules)
        rows.append(
            SiteSetting(
                setting_key=key,
                setting_value=value,
                setting_type=traits.setting_type,
                setting_category=traits.category,
                is_public=traits.is_public,
            )
        )
    return rows


async def _insert_unless_exists(session, row: SiteSetting) -> bool:
    try:
        async with session.begin_nested():
            session.add(row)
        return True
    except IntegrityError as e:
        if not is_unique_violation(e):
            raise
        return False


async def seed_master_settings(session_factory=None, rules: Optional[ClassificationRules] = None) -> Tuple[int, int]:
    """Insert missing master defaults. Idempotent; returns (inserted, skipped)."""
    session_factory = session_factory or db.AsyncSessionLocal
    inserted = skipped = 0

    async with session_factory() as session:
        result = await session.execute(
            select(SiteSetting.setting_key).where(SiteSetting.tenant_id.is_(None), SiteSetting.theme_id.is_(None))
        )
        existing = set(result.scalars().all())

        for row in master_rows(rules):
            if row.setting_key in existing:
                skipped += 1
            elif await _insert_unless_exists(session, row):
                inserted += 1
            else:
                skipped += 1
        await session.commit()

    logger.info(f"Master settings: {inserted} inserted, {skipped} already exist")
    return inserted, skipped


async def initialize_tenant(tenant_id: str, session_factory=None) -> int:
    """Copy master rows to the tenant scope; existing tenant keys are never overwritten."""
    require_tenant(tenant_id)
    session_factory = session_factory or db.AsyncSessionLocal
    copied = 0

    async with session_factory() as session:
        result = await session.execute(
            select(SiteSetting)
            .where(SiteSetting.tenant_id.is_(None), SiteSetting.theme_id.is_(None))
            .order_by(SiteSetting.id)
        )
        masters = list(result.scalars().all())

        result = await session.execute(select(SiteSetting.setting_key).where(SiteSetting.tenant_id == tenant_id))
        existing = set(result.scalars().all())

        for master in masters:
            if master.setting_key in existing:
                continue
            tenant_row = SiteSetting(
                setting_key=master.setting_key,
                setting_value=master.setting_value,
                setting_type=master.setting_type,
                setting_category=master.setting_category,
                is_public=master.is_public,
                tenant_id=tenant_id,
            )
            if await _insert_unless_exists(session, tenant_row):
                copied += 1
        await session.commit()

    logger.info(f"Initialized tenant {tenant_id}: {copied} settings copied from master")
    return copied


async def is_tenant_initialized(tenant_id: str, session_factory=None) -> bool:
    session_factory = session_factory or db.AsyncSessionLocal
    async with session_factory() as session:
        result = await session.execute(
            select(func.count(SiteSetting.id)).where(SiteSetting.tenant_id == tenant_id)
        )
        return (result.scalar() or 0) > 0


async def tenant_summary(tenant_id: str, session_factory=None) -> Dict[str, Any]:
    session_factory = session_factory or db.AsyncSessionLocal
    async with session_factory() as session:
        settings_count = (
            await session.execute(select(func.count(SiteSetting.id)).where(SiteSetting.tenant_id == tenant_id))
        ).scalar() or 0
        schemas_count = (
            await session.execute(select(func.count(SiteSchema.id)).where(SiteSchema.tenant_id == tenant_id))
        ).scalar() or 0
        languages = (
            await session.execute(
                select(SiteSchema.language)
                .where(SiteSchema.tenant_id == tenant_id)
                .distinct()
                .order_by(SiteSchema.language)
            )
        ).scalars().all()

    return {
        "tenant_id": tenant_id,
        "settings": settings_count,
        "schemas": schemas_count,
        "schema_languages": list(languages),
    }
