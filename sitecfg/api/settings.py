import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from sitecfg.api.deps import get_site_service, to_http_error
from sitecfg.core.errors import AggregateMutationError, LanguageConfigError, ScopeValidationError
from sitecfg.core.service import SiteConfigService
from sitecfg.core.tenants import initialize_tenant, tenant_summary

router = APIRouter(prefix="/settings", tags=["Settings"])
logger = logging.getLogger(__name__)


class SettingsBatch(BaseModel):
    settings: Dict[str, Any]
    theme_id: Optional[str] = None


class LanguageRequest(BaseModel):
    code: str


def _language_payload(config) -> Dict[str, Any]:
    return {
        "default_language": config.default_language,
        "content_languages": config.content_languages,
        "additional_languages": config.additional_languages,
    }


@router.get("/{tenant_id}")
async def resolve_settings(
    tenant_id: str,
    theme_id: Optional[str] = None,
    category: Optional[str] = None,
    key: Optional[str] = None,
    service: SiteConfigService = Depends(get_site_service),
):
    """Resolved settings grouped by category, most specific scope wins."""
    return await service.resolve_settings(tenant_id, theme_id, category=category, key=key)


@router.get("/{tenant_id}/public-seo")
async def public_seo(
    tenant_id: str,
    theme_id: Optional[str] = None,
    service: SiteConfigService = Depends(get_site_service),
):
    return await service.public_seo_settings(tenant_id, theme_id)


@router.put("/{tenant_id}")
async def apply_settings(
    tenant_id: str,
    batch: SettingsBatch,
    service: SiteConfigService = Depends(get_site_service),
):
    """Apply a batch of settings atomically."""
    try:
        result = await service.apply_settings_batch(batch.settings, tenant_id, batch.theme_id)
    except (AggregateMutationError, ScopeValidationError) as e:
        logger.warning(f"Settings batch rejected for tenant {tenant_id}: {e}")
        raise to_http_error(e)
    return {
        "status": "ok",
        "created": result.created,
        "updated": result.updated,
        "recovered": result.recovered,
    }


@router.get("/{tenant_id}/languages")
async def get_languages(tenant_id: str, service: SiteConfigService = Depends(get_site_service)):
    return _language_payload(await service.languages.get_config(tenant_id))


@router.post("/{tenant_id}/languages")
async def add_language(
    tenant_id: str, request: LanguageRequest, service: SiteConfigService = Depends(get_site_service)
):
    try:
        config = await service.languages.add_language(tenant_id, request.code)
    except (LanguageConfigError, ScopeValidationError, AggregateMutationError) as e:
        raise to_http_error(e)
    return _language_payload(config)


@router.delete("/{tenant_id}/languages/{code}")
async def remove_language(tenant_id: str, code: str, service: SiteConfigService = Depends(get_site_service)):
    try:
        config = await service.languages.remove_language(tenant_id, code)
    except (LanguageConfigError, ScopeValidationError, AggregateMutationError) as e:
        raise to_http_error(e)
    return _language_payload(config)


@router.put("/{tenant_id}/languages/default")
async def set_default_language(
    tenant_id: str, request: LanguageRequest, service: SiteConfigService = Depends(get_site_service)
):
    try:
        config = await service.languages.set_default_language(tenant_id, request.code)
    except (LanguageConfigError, ScopeValidationError, AggregateMutationError) as e:
        raise to_http_error(e)
    return _language_payload(config)


@router.post("/{tenant_id}/initialize")
async def initialize(tenant_id: str, service: SiteConfigService = Depends(get_site_service)):
    """Copy master defaults into the tenant scope."""
    try:
        copied = await initialize_tenant(tenant_id, session_factory=service.resolver.session_factory)
    except ScopeValidationError as e:
        raise to_http_error(e)
    return {"status": "ok", "copied": copied}


@router.get("/{tenant_id}/summary")
async def summary(tenant_id: str, service: SiteConfigService = Depends(get_site_service)):
    return await tenant_summary(tenant_id, session_factory=service.resolver.session_factory)
