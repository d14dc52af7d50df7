import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from sitecfg.api.deps import get_site_service, to_http_error
from sitecfg.core.errors import ScopeValidationError
from sitecfg.core.service import SiteConfigService
from sitecfg.models.schema import DEFAULT_LANGUAGE

router = APIRouter(prefix="/schemas", tags=["Schemas"])
logger = logging.getLogger(__name__)


class SchemaWrite(BaseModel):
    value: Any
    language: str = DEFAULT_LANGUAGE


@router.get("/{tenant_id}", response_model=List[str])
async def list_schemas(
    tenant_id: str, language: str = DEFAULT_LANGUAGE, service: SiteConfigService = Depends(get_site_service)
):
    return await service.schemas.schema_keys(tenant_id, language)


@router.get("/{tenant_id}/{schema_key}")
async def get_schema(
    tenant_id: str,
    schema_key: str,
    language: str = DEFAULT_LANGUAGE,
    service: SiteConfigService = Depends(get_site_service),
):
    """Schema document in `language`, falling back to the default document."""
    document = await service.get_schema(schema_key, tenant_id, language)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schema not found")
    return {"schema_key": schema_key, "language": language, "value": document}


@router.put("/{tenant_id}/{schema_key}")
async def upsert_schema(
    tenant_id: str,
    schema_key: str,
    body: SchemaWrite,
    service: SiteConfigService = Depends(get_site_service),
):
    try:
        await service.upsert_schema(schema_key, body.value, tenant_id, body.language)
    except ScopeValidationError as e:
        raise to_http_error(e)
    return {"status": "ok"}


@router.get("/{tenant_id}/{schema_key}/languages", response_model=List[str])
async def schema_languages(tenant_id: str, schema_key: str, service: SiteConfigService = Depends(get_site_service)):
    return await service.schemas.languages(schema_key, tenant_id)
