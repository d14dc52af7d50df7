from fastapi import HTTPException, status

from sitecfg.core.errors import AggregateMutationError, LanguageConfigError, ScopeValidationError
from sitecfg.core.service import SiteConfigService, get_service


def get_site_service() -> SiteConfigService:
    return get_service()


def to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, AggregateMutationError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.to_dict())
    if isinstance(e, (ScopeValidationError, LanguageConfigError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
