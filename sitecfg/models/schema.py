from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Index
from sqlmodel import Column, Field, SQLModel

from sitecfg.models.setting import utcnow

DEFAULT_LANGUAGE = "default"


class SiteSchema(SQLModel, table=True):
    """Structured page/layout content for one (schema_key, tenant, language)."""

    __tablename__ = "site_schemas"

    id: Optional[int] = Field(default=None, primary_key=True)
    schema_key: str = Field(index=True)
    # 'default' holds the source content; other values are language codes
    language: str = Field(default=DEFAULT_LANGUAGE, index=True)
    tenant_id: str = Field(index=True, nullable=False)
    schema_value: Any = Field(default=None, sa_column=Column(JSON, nullable=True))

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


Index(
    "uq_site_schemas_key_tenant_language",
    SiteSchema.schema_key,
    SiteSchema.tenant_id,
    SiteSchema.language,
    unique=True,
)
