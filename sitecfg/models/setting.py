from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Index, Text, func
from sqlmodel import Column, Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SiteSetting(SQLModel, table=True):
    """
    One setting value at one scope.

    (tenant_id, theme_id) = (NULL, NULL) is the master scope, (t, NULL) the
    tenant scope and (t, th) the tenant+theme scope.
    """

    __tablename__ = "site_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    setting_key: str = Field(index=True)
    setting_value: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    setting_type: str = Field(default="text")  # 'text', 'textarea', 'media', 'json'
    setting_category: str = Field(default="general", index=True)
    is_public: bool = Field(default=False)
    tenant_id: Optional[str] = Field(default=None, index=True)
    theme_id: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# NULL-aware uniqueness: at most one row per (key, tenant, theme)
Index(
    "uq_site_settings_key_scope",
    SiteSetting.setting_key,
    func.coalesce(SiteSetting.tenant_id, ""),
    func.coalesce(SiteSetting.theme_id, ""),
    unique=True,
)
