import pytest
from sqlalchemy.exc import OperationalError

from sitecfg.core.errors import StoreUnavailable
from sitecfg.core.resolver import SettingResolver
from sitecfg.core.rules import ResolverRules


@pytest.fixture
def resolver(test_db):
    return SettingResolver(ResolverRules())


async def test_tenant_overrides_master(resolver, seed_setting):
    await seed_setting("site_name", "Master")
    await seed_setting("site_name", "Tenant A", tenant_id="tenant-a")

    result = await resolver.resolve("tenant-a", category="branding")
    assert result == {"branding": {"site_name": "Tenant A"}}

    # Another tenant still sees the master value
    assert await resolver.resolve("tenant-b", category="branding") == {"branding": {"site_name": "Master"}}


async def test_precedence_independent_of_insert_order(resolver, seed_setting):
    # Most specific row inserted first so store order is the reverse of precedence
    await seed_setting("site_tagline", "Themed", tenant_id="tenant-a", theme_id="dark")
    await seed_setting("site_tagline", "Tenant", tenant_id="tenant-a")
    await seed_setting("site_tagline", "Master")

    assert await resolver.resolve_flat("tenant-a", "dark") == {"site_tagline": "Themed"}
    assert await resolver.resolve_flat("tenant-a") == {"site_tagline": "Tenant"}
    assert await resolver.resolve_flat("tenant-a", "light") == {"site_tagline": "Tenant"}


async def test_other_tenants_and_themes_are_ignored(resolver, seed_setting):
    await seed_setting("site_name", "Other tenant", tenant_id="tenant-b")
    await seed_setting("site_name", "Other theme", tenant_id="tenant-a", theme_id="light")

    assert await resolver.resolve("tenant-a", "dark") == {}


async def test_visibility_filter(resolver, seed_setting):
    await seed_setting("theme_styles", "{}", tenant_id="tenant-a", category="theme", is_public=False)
    await seed_setting("theme_font", "Inter", tenant_id="tenant-a", category="theme", is_public=True)
    # Allow-listed categories are visible even when not flagged public
    await seed_setting("site_country", "SG", tenant_id="tenant-a", category="localization", is_public=False)

    result = await resolver.resolve("tenant-a")
    assert result == {"theme": {"theme_font": "Inter"}, "localization": {"site_country": "SG"}}


async def test_filter_by_key(resolver, seed_setting):
    await seed_setting("site_name", "Tenant A", tenant_id="tenant-a")
    await seed_setting("site_tagline", "Tagline", tenant_id="tenant-a")

    assert await resolver.resolve("tenant-a", key="site_tagline") == {"branding": {"site_tagline": "Tagline"}}


async def test_get_values_and_get_setting(resolver, seed_setting):
    await seed_setting("site_language", "en", category="localization")
    await seed_setting("site_language", "fr", tenant_id="tenant-a", category="localization", is_public=False)

    values = await resolver.get_values(["site_language", "site_content_languages"], "tenant-a")
    assert values == {"site_language": "fr"}

    row = await resolver.get_setting("site_language", "tenant-a")
    assert row.tenant_id == "tenant-a"
    assert await resolver.get_setting("missing_key", "tenant-a") is None


async def test_list_tenant_settings(resolver, seed_setting):
    await seed_setting("site_name", "Master")
    await seed_setting("site_tagline", "Dark", tenant_id="tenant-a", theme_id="dark")
    await seed_setting("site_name", "Tenant A", tenant_id="tenant-a")

    rows = await resolver.list_tenant_settings("tenant-a")
    assert [(r.setting_key, r.theme_id) for r in rows] == [("site_name", None), ("site_tagline", "dark")]


async def test_public_seo_settings(resolver, seed_setting):
    await seed_setting("meta_title", "Master title", category="seo")
    await seed_setting("meta_title", "Tenant title", tenant_id="tenant-a", category="seo")
    await seed_setting("site_name", "Tenant A", tenant_id="tenant-a")
    await seed_setting("site_country", "SG", tenant_id="tenant-a", category="localization")
    await seed_setting("og_secret", "hidden", tenant_id="tenant-a", category="seo", is_public=False)

    assert await resolver.public_seo_settings("tenant-a") == {"meta_title": "Tenant title", "site_name": "Tenant A"}


async def test_public_seo_settings_fails_open():
    class DeadSession:
        async def __aenter__(self):
            raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

        async def __aexit__(self, *exc):
            return False

    resolver = SettingResolver(ResolverRules(), session_factory=lambda: DeadSession())
    assert await resolver.public_seo_settings("tenant-a") == {}

    # Only the public path degrades; other reads propagate
    with pytest.raises(StoreUnavailable):
        await resolver.resolve("tenant-a")
