"""
Tests for FastAPI endpoints and API functionality.
"""

import time

from fastapi.testclient import TestClient
from sqlalchemy.exc import DataError

from sitecfg.core.mutator import SettingMutator


def wait_for_translation(client: TestClient, path: str, original, timeout: float = 5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        value = client.get(path).json()["value"]
        if value != original:
            return value
        time.sleep(0.05)
    return None


class TestHealthCheck:
    def test_health(self, api_client: TestClient):
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestSettingsEndpoints:
    """Tests for the /settings endpoints."""

    def test_master_defaults_are_seeded_on_startup(self, api_client: TestClient):
        response = api_client.get("/settings/tenant-a")
        assert response.status_code == 200
        data = response.json()
        assert data["branding"]["site_name"] == "My Site"
        assert data["seo"]["og_type"] == "website"
        # Non-public categories never reach the public reader
        assert "theme" not in data

    def test_apply_batch_then_resolve(self, api_client: TestClient):
        response = api_client.put(
            "/settings/tenant-a",
            json={"settings": {"site_name": "Salon A", "meta_title": "Salon A | Home"}},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert sorted(body["created"]) == ["meta_title", "site_name"]

        data = api_client.get("/settings/tenant-a").json()
        assert data["branding"]["site_name"] == "Salon A"
        assert data["seo"]["meta_title"] == "Salon A | Home"

        # Other tenants still see the master value
        assert api_client.get("/settings/tenant-b").json()["branding"]["site_name"] == "My Site"

    def test_theme_scope_wins(self, api_client: TestClient):
        api_client.put("/settings/tenant-a", json={"settings": {"site_tagline": "Tenant"}})
        api_client.put("/settings/tenant-a", json={"settings": {"site_tagline": "Dark"}, "theme_id": "dark"})

        dark = api_client.get("/settings/tenant-a", params={"theme_id": "dark", "key": "site_tagline"}).json()
        assert dark == {"branding": {"site_tagline": "Dark"}}

    def test_category_filter(self, api_client: TestClient):
        data = api_client.get("/settings/tenant-a", params={"category": "seo"}).json()
        assert list(data) == ["seo"]

    def test_public_seo(self, api_client: TestClient):
        api_client.put("/settings/tenant-a", json={"settings": {"meta_title": "Salon A"}})

        data = api_client.get("/settings/tenant-a/public-seo").json()
        assert data["meta_title"] == "Salon A"
        # Allow-listed branding keys come from the seeded master scope
        assert data["site_name"] == "My Site"
        assert "site_language" not in data
        assert "theme_styles" not in data

    def test_failed_batch_returns_root_cause(self, api_client: TestClient, mocker):
        original = SettingMutator._apply_key

        async def _apply_key(self, session, key, value, tenant_id, theme_id):
            if key == "site_tagline":
                raise DataError("UPDATE ...", {}, Exception("value too long"))
            return await original(self, session, key, value, tenant_id, theme_id)

        mocker.patch.object(SettingMutator, "_apply_key", _apply_key)

        response = api_client.put(
            "/settings/tenant-a",
            json={"settings": {"site_name": "Salon A", "site_tagline": "x" * 10}},
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["root_key"] == "site_tagline"
        assert "value too long" in detail["root_cause"]
        # Nothing from the batch was kept
        assert api_client.get("/settings/tenant-a").json()["branding"]["site_name"] == "My Site"

    def test_initialize_and_summary(self, api_client: TestClient):
        response = api_client.post("/settings/tenant-a/initialize")
        assert response.status_code == 200
        copied = response.json()["copied"]
        assert copied > 0

        # Second run copies nothing
        assert api_client.post("/settings/tenant-a/initialize").json()["copied"] == 0

        summary = api_client.get("/settings/tenant-a/summary").json()
        assert summary["tenant_id"] == "tenant-a"
        assert summary["settings"] == copied
        assert summary["schemas"] == 0


class TestLanguageEndpoints:
    def test_language_lifecycle(self, api_client: TestClient):
        data = api_client.get("/settings/tenant-a/languages").json()
        assert data["default_language"] == "en"

        data = api_client.post("/settings/tenant-a/languages", json={"code": "fr"}).json()
        assert data["content_languages"] == ["en", "fr"]
        assert data["additional_languages"] == ["fr"]

        data = api_client.put("/settings/tenant-a/languages/default", json={"code": "fr"}).json()
        assert data["default_language"] == "fr"
        assert data["additional_languages"] == ["en"]

        data = api_client.delete("/settings/tenant-a/languages/en").json()
        assert data["additional_languages"] == []

    def test_language_errors_are_bad_requests(self, api_client: TestClient):
        assert api_client.post("/settings/tenant-a/languages", json={"code": "en"}).status_code == 400
        assert api_client.post("/settings/tenant-a/languages", json={"code": "not a code"}).status_code == 400
        assert api_client.delete("/settings/tenant-a/languages/de").status_code == 400


class TestSchemaEndpoints:
    def test_missing_schema_is_404(self, api_client: TestClient):
        response = api_client.get("/schemas/tenant-a/home")
        assert response.status_code == 404

    def test_upsert_and_get(self, api_client: TestClient):
        response = api_client.put("/schemas/tenant-a/home", json={"value": {"title": "Hello"}})
        assert response.status_code == 200

        data = api_client.get("/schemas/tenant-a/home").json()
        assert data == {"schema_key": "home", "language": "default", "value": {"title": "Hello"}}
        assert api_client.get("/schemas/tenant-a").json() == ["home"]
        assert api_client.get("/schemas/tenant-b/home").status_code == 404

    def test_language_falls_back_to_default(self, api_client: TestClient):
        api_client.put("/schemas/tenant-a/home", json={"value": {"title": "Hello"}})

        data = api_client.get("/schemas/tenant-a/home", params={"language": "it"}).json()
        assert data["value"] == {"title": "Hello"}

    def test_default_write_is_translated(self, api_client: TestClient):
        api_client.put("/settings/tenant-a", json={"settings": {"site_content_languages": "en,fr"}})
        api_client.put("/schemas/tenant-a/home", json={"value": {"title": "Hello world"}})

        translated = wait_for_translation(api_client, "/schemas/tenant-a/home?language=fr", {"title": "Hello world"})

        assert translated == {"title": "dlrow olleH"}
        assert api_client.get("/schemas/tenant-a/home/languages").json() == ["default", "fr"]
