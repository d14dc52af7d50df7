"""
Per-deployment rule sets passed into the resolver, mutator and text walker.

Defaults mirror the stock site settings; `from_settings()` builds them from
the environment so deployments can change allow-lists without code changes.
"""

from typing import Dict, FrozenSet, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from sitecfg.core.config import Settings, settings as app_settings

DEFAULT_SKIP_KEYS: FrozenSet[str] = frozenset(
    {
        # identifiers & discriminators
        "id", "key", "type", "slug", "component", "variant", "anchor",
        # links
        "url", "href", "link", "src", "email", "phone",
        # media references
        "image", "imageurl", "image_url", "images", "icon", "logo", "favicon",
        "media", "mediaid", "media_id", "video", "videourl", "video_url",
        # ratings & ordering
        "rating", "stars", "order", "sort_order", "sortorder", "position", "index",
        # presentation
        "classname", "class", "style", "styles", "color",
    }
)


class ResolverRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Rows in these categories are visible even when is_public is false
    public_categories: FrozenSet[str] = frozenset({"branding", "seo", "localization"})
    # Extra keys the public SEO resolver exposes besides the seo category
    public_seo_keys: FrozenSet[str] = frozenset(
        {"site_name", "site_tagline", "site_description", "site_logo", "site_favicon"}
    )
    seo_category: str = "seo"

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ResolverRules":
        config = config or app_settings
        return cls(
            public_categories=frozenset(config.PUBLIC_CATEGORIES),
            public_seo_keys=frozenset(config.PUBLIC_SEO_KEYS),
        )


class TextTreeRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    skip_keys: FrozenSet[str] = DEFAULT_SKIP_KEYS
    url_pattern: str = r"^(?:[a-zA-Z][a-zA-Z0-9+.\-]*://|mailto:|tel:|data:|/|#)"
    slug_pattern: str = r"^(?:[a-z0-9]+(?:[_\-][a-z0-9]+)*|[0-9_\-.]+)$"

    def skips(self, key: str) -> bool:
        return key.lower() in self.skip_keys

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "TextTreeRules":
        config = config or app_settings
        if not config.TRANSLATION_SKIP_KEYS:
            return cls()
        return cls(skip_keys=frozenset(k.lower() for k in config.TRANSLATION_SKIP_KEYS))


class SettingTraits(NamedTuple):
    setting_type: str
    category: str
    is_public: bool


class ClassificationRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    media_markers: Tuple[str, ...] = ("logo", "favicon", "image", "icon")
    textarea_markers: Tuple[str, ...] = ("description", "_code", "custom_css", "custom_js")
    json_suffixes: Tuple[str, ...] = ("_styles", "_json")
    known_keys: Dict[str, str] = {
        "site_name": "branding",
        "site_tagline": "branding",
        "site_description": "branding",
        "site_logo": "branding",
        "site_favicon": "branding",
        "site_language": "localization",
        "site_content_languages": "localization",
        "site_country": "localization",
        "site_timezone": "localization",
        "head_code": "custom_code",
        "body_code": "custom_code",
    }
    category_prefixes: Dict[str, str] = {
        "meta_": "seo",
        "og_": "seo",
        "twitter_": "seo",
        "seo_": "seo",
        "brand_": "branding",
        "theme_": "theme",
        "custom_": "custom_code",
    }
    default_category: str = "general"
    public_categories: FrozenSet[str] = frozenset({"branding", "seo", "localization"})

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ClassificationRules":
        config = config or app_settings
        return cls(public_categories=frozenset(config.PUBLIC_CATEGORIES))


def classify_setting(key: str, rules: Optional[ClassificationRules] = None) -> SettingTraits:
    """Derive type, category and visibility from a setting key's naming convention."""
    rules = rules or ClassificationRules()
    lowered = key.lower()

    if any(marker in lowered for marker in rules.media_markers):
        setting_type = "media"
    elif lowered.endswith(rules.json_suffixes):
        setting_type = "json"
    elif any(marker in lowered for marker in rules.textarea_markers):
        setting_type = "textarea"
    else:
        setting_type = "text"

    category = rules.known_keys.get(lowered)
    if category is None:
        category = next(
            (cat for prefix, cat in rules.category_prefixes.items() if lowered.startswith(prefix)),
            rules.default_category,
        )

    return SettingTraits(setting_type, category, category in rules.public_categories)
