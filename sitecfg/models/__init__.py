from .schema import SiteSchema
from .setting import SiteSetting

__all__ = [
    "SiteSchema",
    "SiteSetting",
]
