"""
Scope precedence lattice: master < tenant < tenant+theme.

Every setting row carries a (tenant_id, theme_id) coordinate. A resolution
request for (tenant, theme) considers exactly three coordinates:
(None, None), (tenant, None) and, when a theme is given, (tenant, theme).
"""

from typing import Any, List, NamedTuple, Optional

MASTER = 0
TENANT = 1
TENANT_THEME = 2
OUTSIDE_LATTICE = -1


class Scope(NamedTuple):
    tenant_id: Optional[str] = None
    theme_id: Optional[str] = None

    @classmethod
    def of(cls, row: Any) -> "Scope":
        return cls(getattr(row, "tenant_id", None), getattr(row, "theme_id", None))

    @property
    def specificity(self) -> int:
        if self.tenant_id is None:
            # A theme without a tenant is not a valid coordinate
            return MASTER if self.theme_id is None else OUTSIDE_LATTICE
        return TENANT if self.theme_id is None else TENANT_THEME

    @property
    def is_master(self) -> bool:
        return self.specificity == MASTER

    def is_more_specific_than(self, other: "Scope") -> bool:
        return self.specificity > other.specificity

    def matches(self, row: Any) -> bool:
        return Scope.of(row) == self


def candidate_scopes(tenant_id: Optional[str], theme_id: Optional[str] = None) -> List[Scope]:
    """Scopes consulted for a request, most specific first."""
    scopes = [Scope(None, None)]
    if tenant_id:
        scopes.insert(0, Scope(tenant_id, None))
        if theme_id:
            scopes.insert(0, Scope(tenant_id, theme_id))
    return scopes


def order_most_specific_first(rows: List[Any]) -> List[Any]:
    """Stable sort; rows at equal specificity keep store order."""
    return sorted(rows, key=lambda row: Scope.of(row).specificity, reverse=True)
