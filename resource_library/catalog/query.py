from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from ..models import Resource


@dataclass(frozen=True)
class ResourceQuery:
    """Attribute filters plus id inclusion/exclusion for catalog lookups.

    ``None`` means "no constraint" for every attribute; ``ids`` restricts the
    result to the given ids when set.
    """

    subject: str | None = None
    grade: int | None = None
    type: str | None = None
    ids: frozenset[str] | None = None
    exclude_ids: frozenset[str] = frozenset()

    @property
    def has_attribute_constraints(self) -> bool:
        return any(v is not None for v in (self.subject, self.grade, self.type))

    def excluding(self, ids: Iterable[str]) -> ResourceQuery:
        """Return a copy whose exclusion set also covers *ids*."""
        return replace(self, exclude_ids=self.exclude_ids | frozenset(ids))

    def matches(self, resource: Resource) -> bool:
        if resource.id in self.exclude_ids:
            return False
        if self.ids is not None and resource.id not in self.ids:
            return False
        if self.subject is not None and resource.subject != self.subject:
            return False
        if self.grade is not None and resource.grade != self.grade:
            return False
        if self.type is not None and resource.type != self.type:
            return False
        return True
