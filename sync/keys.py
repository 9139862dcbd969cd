"""Cache keys.

A key is an entity kind plus a selector. Selectors of one kind form a
partition: invalidating ``batches:all`` leaves ``batches:id=b-1`` valid, and
fan-out across selectors is the coordinator's job.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.models import EntityKind


class SelectorScope(str, Enum):
    ALL = "all"
    ID = "id"
    PARENT = "parent"


@dataclass(frozen=True)
class Selector:
    """Which reads of a kind a key covers."""
    scope: SelectorScope
    value: Optional[str] = None
    parent_kind: Optional[EntityKind] = None

    @classmethod
    def all(cls) -> "Selector":
        return cls(SelectorScope.ALL)

    @classmethod
    def by_id(cls, entity_id: str) -> "Selector":
        return cls(SelectorScope.ID, entity_id)

    @classmethod
    def by_parent(cls, parent_kind: EntityKind, parent_id: str) -> "Selector":
        return cls(SelectorScope.PARENT, parent_id, parent_kind)

    def __str__(self) -> str:
        if self.scope is SelectorScope.ALL:
            return "all"
        if self.scope is SelectorScope.ID:
            return f"id={self.value}"
        return f"{self.parent_kind.value}={self.value}"


@dataclass(frozen=True)
class CacheKey:
    """Hashable identity of one cacheable read."""
    kind: EntityKind
    selector: Selector

    @classmethod
    def all(cls, kind: EntityKind) -> "CacheKey":
        return cls(kind, Selector.all())

    @classmethod
    def by_id(cls, kind: EntityKind, entity_id: str) -> "CacheKey":
        return cls(kind, Selector.by_id(entity_id))

    @classmethod
    def by_parent(cls, kind: EntityKind, parent_kind: EntityKind, parent_id: str) -> "CacheKey":
        return cls(kind, Selector.by_parent(parent_kind, parent_id))

    @property
    def scope(self) -> SelectorScope:
        return self.selector.scope

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.selector}"
