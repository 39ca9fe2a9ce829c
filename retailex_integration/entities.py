"""Local entities as seen by the gateways, plus a simple in-memory store."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple

from .errors import SyncError


@dataclass
class Entity:
    """A local record pushed to Retail Express."""

    entity_id: int
    type_str: str
    unique_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    relations: Dict[str, "Entity"] = field(default_factory=dict)
    parent: Optional["Entity"] = None

    def get_unique_id(self) -> str:
        return self.unique_id

    def get_data(self, code: str, default: Any = None) -> Any:
        return self.data.get(code, default)

    def resolve(self, relation: str, entity_type: str) -> Optional["Entity"]:
        """Follow a named relation, ignoring records of another type."""
        related = self.relations.get(relation)
        if related is None or related.type_str != entity_type:
            return None
        return related

    def get_parent(self) -> Optional["Entity"]:
        return self.parent

    def to_log_dict(self) -> Dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "type": self.type_str,
            "unique_id": self.unique_id,
            "data": dict(self.data),
            "relations": {name: rel.unique_id for name, rel in self.relations.items()},
        }


@dataclass
class Action:
    """A non-attribute change to an entity, e.g. ``delete``."""

    type: str
    entity: Entity


class EntityStore(Protocol):
    """Linkage between local entities and their remote ids, per node."""

    def get_local_id(self, node_id: int, entity: Entity) -> Optional[Any]:
        ...

    def link_entity(self, node_id: int, entity: Entity, remote_id: Any) -> None:
        ...


class InMemoryEntityStore:
    """Keeps linkages in a dict keyed by (node id, entity id)."""

    def __init__(self):
        self._links: Dict[Tuple[int, int], Any] = {}

    def get_local_id(self, node_id: int, entity: Entity) -> Optional[Any]:
        return self._links.get((node_id, entity.entity_id))

    def link_entity(self, node_id: int, entity: Entity, remote_id: Any) -> None:
        key = (node_id, entity.entity_id)
        existing = self._links.get(key)
        if existing is not None and existing != remote_id:
            raise SyncError(
                f"Entity {entity.unique_id} is already linked to {existing} on node {node_id}"
            )
        self._links[key] = remote_id
