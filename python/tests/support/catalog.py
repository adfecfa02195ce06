"""In-memory EntityCatalog for tests.

Mirrors SqlEntityCatalog semantics: inverse relations are derived from the
stored ones and edges are only reported when both ends are in the catalog.
"""

import time
from collections import defaultdict

from curtain.db.models import EntityType
from curtain.errors import CatalogUnavailableError
from curtain.services.entity_graph import (
    GLOBAL_INSTANCE,
    INVERSE_RELATIONS,
    STORED_RELATIONS,
    EntityKey,
)


class StaticEntityCatalog:
    """EntityCatalog over plain dictionaries.

    Attributes:
        fail_types: Entity types whose enumeration raises CatalogUnavailableError.
        fail_relations: Entity types whose relation lookups raise
            CatalogUnavailableError while enumeration keeps working.
        delay_s: Seconds slept on every all_ids call.
        calls: Number of all_ids and relation_map calls served.
    """

    def __init__(self) -> None:
        self.entities: dict[EntityType, set[EntityKey]] = defaultdict(set)
        self.edges: dict[tuple[EntityType, str], dict[EntityKey, set[EntityKey]]] = defaultdict(
            lambda: defaultdict(set)
        )
        self.fail_types: set[EntityType] = set()
        self.fail_relations: set[EntityType] = set()
        self.delay_s = 0.0
        self.calls = 0

    def add(self, entity_type: EntityType, *entity_ids: str, instance_id: str = "main") -> None:
        for entity_id in entity_ids:
            self.entities[entity_type].add((instance_id, entity_id))

    def remove(self, entity_type: EntityType, entity_id: str, instance_id: str = "main") -> None:
        self.entities[entity_type].discard((instance_id, entity_id))

    def relate(
        self,
        entity_type: EntityType,
        entity_id: str,
        relation: str,
        *related_ids: str,
        instance_id: str = "main",
    ) -> None:
        """Add stored edges from one subject to one or more related entities."""
        if (entity_type, relation) not in STORED_RELATIONS:
            raise ValueError(f"{relation!r} is not a stored relation of {entity_type.value!r}")
        for related_id in related_ids:
            self.edges[(entity_type, relation)][(instance_id, entity_id)].add(
                (instance_id, related_id)
            )

    def all_ids(self, entity_type: EntityType, instance_id: str | None = None) -> set[EntityKey]:
        self.calls += 1
        if self.delay_s:
            time.sleep(self.delay_s)
        if entity_type in self.fail_types:
            raise CatalogUnavailableError(f"Entity catalog unavailable for {entity_type.value}")
        keys = set(self.entities[entity_type])
        if instance_id is not None:
            keys = {key for key in keys if key[0] == instance_id}
        return keys

    def related_ids(
        self,
        entity_type: EntityType,
        entity_id: str,
        relation: str,
        instance_id: str = GLOBAL_INSTANCE,
    ) -> set[EntityKey]:
        result: set[EntityKey] = set()
        for subject, related in self.relation_map(entity_type, relation).items():
            if subject[1] == entity_id and instance_id in (GLOBAL_INSTANCE, subject[0]):
                result |= related
        return result

    def relation_map(
        self, entity_type: EntityType, relation: str
    ) -> dict[EntityKey, set[EntityKey]]:
        self.calls += 1
        if entity_type in self.fail_types or entity_type in self.fail_relations:
            raise CatalogUnavailableError(f"Entity catalog unavailable for {entity_type.value}")

        if (entity_type, relation) in STORED_RELATIONS:
            source_type, source_relation, flip = entity_type, relation, False
        elif (entity_type, relation) in INVERSE_RELATIONS:
            source_type, source_relation = INVERSE_RELATIONS[(entity_type, relation)]
            flip = True
        else:
            raise ValueError(f"Unknown relation {relation!r} for {entity_type.value!r}")

        target_type = STORED_RELATIONS[(source_type, source_relation)]
        result: dict[EntityKey, set[EntityKey]] = defaultdict(set)
        for subject, related_keys in self.edges[(source_type, source_relation)].items():
            if subject not in self.entities[source_type]:
                continue
            for related in related_keys:
                if related not in self.entities[target_type]:
                    continue
                if flip:
                    result[related].add(subject)
                else:
                    result[subject].add(related)
        return dict(result)
