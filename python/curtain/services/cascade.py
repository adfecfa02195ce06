"""Cascade resolution.

Pure functions, no database access. Given the catalog keys, batched relation
maps and the current exclusion set, derive the entities that become invisible
because everything that would justify showing them is excluded.

The resolver runs passes until one adds nothing. The exclusion set only
grows, so the loop ends after at most one pass per entity.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from curtain.db.models import EntityType, ExclusionReason
from curtain.services.entity_graph import (
    CASCADE_RULES,
    GLOBAL_INSTANCE,
    EntityKey,
    related_type,
)

# Lower rank wins when one key qualifies under several reasons.
REASON_PRECEDENCE: dict[ExclusionReason, int] = {
    ExclusionReason.restricted: 0,
    ExclusionReason.hidden: 1,
    ExclusionReason.cascade: 2,
}

RelationMaps = Mapping[tuple[EntityType, str], Mapping[EntityKey, set[EntityKey]]]


class ExclusionSet:
    """Excluded keys per entity type, each with its winning reason.

    A key (instance, id) is excluded if it was added directly or if
    (GLOBAL_INSTANCE, id) was added for the same type. A global key absorbs
    every scoped key of the same ID, so one ID never holds two entries.
    """

    def __init__(self) -> None:
        self._entries: dict[EntityType, dict[EntityKey, ExclusionReason]] = {
            t: {} for t in EntityType
        }
        self._global_ids: dict[EntityType, set[str]] = {t: set() for t in EntityType}
        self._scoped: dict[EntityType, dict[str, set[str]]] = {t: {} for t in EntityType}

    def add(self, entity_type: EntityType, key: EntityKey, reason: ExclusionReason) -> bool:
        """Add a key. Returns True if the key was not covered before."""
        entries = self._entries[entity_type]
        instance_id, entity_id = key

        if entity_id in self._global_ids[entity_type]:
            key = (GLOBAL_INSTANCE, entity_id)
        if key in entries:
            if REASON_PRECEDENCE[reason] < REASON_PRECEDENCE[entries[key]]:
                entries[key] = reason
            return False

        if instance_id != GLOBAL_INSTANCE:
            entries[key] = reason
            self._scoped[entity_type].setdefault(entity_id, set()).add(instance_id)
            return True

        absorbed = self._scoped[entity_type].pop(entity_id, set())
        for scoped_instance in absorbed:
            previous = entries.pop((scoped_instance, entity_id))
            if REASON_PRECEDENCE[previous] < REASON_PRECEDENCE[reason]:
                reason = previous
        entries[key] = reason
        self._global_ids[entity_type].add(entity_id)
        return not absorbed

    def contains(self, entity_type: EntityType, key: EntityKey) -> bool:
        if key in self._entries[entity_type]:
            return True
        return key[1] in self._global_ids[entity_type]

    def reason(self, entity_type: EntityType, key: EntityKey) -> ExclusionReason | None:
        entries = self._entries[entity_type]
        if key in entries:
            return entries[key]
        return entries.get((GLOBAL_INSTANCE, key[1]))

    def entries(self, entity_type: EntityType) -> dict[EntityKey, ExclusionReason]:
        return dict(self._entries[entity_type])

    def count(self, entity_type: EntityType | None = None) -> int:
        if entity_type is not None:
            return len(self._entries[entity_type])
        return sum(len(e) for e in self._entries.values())


@dataclass
class CascadeResult:
    """Keys added by one resolver run, grouped by type."""

    added: dict[EntityType, set[EntityKey]] = field(default_factory=dict)
    passes: int = 0

    @property
    def total(self) -> int:
        return sum(len(keys) for keys in self.added.values())


def justifying_set(
    entity_type: EntityType,
    key: EntityKey,
    group: Iterable[str],
    relation_maps: RelationMaps,
) -> list[tuple[EntityType, EntityKey]]:
    """Union of entities related to key through every relation of a group."""
    related: list[tuple[EntityType, EntityKey]] = []
    for relation in group:
        target_type = related_type(entity_type, relation)
        for related_key in relation_maps.get((entity_type, relation), {}).get(key, ()):
            related.append((target_type, related_key))
    return related


def should_cascade(
    entity_type: EntityType,
    key: EntityKey,
    excluded: ExclusionSet,
    relation_maps: RelationMaps,
) -> bool:
    """True if some justifying group of key is non-empty and fully excluded."""
    for group in CASCADE_RULES.get(entity_type, ()):
        related = justifying_set(entity_type, key, group, relation_maps)
        if related and all(excluded.contains(t, k) for t, k in related):
            return True
    return False


def resolve_cascades(
    catalog_keys: Mapping[EntityType, set[EntityKey]],
    relation_maps: RelationMaps,
    excluded: ExclusionSet,
    cascade_types: Iterable[EntityType],
) -> CascadeResult:
    """Extend excluded with cascade exclusions until a fixed point.

    Args:
        catalog_keys: Every live key per entity type.
        relation_maps: Batched relation maps keyed by (subject type, relation).
            Must cover every relation of CASCADE_RULES for cascade_types.
        excluded: Current exclusion set. Mutated in place.
        cascade_types: Subject types allowed to cascade (their rule has
            restrict_empty set).

    Returns:
        CascadeResult with the keys added and the number of passes run.
    """
    result = CascadeResult()
    worklist: dict[EntityType, list[EntityKey]] = {
        t: sorted(k for k in catalog_keys.get(t, set()) if not excluded.contains(t, k))
        for t in cascade_types
        if t in CASCADE_RULES
    }

    while True:
        result.passes += 1
        added_this_pass = 0

        for entity_type, candidates in worklist.items():
            remaining: list[EntityKey] = []
            for key in candidates:
                if excluded.contains(entity_type, key):
                    continue
                if should_cascade(entity_type, key, excluded, relation_maps):
                    excluded.add(entity_type, key, ExclusionReason.cascade)
                    result.added.setdefault(entity_type, set()).add(key)
                    added_this_pass += 1
                else:
                    remaining.append(key)
            worklist[entity_type] = remaining

        if added_this_pass == 0:
            return result
