"""Exclusion computer.

Turns a user's restriction rules, hidden entities and the relationship graph
into the full set of excluded entities, then materializes it.

A recompute pass:
1. Loads the rule of every entity type and the user's hidden entities.
2. Enumerates every entity type through the catalog.
3. INCLUDE rules exclude the complement of the allow-list (an empty list
   excludes everything). EXCLUDE rules exclude the deny-list.
4. Adds hidden entities, then cascades to a fixed point.
5. Replaces all of the user's exclusion rows and visible counts in one
   transaction.

Every catalog read happens before the write, so a catalog failure or a
timeout leaves the previous snapshot in place.
"""

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from curtain.db.models import EntityType, ExclusionReason, RestrictionMode, RestrictionRule
from curtain.db.session import transaction
from curtain.errors import RecomputeTimeoutError
from curtain.logging import get_logger
from curtain.schemas.exclusions import RecomputeResultOut
from curtain.services import exclusion_store
from curtain.services.cascade import (
    ExclusionSet,
    RelationMaps,
    resolve_cascades,
    should_cascade,
)
from curtain.services.catalog import EntityCatalog, require_catalog
from curtain.services.entity_graph import (
    CASCADE_RULES,
    GLOBAL_INSTANCE,
    EntityKey,
    cascade_relations,
    related_type,
)
from curtain.services.hidden_entities import hidden_keys_by_type
from curtain.services.restrictions import ensure_user_exists, rules_by_type

logger = get_logger(__name__)


@dataclass
class ExclusionPlan:
    """A computed, not yet written, exclusion set for one user."""

    user_id: int
    excluded: ExclusionSet
    visible_counts: dict[EntityType, int] = field(default_factory=dict)
    cascade_passes: int = 0
    cascade_added: int = 0

    def entries(self) -> dict[EntityType, dict[EntityKey, ExclusionReason]]:
        return {t: self.excluded.entries(t) for t in EntityType}

    def by_reason(self) -> dict[str, int]:
        counts = {reason.value: 0 for reason in ExclusionReason}
        for entity_type in EntityType:
            for reason in self.excluded.entries(entity_type).values():
                counts[reason.value] += 1
        return counts

    def by_type(self) -> dict[str, int]:
        return {t.value: self.excluded.count(t) for t in EntityType}

    @property
    def total(self) -> int:
        return self.excluded.count()


def _check_deadline(deadline: float | None, phase: str) -> None:
    if deadline is not None and time.monotonic() > deadline:
        raise RecomputeTimeoutError(f"Exclusion recompute timed out during {phase}")


def load_relation_maps(catalog: EntityCatalog, subject_types: Iterable[EntityType]) -> RelationMaps:
    """Fetch one batched relation map per cascade relation of each subject type."""
    maps = {}
    for subject_type in subject_types:
        for relation in cascade_relations(subject_type):
            maps[(subject_type, relation)] = catalog.relation_map(subject_type, relation)
    return maps


def apply_rule(
    excluded: ExclusionSet,
    entity_type: EntityType,
    rule: RestrictionRule,
    catalog_keys: set[EntityKey],
) -> None:
    """Add the exclusions of one restriction rule."""
    if rule.mode == RestrictionMode.INCLUDE.value:
        allowed = set(rule.entity_ids or [])
        for key in catalog_keys:
            if key[1] not in allowed:
                excluded.add(entity_type, key, ExclusionReason.restricted)
    else:
        for entity_id in rule.entity_ids or []:
            excluded.add(entity_type, (GLOBAL_INSTANCE, entity_id), ExclusionReason.restricted)


def compute_exclusions(
    db: Session,
    catalog: EntityCatalog | None,
    user_id: int,
    deadline: float | None = None,
) -> ExclusionPlan:
    """Compute a user's exclusion set without writing it.

    Args:
        db: Database session.
        catalog: Entity catalog to enumerate against.
        user_id: The user to compute for.
        deadline: Optional time.monotonic() deadline checked between phases.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): If the user does not exist.
        CatalogNotReadyError: If no catalog is configured.
        CatalogUnavailableError: If any entity type cannot be enumerated.
        RecomputeTimeoutError: If the deadline passes.
    """
    catalog = require_catalog(catalog)
    ensure_user_exists(db, user_id)

    rules = rules_by_type(db, user_id)
    hidden = hidden_keys_by_type(db, user_id)

    catalog_keys = {entity_type: catalog.all_ids(entity_type) for entity_type in EntityType}
    _check_deadline(deadline, "enumeration")

    excluded = ExclusionSet()
    for entity_type, rule in rules.items():
        apply_rule(excluded, entity_type, rule, catalog_keys[entity_type])

    for entity_type, keys in hidden.items():
        for key in keys:
            excluded.add(entity_type, key, ExclusionReason.hidden)

    cascade_types = [t for t, rule in rules.items() if rule.restrict_empty and t in CASCADE_RULES]
    relation_maps = load_relation_maps(catalog, cascade_types)
    _check_deadline(deadline, "relation lookup")

    cascades = resolve_cascades(catalog_keys, relation_maps, excluded, cascade_types)
    _check_deadline(deadline, "cascade resolution")

    visible_counts = {
        entity_type: len(keys) - sum(1 for key in keys if excluded.contains(entity_type, key))
        for entity_type, keys in catalog_keys.items()
    }

    return ExclusionPlan(
        user_id=user_id,
        excluded=excluded,
        visible_counts=visible_counts,
        cascade_passes=cascades.passes,
        cascade_added=cascades.total,
    )


def recompute_user_exclusions(
    db: Session,
    catalog: EntityCatalog | None,
    user_id: int,
    timeout_s: float | None = None,
) -> RecomputeResultOut:
    """Compute and atomically materialize a user's exclusion set.

    The write takes the user row lock, so a concurrent pass for the same user
    in another process waits and then replaces this one.
    """
    start = time.monotonic()
    deadline = start + timeout_s if timeout_s else None

    plan = compute_exclusions(db, catalog, user_id, deadline=deadline)
    _check_deadline(deadline, "write")

    now = datetime.now(UTC)
    with transaction(db):
        exclusion_store.lock_user_exclusions(db, user_id)
        total = exclusion_store.replace_user_exclusions(db, user_id, plan.entries(), now)
        exclusion_store.upsert_entity_stats(db, user_id, plan.visible_counts, now)

    duration_ms = int((time.monotonic() - start) * 1000)
    by_reason = plan.by_reason()
    logger.info(
        "exclusion_recompute_completed",
        target_user_id=user_id,
        total=total,
        restricted=by_reason["restricted"],
        hidden=by_reason["hidden"],
        cascade=by_reason["cascade"],
        cascade_passes=plan.cascade_passes,
        duration_ms=duration_ms,
    )

    return RecomputeResultOut(
        user_id=user_id,
        total=total,
        by_reason=by_reason,
        by_type=plan.by_type(),
        cascade_passes=plan.cascade_passes,
        duration_ms=duration_ms,
    )


def apply_hidden_entity(
    db: Session,
    catalog: EntityCatalog | None,
    user_id: int,
    entity_type: EntityType,
    entity_id: str,
    instance_id: str = GLOBAL_INSTANCE,
) -> int:
    """Best-effort incremental exclusion for a freshly hidden entity.

    Writes the hidden row and one level of cascade rows for entities that
    reference the hidden entity and whose justifying set is now fully
    excluded. Only subject types whose rule has restrict_empty cascade.
    A later full recompute converges to the same state.

    Returns:
        Number of exclusion rows inserted.
    """
    catalog = require_catalog(catalog)
    hidden_key = (instance_id, entity_id)

    rules = rules_by_type(db, user_id)
    subject_types = [
        t
        for t, rule in rules.items()
        if rule.restrict_empty
        and any(related_type(t, r) == entity_type for r in cascade_relations(t))
    ]
    relation_maps = load_relation_maps(catalog, subject_types)

    def references_hidden(subject_type: EntityType, subject_key: EntityKey) -> bool:
        for relation in cascade_relations(subject_type):
            if related_type(subject_type, relation) != entity_type:
                continue
            for inst, rid in relation_maps[(subject_type, relation)].get(subject_key, ()):
                if rid == entity_id and instance_id in (GLOBAL_INSTANCE, inst):
                    return True
        return False

    now = datetime.now(UTC)
    inserted = 0
    with transaction(db):
        exclusion_store.lock_user_exclusions(db, user_id)
        excluded = exclusion_store.load_exclusion_set(db, user_id)
        excluded.add(entity_type, hidden_key, ExclusionReason.hidden)

        cascaded: list[tuple[EntityType, EntityKey]] = []
        for subject_type in subject_types:
            subjects = {
                key
                for (t, _), mapping in relation_maps.items()
                if t == subject_type
                for key in mapping
            }
            for subject_key in sorted(subjects):
                if excluded.contains(subject_type, subject_key):
                    continue
                if references_hidden(subject_type, subject_key) and should_cascade(
                    subject_type, subject_key, excluded, relation_maps
                ):
                    cascaded.append((subject_type, subject_key))

        if exclusion_store.insert_exclusion_if_absent(
            db, user_id, entity_type, hidden_key, ExclusionReason.hidden, now
        ):
            inserted += 1
        for subject_type, subject_key in cascaded:
            if exclusion_store.insert_exclusion_if_absent(
                db, user_id, subject_type, subject_key, ExclusionReason.cascade, now
            ):
                inserted += 1

    logger.info(
        "hidden_entity_exclusions_applied",
        target_user_id=user_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        instance_id=instance_id,
        inserted=inserted,
    )
    return inserted
