"""Entity catalog: enumeration and relationship lookups over mirrored entities.

The catalog is the only read path into the mirrored library. The exclusion
computer takes one explicitly; a process without a configured catalog fails
loudly with CatalogNotReadyError instead of computing an empty universe.

Soft-deleted entities are not part of the catalog, and relation edges are
only reported when both ends are live.

The recompute deadline is only checked between phases. On PostgreSQL,
SqlEntityCatalog also bounds every query with a statement timeout, so a hung
enumeration surfaces as RecomputeTimeoutError.
"""

from collections import defaultdict
from typing import Protocol

from psycopg.errors import QueryCanceled
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased, sessionmaker

from curtain.db.models import EntityRelation, EntityType, MirroredEntity
from curtain.errors import CatalogNotReadyError, CatalogUnavailableError, RecomputeTimeoutError
from curtain.logging import get_logger
from curtain.services.entity_graph import (
    GLOBAL_INSTANCE,
    INVERSE_RELATIONS,
    STORED_RELATIONS,
    EntityKey,
)

logger = get_logger(__name__)


class EntityCatalog(Protocol):
    """Read interface over the mirrored entity universe.

    Implementations raise CatalogUnavailableError when a type cannot be
    enumerated or resolved.
    """

    def all_ids(self, entity_type: EntityType, instance_id: str | None = None) -> set[EntityKey]:
        """Every live entity key of a type, optionally scoped to one instance."""
        ...

    def related_ids(
        self,
        entity_type: EntityType,
        entity_id: str,
        relation: str,
        instance_id: str = GLOBAL_INSTANCE,
    ) -> set[EntityKey]:
        """Keys related to one entity. A global instance matches every instance."""
        ...

    def relation_map(
        self, entity_type: EntityType, relation: str
    ) -> dict[EntityKey, set[EntityKey]]:
        """Batched lookup: every subject key of a type mapped to its related keys."""
        ...


def require_catalog(catalog: EntityCatalog | None) -> EntityCatalog:
    """Return the catalog or fail with CatalogNotReadyError."""
    if catalog is None:
        raise CatalogNotReadyError()
    return catalog


class SqlEntityCatalog:
    """EntityCatalog backed by the mirrored_entities and entity_relations tables.

    Each call opens and closes its own session so the catalog can be shared
    across recompute worker threads.

    Args:
        session_factory: Opens one session per query.
        statement_timeout_ms: Per-query limit applied on PostgreSQL.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        statement_timeout_ms: int | None = None,
    ):
        self.session_factory = session_factory
        self.statement_timeout_ms = statement_timeout_ms

    def all_ids(self, entity_type: EntityType, instance_id: str | None = None) -> set[EntityKey]:
        stmt = select(MirroredEntity.instance_id, MirroredEntity.entity_id).where(
            MirroredEntity.entity_type == entity_type.value,
            MirroredEntity.deleted_at.is_(None),
        )
        if instance_id is not None:
            stmt = stmt.where(MirroredEntity.instance_id == instance_id)

        rows = self._fetch(stmt, entity_type, "all_ids")
        return {(row[0], row[1]) for row in rows}

    def related_ids(
        self,
        entity_type: EntityType,
        entity_id: str,
        relation: str,
        instance_id: str = GLOBAL_INSTANCE,
    ) -> set[EntityKey]:
        if (entity_type, relation) in STORED_RELATIONS:
            stmt = self._edges(entity_type, relation).where(
                EntityRelation.entity_id == entity_id
            )
            flip = False
        elif (entity_type, relation) in INVERSE_RELATIONS:
            source_type, source_relation = INVERSE_RELATIONS[(entity_type, relation)]
            stmt = self._edges(source_type, source_relation).where(
                EntityRelation.related_id == entity_id
            )
            flip = True
        else:
            raise ValueError(f"Unknown relation {relation!r} for {entity_type.value!r}")

        if instance_id != GLOBAL_INSTANCE:
            stmt = stmt.where(EntityRelation.instance_id == instance_id)

        rows = self._fetch(stmt, entity_type, relation)
        if flip:
            return {(row.instance_id, row.entity_id) for row in rows}
        return {(row.instance_id, row.related_id) for row in rows}

    def relation_map(
        self, entity_type: EntityType, relation: str
    ) -> dict[EntityKey, set[EntityKey]]:
        if (entity_type, relation) in STORED_RELATIONS:
            rows = self._fetch(self._edges(entity_type, relation), entity_type, relation)
            flip = False
        elif (entity_type, relation) in INVERSE_RELATIONS:
            source_type, source_relation = INVERSE_RELATIONS[(entity_type, relation)]
            rows = self._fetch(self._edges(source_type, source_relation), entity_type, relation)
            flip = True
        else:
            raise ValueError(f"Unknown relation {relation!r} for {entity_type.value!r}")

        result: dict[EntityKey, set[EntityKey]] = defaultdict(set)
        for row in rows:
            subject = (row.instance_id, row.entity_id)
            related = (row.instance_id, row.related_id)
            if flip:
                subject, related = related, subject
            result[subject].add(related)
        return dict(result)

    def _edges(self, entity_type: EntityType, relation: str):
        """Select live edges of one stored relation."""
        related_type = STORED_RELATIONS[(entity_type, relation)]
        subject = aliased(MirroredEntity)
        target = aliased(MirroredEntity)
        return (
            select(
                EntityRelation.instance_id,
                EntityRelation.entity_id,
                EntityRelation.related_id,
            )
            .join(
                subject,
                (subject.instance_id == EntityRelation.instance_id)
                & (subject.entity_type == EntityRelation.entity_type)
                & (subject.entity_id == EntityRelation.entity_id),
            )
            .join(
                target,
                (target.instance_id == EntityRelation.instance_id)
                & (target.entity_type == EntityRelation.related_type)
                & (target.entity_id == EntityRelation.related_id),
            )
            .where(
                EntityRelation.entity_type == entity_type.value,
                EntityRelation.relation == relation,
                EntityRelation.related_type == related_type.value,
                subject.deleted_at.is_(None),
                target.deleted_at.is_(None),
            )
        )

    def _fetch(self, stmt, entity_type: EntityType, operation: str) -> list:
        db = self.session_factory()
        try:
            if self.statement_timeout_ms and db.get_bind().dialect.name == "postgresql":
                timeout = str(self.statement_timeout_ms)
                db.execute(select(func.set_config("statement_timeout", timeout, True)))
            return list(db.execute(stmt).all())
        except SQLAlchemyError as e:
            if isinstance(getattr(e, "orig", None), QueryCanceled):
                logger.warning(
                    "catalog_query_timed_out",
                    entity_type=entity_type.value,
                    operation=operation,
                    timeout_ms=self.statement_timeout_ms,
                )
                raise RecomputeTimeoutError(
                    f"Entity catalog query timed out for {entity_type.value}"
                ) from e
            logger.error(
                "catalog_query_failed",
                entity_type=entity_type.value,
                operation=operation,
                error=str(e),
            )
            raise CatalogUnavailableError(
                f"Entity catalog unavailable for {entity_type.value}"
            ) from e
        finally:
            db.close()
