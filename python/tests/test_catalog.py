"""Tests for the SQL-backed entity catalog over the mirror tables."""

from datetime import UTC, datetime

import pytest
from psycopg.errors import QueryCanceled
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from curtain.db.engine import create_db_engine
from curtain.db.models import EntityType, MirroredEntity
from curtain.db.session import create_session_factory
from curtain.errors import ApiErrorCode, CatalogUnavailableError, RecomputeTimeoutError
from curtain.services.catalog import SqlEntityCatalog
from curtain.services.exclusions import recompute_user_exclusions
from tests.factories import create_rule, exclusion_rows
from tests.fixtures import build_library_catalog, seed_mirror


@pytest.fixture
def sql_catalog(db_session, session_factory):
    seed_mirror(db_session)
    return SqlEntityCatalog(session_factory)


def _soft_delete(db_session, entity_type, entity_id):
    db_session.execute(
        update(MirroredEntity)
        .where(
            MirroredEntity.entity_type == entity_type.value,
            MirroredEntity.entity_id == entity_id,
        )
        .values(deleted_at=datetime.now(UTC))
    )
    db_session.commit()


class TestEnumeration:
    def test_all_ids(self, sql_catalog):
        assert sql_catalog.all_ids(EntityType.scene) == {
            ("main", "S1"),
            ("main", "S2"),
            ("main", "S3"),
        }

    def test_instance_filter(self, db_session, sql_catalog):
        seed_mirror(db_session, instance_id="backup")

        assert len(sql_catalog.all_ids(EntityType.tag)) == 10
        assert sql_catalog.all_ids(EntityType.tag, "backup") == {
            ("backup", f"T{i}") for i in range(1, 6)
        }

    def test_soft_deleted_entities_are_skipped(self, db_session, sql_catalog):
        _soft_delete(db_session, EntityType.scene, "S2")

        assert ("main", "S2") not in sql_catalog.all_ids(EntityType.scene)

    def test_missing_tables_raise_unavailable(self):
        engine = create_db_engine("sqlite://")
        catalog = SqlEntityCatalog(create_session_factory(engine))

        with pytest.raises(CatalogUnavailableError):
            catalog.all_ids(EntityType.scene)
        engine.dispose()


class TestRelations:
    def test_stored_relation_map(self, sql_catalog):
        assert sql_catalog.relation_map(EntityType.scene, "performers") == {
            ("main", "S1"): {("main", "P1")},
            ("main", "S2"): {("main", "P1")},
            ("main", "S3"): {("main", "P2")},
        }

    def test_inverse_relation_map(self, sql_catalog):
        assert sql_catalog.relation_map(EntityType.performer, "scenes") == {
            ("main", "P1"): {("main", "S1"), ("main", "S2")},
            ("main", "P2"): {("main", "S3")},
        }

    def test_edges_to_deleted_entities_are_dropped(self, db_session, sql_catalog):
        _soft_delete(db_session, EntityType.performer, "P1")

        assert sql_catalog.relation_map(EntityType.scene, "performers") == {
            ("main", "S3"): {("main", "P2")},
        }

    def test_related_ids(self, sql_catalog):
        assert sql_catalog.related_ids(EntityType.gallery, "G1", "images") == {
            ("main", "I1"),
            ("main", "I2"),
        }
        assert sql_catalog.related_ids(EntityType.scene, "S1", "tags", "main") == {("main", "T1")}
        assert sql_catalog.related_ids(EntityType.scene, "S1", "tags", "backup") == set()

    def test_unknown_relation(self, sql_catalog):
        with pytest.raises(ValueError):
            sql_catalog.relation_map(EntityType.tag, "images")


class TestMatchesInMemoryCatalog:
    def test_same_exclusions(self, db_session, sql_catalog, user_id, admin_id):
        for uid in (user_id, admin_id):
            create_rule(db_session, uid, "scene", "EXCLUDE", ["S3"], restrict_empty=True)
            create_rule(db_session, uid, "performer", "INCLUDE", ["P2"])

        recompute_user_exclusions(db_session, sql_catalog, user_id)
        recompute_user_exclusions(db_session, build_library_catalog(), admin_id)

        rows = exclusion_rows(db_session, user_id)
        assert rows == exclusion_rows(db_session, admin_id)
        assert ("scene", "main", "S1", "cascade") in rows


class _CanceledSession:
    """Session whose every query is canceled by the server."""

    def __init__(self, engine):
        self.engine = engine

    def get_bind(self):
        return self.engine

    def execute(self, stmt):
        raise OperationalError(
            "SELECT 1", {}, QueryCanceled("canceling statement due to statement timeout")
        )

    def close(self):
        pass


class TestStatementTimeout:
    def test_timeout_is_ignored_on_sqlite(self, db_session, session_factory):
        seed_mirror(db_session)
        catalog = SqlEntityCatalog(session_factory, statement_timeout_ms=1000)

        assert len(catalog.all_ids(EntityType.tag)) == 5

    def test_canceled_query_raises_timeout(self, engine):
        catalog = SqlEntityCatalog(lambda: _CanceledSession(engine), statement_timeout_ms=50)

        with pytest.raises(RecomputeTimeoutError) as exc_info:
            catalog.relation_map(EntityType.scene, "performers")
        assert exc_info.value.code == ApiErrorCode.E_RECOMPUTE_TIMEOUT
