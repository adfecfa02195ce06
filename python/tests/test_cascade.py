"""Tests for the cascade resolver and the exclusion set."""

from curtain.db.models import EntityType, ExclusionReason
from curtain.services.cascade import ExclusionSet, resolve_cascades, should_cascade
from curtain.services.exclusions import load_relation_maps
from tests.fixtures import build_library_catalog


def _catalog_keys(catalog):
    return {t: catalog.all_ids(t) for t in EntityType}


class TestExclusionSet:
    """Membership and reason precedence."""

    def test_global_key_covers_every_instance(self):
        excluded = ExclusionSet()
        excluded.add(EntityType.performer, ("", "P1"), ExclusionReason.hidden)

        assert excluded.contains(EntityType.performer, ("main", "P1"))
        assert excluded.contains(EntityType.performer, ("other", "P1"))
        assert not excluded.contains(EntityType.scene, ("main", "P1"))

    def test_instance_key_does_not_cover_other_instances(self):
        excluded = ExclusionSet()
        excluded.add(EntityType.tag, ("main", "T1"), ExclusionReason.restricted)

        assert excluded.contains(EntityType.tag, ("main", "T1"))
        assert not excluded.contains(EntityType.tag, ("other", "T1"))

    def test_higher_ranked_reason_wins(self):
        excluded = ExclusionSet()
        assert excluded.add(EntityType.tag, ("main", "T1"), ExclusionReason.cascade)
        assert not excluded.add(EntityType.tag, ("main", "T1"), ExclusionReason.restricted)
        assert not excluded.add(EntityType.tag, ("main", "T1"), ExclusionReason.hidden)

        assert excluded.reason(EntityType.tag, ("main", "T1")) == ExclusionReason.restricted
        assert excluded.count() == 1

    def test_global_key_absorbs_scoped_keys(self):
        excluded = ExclusionSet()
        excluded.add(EntityType.tag, ("main", "T3"), ExclusionReason.restricted)
        excluded.add(EntityType.tag, ("other", "T3"), ExclusionReason.cascade)

        assert not excluded.add(EntityType.tag, ("", "T3"), ExclusionReason.hidden)

        assert excluded.entries(EntityType.tag) == {("", "T3"): ExclusionReason.restricted}

    def test_scoped_key_under_global_key_upgrades_it(self):
        excluded = ExclusionSet()
        excluded.add(EntityType.tag, ("", "T3"), ExclusionReason.hidden)

        assert not excluded.add(EntityType.tag, ("main", "T3"), ExclusionReason.restricted)

        assert excluded.entries(EntityType.tag) == {("", "T3"): ExclusionReason.restricted}
        assert excluded.reason(EntityType.tag, ("main", "T3")) == ExclusionReason.restricted


class TestShouldCascade:
    """Justifying group evaluation."""

    def test_fully_excluded_group_cascades(self):
        catalog = build_library_catalog()
        maps = load_relation_maps(catalog, [EntityType.scene])
        excluded = ExclusionSet()
        excluded.add(EntityType.performer, ("", "P1"), ExclusionReason.hidden)

        assert should_cascade(EntityType.scene, ("main", "S2"), excluded, maps)

    def test_partially_excluded_group_does_not_cascade(self):
        catalog = build_library_catalog()
        catalog.relate(EntityType.scene, "S2", "performers", "P2")
        maps = load_relation_maps(catalog, [EntityType.scene])
        excluded = ExclusionSet()
        excluded.add(EntityType.performer, ("", "P1"), ExclusionReason.hidden)

        assert not should_cascade(EntityType.scene, ("main", "S2"), excluded, maps)

    def test_entity_without_related_entities_never_cascades(self):
        catalog = build_library_catalog()
        catalog.add(EntityType.scene, "S9")
        maps = load_relation_maps(catalog, [EntityType.scene])
        excluded = ExclusionSet()
        for performer_id in ("P1", "P2"):
            excluded.add(EntityType.performer, ("", performer_id), ExclusionReason.hidden)

        assert not should_cascade(EntityType.scene, ("main", "S9"), excluded, maps)

    def test_combined_group_needs_every_member_excluded(self):
        """P2 appears in scene S3 and image I1; both must be gone."""
        catalog = build_library_catalog()
        maps = load_relation_maps(catalog, [EntityType.performer])
        excluded = ExclusionSet()
        excluded.add(EntityType.scene, ("main", "S3"), ExclusionReason.restricted)

        assert not should_cascade(EntityType.performer, ("main", "P2"), excluded, maps)

        excluded.add(EntityType.image, ("main", "I1"), ExclusionReason.restricted)
        assert should_cascade(EntityType.performer, ("main", "P2"), excluded, maps)


class TestResolveCascades:
    """Fixed-point resolution."""

    def test_only_flagged_types_cascade(self):
        catalog = build_library_catalog()
        excluded = ExclusionSet()
        excluded.add(EntityType.performer, ("", "P1"), ExclusionReason.hidden)

        result = resolve_cascades(_catalog_keys(catalog), {}, excluded, [])

        assert result.total == 0
        assert not excluded.contains(EntityType.scene, ("main", "S1"))

    def test_sole_performer_hidden_cascades_scenes(self):
        catalog = build_library_catalog()
        maps = load_relation_maps(catalog, [EntityType.scene])
        excluded = ExclusionSet()
        excluded.add(EntityType.performer, ("", "P1"), ExclusionReason.hidden)

        result = resolve_cascades(_catalog_keys(catalog), maps, excluded, [EntityType.scene])

        assert result.added == {EntityType.scene: {("main", "S1"), ("main", "S2")}}
        assert excluded.reason(EntityType.scene, ("main", "S1")) == ExclusionReason.cascade
        assert not excluded.contains(EntityType.scene, ("main", "S3"))

    def test_chained_cascade_reaches_fixed_point(self):
        """Hiding T4 removes P1 (its only tag), which removes S1 and S2."""
        catalog = build_library_catalog()
        cascade_types = [EntityType.scene, EntityType.performer]
        maps = load_relation_maps(catalog, cascade_types)
        keys = _catalog_keys(catalog)
        excluded = ExclusionSet()
        excluded.add(EntityType.tag, ("", "T4"), ExclusionReason.hidden)

        result = resolve_cascades(keys, maps, excluded, cascade_types)

        assert ("main", "P1") in result.added[EntityType.performer]
        assert {("main", "S1"), ("main", "S2")} <= result.added[EntityType.scene]
        assert result.passes >= 2

        again = resolve_cascades(keys, maps, excluded, cascade_types)
        assert again.total == 0
        assert again.passes == 1

    def test_gallery_cascades_when_all_images_excluded(self):
        catalog = build_library_catalog()
        maps = load_relation_maps(catalog, [EntityType.gallery])
        excluded = ExclusionSet()
        excluded.add(EntityType.image, ("main", "I1"), ExclusionReason.restricted)

        result = resolve_cascades(_catalog_keys(catalog), maps, excluded, [EntityType.gallery])
        assert result.total == 0

        excluded.add(EntityType.image, ("", "I2"), ExclusionReason.hidden)
        result = resolve_cascades(_catalog_keys(catalog), maps, excluded, [EntityType.gallery])
        assert result.added == {EntityType.gallery: {("main", "G1")}}
