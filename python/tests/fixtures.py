"""Sample library shared by tests and the dev seed script.

One source instance ("main"):

    scenes      S1 (P1, ST1, T1, GR1)   S2 (P1, T2)   S3 (P2, ST1, T3)
    performers  P1 (T4)   P2
    studios     ST1
    tags        T1 T2 T3 T4 T5
    galleries   G1
    images      I1 (P2, G1)   I2 (G1)
    groups      GR1

P1 is the sole performer of S1 and S2. T5 is referenced by nothing.
"""

from sqlalchemy.orm import Session

from curtain.db.models import EntityRelation, EntityType, MirroredEntity
from curtain.services.entity_graph import STORED_RELATIONS
from tests.support.catalog import StaticEntityCatalog

LIBRARY_INSTANCE = "main"

LIBRARY_ENTITIES: dict[EntityType, list[str]] = {
    EntityType.scene: ["S1", "S2", "S3"],
    EntityType.performer: ["P1", "P2"],
    EntityType.studio: ["ST1"],
    EntityType.tag: ["T1", "T2", "T3", "T4", "T5"],
    EntityType.gallery: ["G1"],
    EntityType.image: ["I1", "I2"],
    EntityType.group: ["GR1"],
}

# (subject type, subject id, relation, related ids)
LIBRARY_RELATIONS: list[tuple[EntityType, str, str, list[str]]] = [
    (EntityType.scene, "S1", "performers", ["P1"]),
    (EntityType.scene, "S1", "studio", ["ST1"]),
    (EntityType.scene, "S1", "tags", ["T1"]),
    (EntityType.scene, "S1", "groups", ["GR1"]),
    (EntityType.scene, "S2", "performers", ["P1"]),
    (EntityType.scene, "S2", "tags", ["T2"]),
    (EntityType.scene, "S3", "performers", ["P2"]),
    (EntityType.scene, "S3", "studio", ["ST1"]),
    (EntityType.scene, "S3", "tags", ["T3"]),
    (EntityType.performer, "P1", "tags", ["T4"]),
    (EntityType.image, "I1", "performers", ["P2"]),
    (EntityType.image, "I1", "galleries", ["G1"]),
    (EntityType.image, "I2", "galleries", ["G1"]),
]


def build_library_catalog(instance_id: str = LIBRARY_INSTANCE) -> StaticEntityCatalog:
    """Build the sample library as an in-memory catalog."""
    catalog = StaticEntityCatalog()
    for entity_type, entity_ids in LIBRARY_ENTITIES.items():
        catalog.add(entity_type, *entity_ids, instance_id=instance_id)
    for entity_type, entity_id, relation, related_ids in LIBRARY_RELATIONS:
        catalog.relate(entity_type, entity_id, relation, *related_ids, instance_id=instance_id)
    return catalog


def seed_mirror(session: Session, instance_id: str = LIBRARY_INSTANCE) -> int:
    """Write the sample library into the mirror tables.

    Returns:
        Number of entities written.
    """
    count = 0
    for entity_type, entity_ids in LIBRARY_ENTITIES.items():
        for entity_id in entity_ids:
            session.merge(
                MirroredEntity(
                    instance_id=instance_id,
                    entity_type=entity_type.value,
                    entity_id=entity_id,
                )
            )
            count += 1

    for entity_type, entity_id, relation, related_ids in LIBRARY_RELATIONS:
        related_type = STORED_RELATIONS[(entity_type, relation)]
        for related_id in related_ids:
            session.add(
                EntityRelation(
                    instance_id=instance_id,
                    entity_type=entity_type.value,
                    entity_id=entity_id,
                    relation=relation,
                    related_type=related_type.value,
                    related_id=related_id,
                )
            )
    session.commit()
    return count
