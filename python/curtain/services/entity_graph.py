"""Entity relationship graph definitions.

Describes which relations exist between mirrored entity types and which of
them justify showing an entity. Shared by the catalog (to answer relation
lookups) and by the cascade resolver (to decide what to check).

Keys:
    An EntityKey is (instance_id, entity_id). Entity IDs are only unique
    inside one source instance. GLOBAL_INSTANCE ("") names an ID in every
    instance and is used for hidden entities and EXCLUDE deny-lists that do
    not pin an instance.
"""

from curtain.db.models import EntityType
from curtain.errors import ApiErrorCode, InvalidRequestError

GLOBAL_INSTANCE = ""

EntityKey = tuple[str, str]

# (subject type, relation) -> related type. Stored in entity_relations.
STORED_RELATIONS: dict[tuple[EntityType, str], EntityType] = {
    (EntityType.scene, "performers"): EntityType.performer,
    (EntityType.scene, "studio"): EntityType.studio,
    (EntityType.scene, "tags"): EntityType.tag,
    (EntityType.scene, "groups"): EntityType.group,
    (EntityType.scene, "galleries"): EntityType.gallery,
    (EntityType.image, "performers"): EntityType.performer,
    (EntityType.image, "studio"): EntityType.studio,
    (EntityType.image, "tags"): EntityType.tag,
    (EntityType.image, "galleries"): EntityType.gallery,
    (EntityType.performer, "tags"): EntityType.tag,
    (EntityType.studio, "tags"): EntityType.tag,
    (EntityType.group, "tags"): EntityType.tag,
}

# (subject type, relation) -> the stored relation it reverses.
INVERSE_RELATIONS: dict[tuple[EntityType, str], tuple[EntityType, str]] = {
    (EntityType.performer, "scenes"): (EntityType.scene, "performers"),
    (EntityType.performer, "images"): (EntityType.image, "performers"),
    (EntityType.studio, "scenes"): (EntityType.scene, "studio"),
    (EntityType.studio, "images"): (EntityType.image, "studio"),
    (EntityType.group, "scenes"): (EntityType.scene, "groups"),
    (EntityType.gallery, "images"): (EntityType.image, "galleries"),
    (EntityType.tag, "scenes"): (EntityType.scene, "tags"),
    (EntityType.tag, "performers"): (EntityType.performer, "tags"),
    (EntityType.tag, "studios"): (EntityType.studio, "tags"),
    (EntityType.tag, "groups"): (EntityType.group, "tags"),
}

# Subject type -> justifying relation groups. A subject cascades when, for any
# one group, the union of its related entities is non-empty and fully excluded.
CASCADE_RULES: dict[EntityType, tuple[tuple[str, ...], ...]] = {
    EntityType.scene: (("performers",), ("studio",), ("tags",), ("groups",), ("galleries",)),
    EntityType.image: (("performers",), ("studio",), ("tags",), ("galleries",)),
    EntityType.gallery: (("images",),),
    EntityType.performer: (("scenes", "images"), ("tags",)),
    EntityType.studio: (("scenes", "images"), ("tags",)),
    EntityType.group: (("scenes",), ("tags",)),
    EntityType.tag: (("scenes", "performers", "studios", "groups"),),
}


def related_type(entity_type: EntityType, relation: str) -> EntityType:
    """Return the entity type reached through a relation.

    Raises:
        ValueError: If the relation is not defined for the entity type.
    """
    key = (entity_type, relation)
    if key in STORED_RELATIONS:
        return STORED_RELATIONS[key]
    if key in INVERSE_RELATIONS:
        return INVERSE_RELATIONS[key][0]
    raise ValueError(f"Unknown relation {relation!r} for entity type {entity_type.value!r}")


def cascade_relations(entity_type: EntityType) -> list[str]:
    """Every relation consulted when cascading entities of a type."""
    seen: list[str] = []
    for group in CASCADE_RULES.get(entity_type, ()):
        for relation in group:
            if relation not in seen:
                seen.append(relation)
    return seen


def parse_entity_type(value: str) -> EntityType:
    """Parse an entity type string at a trust boundary.

    Raises:
        InvalidRequestError(E_INVALID_ENTITY_TYPE): If the value is unknown.
    """
    try:
        return EntityType(value)
    except ValueError as e:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_ENTITY_TYPE, f"Invalid entity type: {value}"
        ) from e
