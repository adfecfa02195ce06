"""Restriction rule store.

One rule per (user, entity type). Writes fully replace a user's rule set in a
single transaction and never touch the exclusion store; recompute is an
explicit, separate step.
"""

from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from curtain.db.models import EntityType, RestrictionMode, RestrictionRule, User
from curtain.db.session import transaction
from curtain.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from curtain.logging import get_logger
from curtain.schemas.restrictions import RestrictionRuleIn, RestrictionRuleOut
from curtain.services.entity_graph import parse_entity_type

logger = get_logger(__name__)


def ensure_user_exists(db: Session, user_id: int) -> User:
    """Load a user or raise NotFoundError(E_USER_NOT_FOUND)."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return user


def parse_mode(value: str) -> RestrictionMode:
    """Parse a rule mode.

    Raises:
        InvalidRequestError(E_INVALID_MODE): If the value is not INCLUDE or EXCLUDE.
    """
    try:
        return RestrictionMode(value)
    except ValueError as e:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_MODE, f"Invalid mode: {value}") from e


def _to_out(rule: RestrictionRule) -> RestrictionRuleOut:
    return RestrictionRuleOut(
        user_id=rule.user_id,
        entity_type=rule.entity_type,
        mode=rule.mode,
        entity_ids=list(rule.entity_ids or []),
        restrict_empty=rule.restrict_empty,
        created_at=rule.created_at,
        updated_at=rule.updated_at,
    )


def _load_rules(db: Session, user_id: int) -> list[RestrictionRule]:
    return list(
        db.scalars(
            select(RestrictionRule)
            .where(RestrictionRule.user_id == user_id)
            .order_by(RestrictionRule.entity_type)
        ).all()
    )


def get_rules(db: Session, user_id: int) -> list[RestrictionRuleOut]:
    """Return a user's rules ordered by entity type.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): If the user does not exist.
    """
    ensure_user_exists(db, user_id)
    return [_to_out(rule) for rule in _load_rules(db, user_id)]


def set_rules(
    db: Session, user_id: int, rules: list[RestrictionRuleIn]
) -> list[RestrictionRuleOut]:
    """Replace every rule of a user.

    The whole payload is validated before anything is written.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): If the user does not exist.
        InvalidRequestError(E_INVALID_ENTITY_TYPE): Unknown entity type.
        InvalidRequestError(E_INVALID_MODE): Unknown mode.
        InvalidRequestError(E_INVALID_REQUEST): Two rules for one entity type.
    """
    ensure_user_exists(db, user_id)

    parsed: list[tuple[EntityType, RestrictionMode, list[str], bool]] = []
    seen: set[EntityType] = set()
    for rule in rules:
        entity_type = parse_entity_type(rule.entity_type)
        mode = parse_mode(rule.mode)
        if entity_type in seen:
            raise InvalidRequestError(
                ApiErrorCode.E_INVALID_REQUEST,
                f"Duplicate rule for entity type: {entity_type.value}",
            )
        seen.add(entity_type)
        entity_ids = list(dict.fromkeys(rule.entity_ids))
        parsed.append((entity_type, mode, entity_ids, rule.restrict_empty))

    now = datetime.now(UTC)
    with transaction(db):
        db.execute(delete(RestrictionRule).where(RestrictionRule.user_id == user_id))
        for entity_type, mode, entity_ids, restrict_empty in parsed:
            db.add(
                RestrictionRule(
                    user_id=user_id,
                    entity_type=entity_type.value,
                    mode=mode.value,
                    entity_ids=entity_ids,
                    restrict_empty=restrict_empty,
                    created_at=now,
                    updated_at=now,
                )
            )

    logger.info("restriction_rules_replaced", target_user_id=user_id, rule_count=len(parsed))
    return [_to_out(rule) for rule in _load_rules(db, user_id)]


def delete_rules(db: Session, user_id: int) -> int:
    """Remove every rule of a user. Returns the number removed.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): If the user does not exist.
    """
    ensure_user_exists(db, user_id)
    with transaction(db):
        result = db.execute(delete(RestrictionRule).where(RestrictionRule.user_id == user_id))

    logger.info("restriction_rules_deleted", target_user_id=user_id, deleted=result.rowcount)
    return result.rowcount


def rules_by_type(db: Session, user_id: int) -> dict[EntityType, RestrictionRule]:
    """Map each entity type with a rule to that rule. Read fresh on every call."""
    return {EntityType(rule.entity_type): rule for rule in _load_rules(db, user_id)}
