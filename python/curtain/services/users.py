"""User lookups.

Accounts are managed outside this service; only reads happen here.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from curtain.db.models import User


def find_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def list_user_ids(db: Session) -> list[int]:
    """Every user ID in ascending order."""
    return list(db.scalars(select(User.id).order_by(User.id)).all())
