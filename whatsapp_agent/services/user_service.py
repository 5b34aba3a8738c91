from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_agent.logging_config import get_logger
from whatsapp_agent.models import User
from whatsapp_agent.services.clock import utcnow
from whatsapp_agent.services.errors import PersistenceError, UserLookupError

logger = get_logger("user_service")

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def get_user_by_phone(db: Session, phone: str) -> Optional[User]:
    return (
        db.query(User)
        .filter(User.phone == phone)
        .execution_options(populate_existing=True)
        .first()
    )


def get_user(db: Session, user_id: UUID) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def _upsert_user(db: Session, phone: str, name: Optional[str]) -> None:
    insert = _UPSERT_DIALECTS[db.get_bind().dialect.name]
    now = utcnow()
    stmt = insert(User).values(
        phone=phone,
        name=name,
        is_banned=False,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[User.phone],
        set_={
            "name": func.coalesce(stmt.excluded.name, User.name),
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)


def _find_then_create(db: Session, phone: str, name: Optional[str]) -> None:
    user = get_user_by_phone(db, phone)
    now = utcnow()
    if user:
        if name:
            user.name = name
        user.updated_at = now
        db.flush()
        return
    try:
        with db.begin_nested():
            db.add(User(phone=phone, name=name, is_banned=False, created_at=now, updated_at=now))
    except IntegrityError:
        # Concurrent first contact created the row between our read and insert.
        logger.info(f"User {phone} created concurrently, reusing existing row")


def get_or_create_user(db: Session, phone: str, name: Optional[str] = None) -> User:
    """Find user by phone or create one, race-safe under concurrent first contact.

    A non-empty ``name`` replaces the stored display name; ``None`` keeps it.
    """
    name = (name or "").strip() or None
    try:
        if db.get_bind().dialect.name in _UPSERT_DIALECTS:
            _upsert_user(db, phone, name)
        else:
            _find_then_create(db, phone, name)
        db.commit()
        user = get_user_by_phone(db, phone)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Error finding or creating user: phone={phone}, error={exc}")
        raise UserLookupError("Could not find or create user") from exc

    if user is None:
        raise UserLookupError("User row missing after upsert")
    return user


def set_user_banned(db: Session, phone: str, banned: bool) -> Optional[User]:
    """Ban or unban a user. Returns None when the phone is unknown."""
    user = get_user_by_phone(db, phone)
    if not user:
        return None
    try:
        user.is_banned = banned
        user.updated_at = utcnow()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Could not update ban flag: {exc}") from exc
    logger.info(f"User {'banned' if banned else 'unbanned'}: phone={phone}")
    return user
