# services/user_service.py - registration, login and the current user's profile
import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from wellness_api.database.models import Doctor, User, UserRole
from wellness_api.database.store import assign, get_or_404, save
from wellness_api.errors import AuthenticationError
from wellness_api.integrations.credentials import hash_password, verify_password

from .access_policy import Action, EntityKind, Principal, ensure, writable_fields

logger = logging.getLogger(__name__)


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def principal_for(db: Session, user: User) -> Principal:
    """Principal for ``user``, with the doctor profile id resolved for doctors"""
    doctor_id = None
    if user.role == UserRole.DOCTOR.value:
        doctor_id = db.query(Doctor.id).filter(Doctor.user_id == user.id).scalar()
    return Principal(user_id=user.id, role=user.role, doctor_id=doctor_id)


def register(db: Session, name: str, email: str, password: str,
             phone: Optional[str] = None, address: Optional[str] = None) -> User:
    """New account; the role is always ``user``"""
    ensure(None, Action.CREATE, EntityKind.USER)
    user = User(
        name=name,
        email=_normalize_email(email),
        password_hash=hash_password(password),
        role=UserRole.USER.value,
        phone=phone,
        address=address,
    )
    save(db, user)
    logger.info("User %s registered", user.id)
    return user


def login(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == _normalize_email(email)).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise AuthenticationError("Invalid credentials")
    return user


def get_me(db: Session, principal: Principal) -> User:
    user = get_or_404(db, User, principal.user_id if principal else None, "User")
    ensure(principal, Action.READ, EntityKind.USER, user)
    return user


def update_details(db: Session, principal: Principal, changes: Mapping) -> User:
    """Update the caller's own name, email, phone, address and image"""
    user = get_or_404(db, User, principal.user_id if principal else None, "User")
    ensure(principal, Action.UPDATE, EntityKind.USER, user)

    changes = dict(changes)
    if "email" in changes:
        changes["email"] = _normalize_email(changes["email"])

    assign(user, changes, writable_fields(principal, EntityKind.USER, user))
    return save(db, user)
