# services/lab_service.py - diagnostic labs
import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from wellness_api.database.models import Appointment, Lab, User, UserRole
from wellness_api.database.store import assign, get_or_404, remove, save
from wellness_api.errors import InvalidStateError

from .access_policy import LAB_FIELDS, Action, EntityKind, Principal, ensure, writable_fields
from .api_features import list_records
from .locations import coordinate_pair

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "address", "services")

LOCATION_REQUIRED = "Latitude and longitude are required for lab location."


def list_labs(db: Session, query_params: Optional[Mapping] = None) -> dict:
    return list_records(db.query(Lab), Lab, query_params or {}, SEARCH_FIELDS)


def get_lab(db: Session, lab_id) -> Lab:
    return get_or_404(db, Lab, lab_id, "Lab")


def add_lab(db: Session, principal: Principal, data: Mapping) -> Lab:
    """Create a lab owned by ``data["user_id"]``, or by the creating admin"""
    ensure(principal, Action.CREATE, EntityKind.LAB)
    coordinate_pair(data, required=True, message=LOCATION_REQUIRED)

    owner_ref = data.get("user_id")
    owner = get_or_404(db, User, owner_ref if owner_ref is not None else principal.user_id, "User")

    lab = Lab(user_id=owner.id)
    assign(lab, data, LAB_FIELDS)

    promoted = owner.role == UserRole.USER.value
    if promoted:
        owner.role = UserRole.LAB_STAFF.value

    save(db, lab, owner)
    logger.info("Lab %s (%s) added by user %s", lab.id, lab.name, principal.user_id)
    if promoted:
        logger.info("User %s promoted to lab_staff as owner of lab %s", owner.id, lab.id)
    return lab


def update_lab(db: Session, principal: Principal, lab_id, changes: Mapping) -> Lab:
    lab = get_or_404(db, Lab, lab_id, "Lab")
    ensure(principal, Action.UPDATE, EntityKind.LAB, lab)
    coordinate_pair(changes)

    assign(lab, changes, writable_fields(principal, EntityKind.LAB, lab))
    return save(db, lab)


def delete_lab(db: Session, principal: Principal, lab_id) -> None:
    lab = get_or_404(db, Lab, lab_id, "Lab")
    ensure(principal, Action.DELETE, EntityKind.LAB, lab)

    if db.query(Appointment.id).filter(Appointment.lab_id == lab.id).first() is not None:
        raise InvalidStateError("Lab has appointments and cannot be deleted")

    remove(db, lab)
    logger.info("Lab %s deleted by admin %s", lab_id, principal.user_id)
