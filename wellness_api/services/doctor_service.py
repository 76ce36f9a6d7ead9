"""
Doctor profiles.

Creating a profile links it to an existing user and promotes that user to the
``doctor`` role in the same commit. A profile always has a clinic address and
a coordinate pair.
"""
import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from wellness_api.database.models import Appointment, Doctor, User, UserRole
from wellness_api.database.store import assign, canonical_id, get_or_404, remove, save
from wellness_api.errors import InvalidStateError, ValidationFailure

from .access_policy import DOCTOR_FIELDS, Action, EntityKind, Principal, ensure, writable_fields
from .api_features import list_records
from .locations import coordinate_pair

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "specialization", "clinic_address")

LOCATION_REQUIRED = "Latitude and longitude are required for clinic location."


def _normalized(data: Mapping) -> dict:
    data = dict(data)
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
    return data


def list_doctors(db: Session, query_params: Optional[Mapping] = None) -> dict:
    return list_records(db.query(Doctor), Doctor, query_params or {}, SEARCH_FIELDS)


def get_doctor(db: Session, doctor_id) -> Doctor:
    return get_or_404(db, Doctor, doctor_id, "Doctor")


def create_doctor(db: Session, principal: Principal, data: Mapping) -> Doctor:
    ensure(principal, Action.CREATE, EntityKind.DOCTOR)
    data = _normalized(data)

    user_id = canonical_id(data.get("user_id"))
    if user_id is not None and db.query(Doctor.id).filter(Doctor.user_id == user_id).first():
        raise InvalidStateError("This user already has a doctor profile")
    user = get_or_404(db, User, data.get("user_id"), "User")

    coordinate_pair(data, required=True, message=LOCATION_REQUIRED)
    if not data.get("clinic_address"):
        raise ValidationFailure("Clinic address is required")

    doctor = Doctor(user_id=user.id)
    assign(doctor, data, DOCTOR_FIELDS)
    previous_role = user.role
    user.role = UserRole.DOCTOR.value

    save(db, doctor, user)
    logger.info(
        "Doctor profile %s created for user %s (role %s -> doctor)",
        doctor.id, user.id, previous_role,
    )
    return doctor


def update_doctor(db: Session, principal: Principal, doctor_id, changes: Mapping) -> Doctor:
    doctor = get_or_404(db, Doctor, doctor_id, "Doctor")
    ensure(principal, Action.UPDATE, EntityKind.DOCTOR, doctor)
    changes = _normalized(changes)

    # Coordinates only move as a pair, and the result keeps a full location
    coordinate_pair(changes)
    latitude = changes.get("latitude", doctor.latitude)
    longitude = changes.get("longitude", doctor.longitude)
    clinic_address = changes.get("clinic_address", doctor.clinic_address)
    if latitude is None or longitude is None or not clinic_address:
        raise ValidationFailure("A doctor needs both a clinic address and a location")

    assign(doctor, changes, writable_fields(principal, EntityKind.DOCTOR, doctor))
    return save(db, doctor)


def delete_doctor(db: Session, principal: Principal, doctor_id) -> None:
    doctor = get_or_404(db, Doctor, doctor_id, "Doctor")
    ensure(principal, Action.DELETE, EntityKind.DOCTOR, doctor)

    if db.query(Appointment.id).filter(Appointment.doctor_id == doctor.id).first() is not None:
        raise InvalidStateError("Doctor has appointments and cannot be deleted")

    remove(db, doctor)
    logger.info("Doctor %s deleted by admin %s", doctor_id, principal.user_id)
