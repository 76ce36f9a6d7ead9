"""
Appointment booking workflow.

An appointment references exactly one doctor or one lab and keeps a snapshot
of that party's location taken at booking time. Status moves

    pending -> confirmed | cancelled
    confirmed -> completed | cancelled

and ``cancelled`` / ``completed`` are terminal.
"""
import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from wellness_api.database.models import (
    Appointment, AppointmentStatus, AppointmentType, Doctor, Lab, UserRole,
)
from wellness_api.database.store import get_or_404, remove, save
from wellness_api.errors import (
    AuthenticationError, ForbiddenError, InvalidStateError, NotFoundError, ValidationFailure,
)

from .access_policy import (
    Action, EntityKind, Principal, allowed_statuses, ensure, writable_fields,
)
from .api_features import list_records

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING.value: {AppointmentStatus.CONFIRMED.value, AppointmentStatus.CANCELLED.value},
    AppointmentStatus.CONFIRMED.value: {AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELLED.value},
    AppointmentStatus.CANCELLED.value: set(),
    AppointmentStatus.COMPLETED.value: set(),
}

STATUS_VALUES = {status.value for status in AppointmentStatus}
TYPE_VALUES = {kind.value for kind in AppointmentType}


# ==================== SERIALIZATION ====================

def _user_summary(user):
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email, "phone": user.phone}


def _doctor_summary(doctor):
    if doctor is None:
        return None
    return {
        "id": doctor.id,
        "name": doctor.name,
        "specialization": doctor.specialization,
        "email": doctor.email,
        "clinic_address": doctor.clinic_address,
        "location": doctor.location,
    }


def _lab_summary(lab):
    if lab is None:
        return None
    return {
        "id": lab.id,
        "name": lab.name,
        "address": lab.address,
        "email": lab.email,
        "phone": lab.phone,
        "location": lab.location,
    }


def serialize(appointment: Appointment, include_version: bool = False) -> dict:
    """Appointment with user / doctor / lab summaries embedded"""
    record = appointment.to_dict(include_version)
    record["user"] = _user_summary(appointment.user)
    record["doctor"] = _doctor_summary(appointment.doctor)
    record["lab"] = _lab_summary(appointment.lab)
    return record


# ==================== TRANSITIONS ====================

def check_transition(current: str, requested: str) -> None:
    """Raise ``InvalidStateError`` unless ``current -> requested`` is allowed"""
    if requested not in STATUS_VALUES:
        raise ValidationFailure(f"Invalid appointment status: {requested}")
    if requested == current:
        return
    if requested not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStateError(f"Cannot change appointment status from {current} to {requested}")


# ==================== READ ====================

def list_appointments(db: Session, principal: Principal, query_params: Optional[Mapping] = None) -> dict:
    if principal is None:
        raise AuthenticationError("Not authorized to access this route")
    query = db.query(Appointment)

    if principal.role == UserRole.USER.value:
        query = query.filter(Appointment.user_id == principal.user_id)
    elif principal.role == UserRole.DOCTOR.value:
        if principal.doctor_id is None:
            raise NotFoundError(f"No doctor profile found for user {principal.user_id}")
        query = query.filter(Appointment.doctor_id == principal.doctor_id)

    return list_records(
        query, Appointment, query_params or {},
        serializer=lambda record: serialize(record, include_version=True),
    )


def get_appointment(db: Session, principal: Principal, appointment_id) -> Appointment:
    appointment = get_or_404(db, Appointment, appointment_id, "Appointment")
    ensure(principal, Action.READ, EntityKind.APPOINTMENT, appointment)
    return appointment


# ==================== CREATE ====================

def create_appointment(db: Session, principal: Principal, data: Mapping) -> Appointment:
    """
    Book an appointment with a doctor or a lab.

    ``data`` carries ``doctor`` or ``lab`` (an id), ``appointment_date``,
    ``appointment_time`` and optionally ``type`` and ``reason``.
    """
    ensure(principal, Action.CREATE, EntityKind.APPOINTMENT)

    doctor_ref = data.get("doctor")
    lab_ref = data.get("lab")
    if doctor_ref is not None and lab_ref is not None:
        raise InvalidStateError("An appointment cannot be for both a doctor and a lab")
    if doctor_ref is None and lab_ref is None:
        raise InvalidStateError("Please provide a doctor or a lab for the appointment")

    requested_type = data.get("type")
    if requested_type is not None and requested_type not in TYPE_VALUES:
        raise ValidationFailure(f"Invalid appointment type: {requested_type}")

    appointment = Appointment(
        user_id=principal.user_id,
        appointment_date=data.get("appointment_date"),
        appointment_time=data.get("appointment_time"),
        reason=data.get("reason"),
        status=AppointmentStatus.PENDING.value,
    )

    if doctor_ref is not None:
        doctor = get_or_404(db, Doctor, doctor_ref, "Doctor")
        if requested_type == AppointmentType.LAB.value:
            raise InvalidStateError("Appointment type 'lab' requires a lab, not a doctor")
        appointment.doctor_id = doctor.id
        appointment.type = requested_type or AppointmentType.OFFLINE.value
        if doctor.location is not None and doctor.clinic_address:
            appointment.location_longitude = doctor.longitude
            appointment.location_latitude = doctor.latitude
            appointment.location_address = doctor.clinic_address
    else:
        lab = get_or_404(db, Lab, lab_ref, "Lab")
        appointment.lab_id = lab.id
        appointment.type = AppointmentType.LAB.value
        appointment.location_longitude = lab.longitude
        appointment.location_latitude = lab.latitude
        appointment.location_address = lab.address

    save(db, appointment)
    logger.info(
        "Appointment %s booked by user %s (doctor=%s lab=%s)",
        appointment.id, principal.user_id, appointment.doctor_id, appointment.lab_id,
    )
    return appointment


# ==================== UPDATE ====================

def update_appointment(db: Session, principal: Principal, appointment_id, changes: Mapping) -> Appointment:
    appointment = get_or_404(db, Appointment, appointment_id, "Appointment")
    ensure(principal, Action.UPDATE, EntityKind.APPOINTMENT, appointment)

    fields = writable_fields(principal, EntityKind.APPOINTMENT, appointment)
    statuses = allowed_statuses(principal, EntityKind.APPOINTMENT, appointment)

    if statuses is not None and changes.get("status") not in statuses:
        raise ForbiddenError(
            f"User {principal.user_id} is not authorized to update this appointment or perform this action"
        )

    updates = {field: changes[field] for field in fields if field in changes}

    if "type" in updates:
        new_type = updates["type"]
        if new_type not in TYPE_VALUES:
            raise ValidationFailure(f"Invalid appointment type: {new_type}")
        if appointment.lab_id is not None and new_type != AppointmentType.LAB.value:
            raise InvalidStateError("A lab appointment must keep type 'lab'")
        if appointment.doctor_id is not None and new_type == AppointmentType.LAB.value:
            raise InvalidStateError("Appointment type 'lab' requires a lab, not a doctor")

    if "status" in updates:
        check_transition(appointment.status, updates["status"])

    previous_status = appointment.status
    for field, value in updates.items():
        setattr(appointment, field, value)

    save(db, appointment)
    if appointment.status != previous_status:
        logger.info(
            "Appointment %s status %s -> %s by user %s",
            appointment.id, previous_status, appointment.status, principal.user_id,
        )
    return appointment


# ==================== DELETE ====================

def delete_appointment(db: Session, principal: Principal, appointment_id) -> None:
    appointment = get_or_404(db, Appointment, appointment_id, "Appointment")
    ensure(principal, Action.DELETE, EntityKind.APPOINTMENT, appointment)
    remove(db, appointment)
    logger.info("Appointment %s deleted by user %s", appointment_id, principal.user_id)
