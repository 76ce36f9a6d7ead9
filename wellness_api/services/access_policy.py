"""
Role-based access policy.

``can()`` answers "may this principal perform this action on this instance"
and, when the answer is no, says whether the instance is missing or the
principal lacks permission. ``writable_fields()`` is the per-role allow-list
every update is built from.
"""
import enum
from dataclasses import dataclass
from typing import FrozenSet, Optional

from wellness_api.database.models import AppointmentStatus, OrderStatus, UserRole
from wellness_api.database.store import same_id
from wellness_api.errors import AuthenticationError, ForbiddenError, NotFoundError


class Action(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntityKind(str, enum.Enum):
    USER = "user"
    MEDICINE = "medicine"
    DOCTOR = "doctor"
    LAB = "lab"
    APPOINTMENT = "appointment"
    ORDER = "order"


class DenyReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class Principal:
    """Authenticated actor; ``doctor_id`` is set for users with a doctor profile"""
    user_id: int
    role: str
    doctor_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None
    message: str = ""

    def __bool__(self):
        return self.allowed

    def raise_for_denial(self) -> None:
        if self.allowed:
            return
        if self.reason is DenyReason.NOT_FOUND:
            raise NotFoundError(self.message)
        if self.reason is DenyReason.UNAUTHENTICATED:
            raise AuthenticationError(self.message)
        raise ForbiddenError(self.message)


ALLOW = Decision(True)

# ==================== WRITABLE FIELDS ====================

USER_PROFILE_FIELDS = frozenset({"name", "email", "phone", "address", "image_url"})

MEDICINE_FIELDS = frozenset({
    "name", "description", "price", "stock", "category", "image_urls",
    "manufacturer", "expiration_date",
})

DOCTOR_FIELDS = frozenset({
    "name", "specialization", "experience", "qualifications", "clinic_address",
    "latitude", "longitude", "phone", "email", "image_url", "availability",
})

LAB_FIELDS = frozenset({
    "name", "address", "phone", "email", "services", "operating_hours",
    "latitude", "longitude",
})

# References and the location snapshot are never writable
APPOINTMENT_ADMIN_FIELDS = frozenset({
    "appointment_date", "appointment_time", "type", "status", "reason",
})
APPOINTMENT_DOCTOR_FIELDS = frozenset({"status", "reason"})
APPOINTMENT_OWNER_FIELDS = frozenset({"status"})

ORDER_ADMIN_FIELDS = frozenset({"order_status", "is_paid", "is_delivered"})
ORDER_OWNER_FIELDS = frozenset({"order_status"})

NOTHING: FrozenSet[str] = frozenset()

# Status values a non-admin owner may request
OWNER_APPOINTMENT_STATUSES = frozenset({AppointmentStatus.CANCELLED.value})
OWNER_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED.value})


def _deny(reason: DenyReason, message: str) -> Decision:
    return Decision(False, reason, message)


def _forbidden(principal: Principal, action: Action, kind: EntityKind) -> Decision:
    return _deny(
        DenyReason.FORBIDDEN,
        f"User {principal.user_id} is not authorized to {action.value} this {kind.value}",
    )


# ==================== PER-KIND RULES ====================

def _is_assigned_doctor(principal: Principal, appointment) -> bool:
    return principal.role == UserRole.DOCTOR.value and same_id(appointment.doctor_id, principal.doctor_id)


def _is_owner_user(principal: Principal, instance) -> bool:
    return principal.role == UserRole.USER.value and same_id(instance.user_id, principal.user_id)


def _medicine(principal, action, medicine) -> bool:
    if action is Action.READ:
        return True
    if principal.is_admin:
        return True
    if principal.role != UserRole.LAB_STAFF.value:
        return False
    if action is Action.CREATE:
        return True
    return same_id(medicine.user_id, principal.user_id)


def _doctor(principal, action, doctor) -> bool:
    if action is Action.READ or principal.is_admin:
        return True
    if action is Action.UPDATE:
        return principal.role == UserRole.DOCTOR.value and same_id(doctor.user_id, principal.user_id)
    return False


def _lab(principal, action, lab) -> bool:
    if action is Action.READ or principal.is_admin:
        return True
    if action is Action.UPDATE:
        return principal.role == UserRole.LAB_STAFF.value and same_id(lab.user_id, principal.user_id)
    return False


def _appointment(principal, action, appointment) -> bool:
    if action is Action.CREATE or principal.is_admin:
        return True
    if action is Action.READ:
        return (
            same_id(appointment.user_id, principal.user_id)
            or _is_assigned_doctor(principal, appointment)
            or principal.role == UserRole.LAB_STAFF.value
        )
    if action is Action.UPDATE:
        return _is_assigned_doctor(principal, appointment) or _is_owner_user(principal, appointment)
    return False


def _order(principal, action, order) -> bool:
    if action is Action.CREATE or principal.is_admin:
        return True
    if action in (Action.READ, Action.UPDATE):
        return same_id(order.user_id, principal.user_id)
    return False


def _user(principal, action, user) -> bool:
    if action is Action.DELETE:
        return False
    if action is Action.CREATE:
        return True
    if action is Action.READ and principal.is_admin:
        return True
    return same_id(user.id, principal.user_id)


RULES = {
    EntityKind.MEDICINE: _medicine,
    EntityKind.DOCTOR: _doctor,
    EntityKind.LAB: _lab,
    EntityKind.APPOINTMENT: _appointment,
    EntityKind.ORDER: _order,
    EntityKind.USER: _user,
}

PUBLIC_READS = frozenset({EntityKind.MEDICINE, EntityKind.DOCTOR, EntityKind.LAB})


def can(principal: Optional[Principal], action: Action, kind: EntityKind, instance=None) -> Decision:
    """Evaluate the policy table for ``principal`` acting on ``instance``"""
    action = Action(action)
    kind = EntityKind(kind)

    if action is not Action.CREATE and instance is None:
        return _deny(DenyReason.NOT_FOUND, f"{kind.value.capitalize()} not found")

    if principal is None:
        if action is Action.READ and kind in PUBLIC_READS:
            return ALLOW
        if action is Action.CREATE and kind is EntityKind.USER:
            return ALLOW
        return _deny(DenyReason.UNAUTHENTICATED, "Not authorized to access this route")

    if RULES[kind](principal, action, instance):
        return ALLOW
    return _forbidden(principal, action, kind)


def ensure(principal: Optional[Principal], action: Action, kind: EntityKind, instance=None) -> None:
    can(principal, action, kind, instance).raise_for_denial()


def writable_fields(principal: Optional[Principal], kind: EntityKind, instance) -> FrozenSet[str]:
    """Fields ``principal`` may set when updating ``instance``; empty when it may not update"""
    kind = EntityKind(kind)
    if not can(principal, Action.UPDATE, kind, instance):
        return NOTHING

    if kind is EntityKind.MEDICINE:
        return MEDICINE_FIELDS
    if kind is EntityKind.DOCTOR:
        return DOCTOR_FIELDS
    if kind is EntityKind.LAB:
        return LAB_FIELDS
    if kind is EntityKind.USER:
        return USER_PROFILE_FIELDS
    if kind is EntityKind.APPOINTMENT:
        if principal.is_admin:
            return APPOINTMENT_ADMIN_FIELDS
        if _is_assigned_doctor(principal, instance):
            return APPOINTMENT_DOCTOR_FIELDS
        return APPOINTMENT_OWNER_FIELDS
    if kind is EntityKind.ORDER:
        return ORDER_ADMIN_FIELDS if principal.is_admin else ORDER_OWNER_FIELDS
    return NOTHING


def allowed_statuses(principal: Principal, kind: EntityKind, instance) -> Optional[FrozenSet[str]]:
    """
    Status values ``principal`` may request, or None when any value is allowed.

    Non-admin owners may only cancel; assigned doctors and admins are limited
    by the workflow's own transition rules instead.
    """
    kind = EntityKind(kind)
    if principal.is_admin:
        return None
    if kind is EntityKind.APPOINTMENT:
        if _is_assigned_doctor(principal, instance):
            return None
        return OWNER_APPOINTMENT_STATUSES
    if kind is EntityKind.ORDER:
        return OWNER_ORDER_STATUSES
    return None
