# services/medicine_service.py - medicine catalog
import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from wellness_api.database.models import DEFAULT_MEDICINE_IMAGE, Medicine, MedicineCategory, OrderItem
from wellness_api.database.store import assign, get_or_404, remove, save
from wellness_api.errors import InvalidStateError, ValidationFailure

from .access_policy import MEDICINE_FIELDS, Action, EntityKind, Principal, ensure, writable_fields
from .api_features import list_records

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "description", "manufacturer", "category")

CATEGORY_VALUES = {category.value for category in MedicineCategory}


def _check(changes: Mapping) -> None:
    category = changes.get("category")
    if category is not None and category not in CATEGORY_VALUES:
        raise ValidationFailure(f"Invalid medicine category: {category}")
    if "image_urls" in changes and changes["image_urls"] is not None:
        if not isinstance(changes["image_urls"], (list, tuple)):
            raise ValidationFailure("image_urls must be a list")


def list_medicines(db: Session, query_params: Optional[Mapping] = None) -> dict:
    return list_records(db.query(Medicine), Medicine, query_params or {}, SEARCH_FIELDS)


def get_medicine(db: Session, medicine_id) -> Medicine:
    return get_or_404(db, Medicine, medicine_id, "Medicine")


def add_medicine(db: Session, principal: Principal, data: Mapping) -> Medicine:
    ensure(principal, Action.CREATE, EntityKind.MEDICINE)
    _check(data)

    medicine = Medicine(user_id=principal.user_id)
    assign(medicine, data, MEDICINE_FIELDS)
    if not medicine.image_urls:
        medicine.image_urls = [DEFAULT_MEDICINE_IMAGE]
    if not medicine.category:
        medicine.category = MedicineCategory.OTHER.value

    save(db, medicine)
    logger.info("Medicine %s (%s) added by user %s", medicine.id, medicine.name, principal.user_id)
    return medicine


def update_medicine(db: Session, principal: Principal, medicine_id, changes: Mapping) -> Medicine:
    medicine = get_or_404(db, Medicine, medicine_id, "Medicine")
    ensure(principal, Action.UPDATE, EntityKind.MEDICINE, medicine)
    _check(changes)

    if "image_urls" in changes:
        changes = dict(changes, image_urls=list(changes["image_urls"] or []))
    assign(medicine, changes, writable_fields(principal, EntityKind.MEDICINE, medicine))
    return save(db, medicine)


def delete_medicine(db: Session, principal: Principal, medicine_id) -> None:
    medicine = get_or_404(db, Medicine, medicine_id, "Medicine")
    ensure(principal, Action.DELETE, EntityKind.MEDICINE, medicine)

    referenced = db.query(OrderItem.id).filter(OrderItem.medicine_id == medicine.id).first()
    if referenced is not None:
        raise InvalidStateError(f"Medicine {medicine.name} is part of existing orders and cannot be deleted")

    remove(db, medicine)
    logger.info("Medicine %s deleted by user %s", medicine_id, principal.user_id)
