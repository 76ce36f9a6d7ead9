"""
Entity store helpers shared by every service.

Single-entity lookups raise ``NotFoundError``; commits translate integrity
violations into ``ValidationFailure`` so callers never see driver errors.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from wellness_api.errors import InvalidStateError, NotFoundError, ValidationFailure
from .models import Medicine

logger = logging.getLogger(__name__)


def canonical_id(value):
    """Store id as an int, or None when ``value`` is not a valid id"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def same_id(left, right) -> bool:
    left_id = canonical_id(left)
    return left_id is not None and left_id == canonical_id(right)


def get_or_404(db: Session, model, entity_id, label: str = None):
    key = canonical_id(entity_id)
    instance = db.get(model, key) if key is not None else None
    if instance is None:
        raise NotFoundError(f"{label or model.__name__} not found with id of {entity_id}")
    return instance


def save(db: Session, *instances):
    """Add ``instances`` (if any) and commit the unit of work"""
    for instance in instances:
        db.add(instance)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        detail = str(exc.orig).lower()
        logger.info("Integrity violation on commit: %s", exc.orig)
        if "unique" in detail or "duplicate" in detail:
            raise ValidationFailure("Duplicate field value entered") from exc
        raise ValidationFailure("Invalid field value entered") from exc
    except StaleDataError as exc:
        db.rollback()
        logger.info("Stale write rejected: %s", exc)
        raise InvalidStateError("Record was modified by another request, reload and retry") from exc
    for instance in instances:
        db.refresh(instance)
    return instances[0] if len(instances) == 1 else instances


def remove(db: Session, instance) -> None:
    db.delete(instance)
    db.commit()


def decrement_stock(db: Session, medicine_id: int, quantity: int) -> bool:
    """
    Atomically take ``quantity`` units from a medicine.

    Returns False (and changes nothing) when stock is below ``quantity``
    at the moment the UPDATE runs.
    """
    updated = (
        db.query(Medicine)
        .filter(Medicine.id == medicine_id, Medicine.stock >= quantity)
        .update(
            {Medicine.stock: Medicine.stock - quantity, Medicine.version: Medicine.version + 1},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated == 1


def restore_stock(db: Session, medicine_id: int, quantity: int) -> None:
    db.query(Medicine).filter(Medicine.id == medicine_id).update(
        {Medicine.stock: Medicine.stock + quantity, Medicine.version: Medicine.version + 1},
        synchronize_session=False,
    )
    db.commit()


def assign(instance, changes, fields) -> list:
    """Copy the allow-listed ``fields`` present in ``changes`` onto ``instance``"""
    applied = []
    for field in sorted(fields):
        if field in changes:
            setattr(instance, field, changes[field])
            applied.append(field)
    return applied
