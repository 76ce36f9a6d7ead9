from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wellness_api.database.connection import get_db
from wellness_api.schemas import MedicineCreate, MedicineUpdate, payload
from wellness_api.services import medicine_service
from wellness_api.services.access_policy import Principal

from .auth import get_principal

router = APIRouter(prefix="/api/v1/medicines", tags=["Medicines"])

# ==================== PUBLIC ====================

@router.get("")
async def list_medicines(request: Request, db: Session = Depends(get_db)):
    """
    List medicines

    Supports ``keyword``, field filters (``price[lte]=100``), ``sort``,
    ``fields``, ``page`` and ``limit``.
    """
    page = medicine_service.list_medicines(db, dict(request.query_params))
    return {"success": True, **page}


@router.get("/{medicine_id}")
async def get_medicine(medicine_id: str, db: Session = Depends(get_db)):
    medicine = medicine_service.get_medicine(db, medicine_id)
    return {"success": True, "data": medicine.to_dict()}

# ==================== ADMIN / LAB STAFF ====================

@router.post("", status_code=201)
async def add_medicine(
    request: MedicineCreate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    medicine = medicine_service.add_medicine(db, principal, payload(request))
    return {"success": True, "data": medicine.to_dict()}


@router.put("/{medicine_id}")
async def update_medicine(
    medicine_id: str,
    request: MedicineUpdate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    medicine = medicine_service.update_medicine(db, principal, medicine_id, payload(request))
    return {"success": True, "data": medicine.to_dict()}


@router.delete("/{medicine_id}")
async def delete_medicine(
    medicine_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    medicine_service.delete_medicine(db, principal, medicine_id)
    return {"success": True, "data": {}}
