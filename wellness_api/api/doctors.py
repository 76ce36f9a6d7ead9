from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wellness_api.database.connection import get_db
from wellness_api.schemas import DoctorCreate, DoctorUpdate, payload
from wellness_api.services import doctor_service
from wellness_api.services.access_policy import Principal

from .auth import get_principal

router = APIRouter(prefix="/api/v1/doctors", tags=["Doctors"])

# ==================== PUBLIC ====================

@router.get("")
async def list_doctors(request: Request, db: Session = Depends(get_db)):
    """
    List doctors

    Supports ``keyword``, field filters (``experience[gte]=5``), ``sort``,
    ``fields``, ``page`` and ``limit``.
    """
    page = doctor_service.list_doctors(db, dict(request.query_params))
    return {"success": True, **page}


@router.get("/{doctor_id}")
async def get_doctor(doctor_id: str, db: Session = Depends(get_db)):
    doctor = doctor_service.get_doctor(db, doctor_id)
    return {"success": True, "data": doctor.to_dict()}

# ==================== ADMIN / OWN PROFILE ====================

@router.post("", status_code=201)
async def create_doctor(
    request: DoctorCreate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    doctor = doctor_service.create_doctor(db, principal, payload(request))
    return {"success": True, "data": doctor.to_dict()}


@router.put("/{doctor_id}")
async def update_doctor(
    doctor_id: str,
    request: DoctorUpdate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    doctor = doctor_service.update_doctor(db, principal, doctor_id, payload(request))
    return {"success": True, "data": doctor.to_dict()}


@router.delete("/{doctor_id}")
async def delete_doctor(
    doctor_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    doctor_service.delete_doctor(db, principal, doctor_id)
    return {"success": True, "data": {}}
