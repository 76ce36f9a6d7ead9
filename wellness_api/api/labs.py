from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wellness_api.database.connection import get_db
from wellness_api.schemas import LabCreate, LabUpdate, payload
from wellness_api.services import lab_service
from wellness_api.services.access_policy import Principal

from .auth import get_principal

router = APIRouter(prefix="/api/v1/labs", tags=["Labs"])

# ==================== PUBLIC ====================

@router.get("")
async def list_labs(request: Request, db: Session = Depends(get_db)):
    """
    List labs

    Supports ``keyword``, field filters (``services=X-Ray``), ``sort``,
    ``fields``, ``page`` and ``limit``.
    """
    page = lab_service.list_labs(db, dict(request.query_params))
    return {"success": True, **page}


@router.get("/{lab_id}")
async def get_lab(lab_id: str, db: Session = Depends(get_db)):
    lab = lab_service.get_lab(db, lab_id)
    return {"success": True, "data": lab.to_dict()}

# ==================== ADMIN / LAB OWNER ====================

@router.post("", status_code=201)
async def add_lab(
    request: LabCreate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    lab = lab_service.add_lab(db, principal, payload(request))
    return {"success": True, "data": lab.to_dict()}


@router.put("/{lab_id}")
async def update_lab(
    lab_id: str,
    request: LabUpdate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    lab = lab_service.update_lab(db, principal, lab_id, payload(request))
    return {"success": True, "data": lab.to_dict()}


@router.delete("/{lab_id}")
async def delete_lab(
    lab_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    lab_service.delete_lab(db, principal, lab_id)
    return {"success": True, "data": {}}
