from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wellness_api.database.connection import get_db
from wellness_api.schemas import AppointmentCreate, AppointmentUpdate, payload
from wellness_api.services import appointment_service
from wellness_api.services.access_policy import Principal

from .auth import get_principal

router = APIRouter(prefix="/api/v1/appointments", tags=["Appointments"])


@router.get("")
async def list_appointments(
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    """
    Users see their own appointments, doctors the ones booked with them,
    admins and lab staff everything.
    """
    page = appointment_service.list_appointments(db, principal, dict(request.query_params))
    return {"success": True, **page}


@router.post("", status_code=201)
async def book_appointment(
    request: AppointmentCreate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    appointment = appointment_service.create_appointment(db, principal, payload(request))
    return {"success": True, "data": appointment_service.serialize(appointment)}


@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    appointment = appointment_service.get_appointment(db, principal, appointment_id)
    return {"success": True, "data": appointment_service.serialize(appointment)}


@router.put("/{appointment_id}")
async def update_appointment(
    appointment_id: str,
    request: AppointmentUpdate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    """Admins edit freely, assigned doctors set status/reason, owners may only cancel"""
    appointment = appointment_service.update_appointment(db, principal, appointment_id, payload(request))
    return {"success": True, "data": appointment_service.serialize(appointment)}


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    appointment_service.delete_appointment(db, principal, appointment_id)
    return {"success": True, "data": {}}
