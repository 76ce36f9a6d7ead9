from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wellness_api.database.connection import get_db
from wellness_api.schemas import UserUpdate, payload
from wellness_api.services import user_service
from wellness_api.services.access_policy import Principal

from .auth import get_principal

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("/me")
async def get_me(
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    user = user_service.get_me(db, principal)
    return {"success": True, "data": user.to_dict()}


@router.put("/updatedetails")
async def update_details(
    request: UserUpdate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    """Update name, email, phone, address or image of the logged-in user"""
    user = user_service.update_details(db, principal, payload(request))
    return {"success": True, "data": user.to_dict()}
