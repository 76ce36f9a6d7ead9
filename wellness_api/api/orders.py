from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wellness_api.database.connection import get_db
from wellness_api.schemas import OrderCreate, OrderStatusUpdate, PaymentResult, payload
from wellness_api.services import order_service
from wellness_api.services.access_policy import Principal

from .auth import get_principal

router = APIRouter(prefix="/api/v1/orders", tags=["Orders"])

# ==================== CUSTOMER ====================

@router.post("", status_code=201)
async def place_order(
    request: OrderCreate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    """Prices are computed server side from the current catalog"""
    order = order_service.create_order(db, principal, payload(request))
    return {"success": True, "data": order.to_dict()}


@router.get("")
async def list_orders(
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    page = order_service.list_orders(db, principal, dict(request.query_params))
    return {"success": True, **page}


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    order = order_service.get_order(db, principal, order_id)
    return {"success": True, "data": order.to_dict()}


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    order = order_service.set_status(db, principal, order_id, request.status)
    return {"success": True, "data": order.to_dict()}

# ==================== ADMIN ====================

@router.put("/{order_id}/pay")
async def mark_order_paid(
    order_id: str,
    request: Optional[PaymentResult] = None,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    order = order_service.mark_paid(
        db, principal, order_id, request.payment_result if request else None
    )
    return {"success": True, "data": order.to_dict()}


@router.put("/{order_id}/deliver")
async def mark_order_delivered(
    order_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    order = order_service.mark_delivered(db, principal, order_id)
    return {"success": True, "data": order.to_dict()}


@router.delete("/{order_id}")
async def delete_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
):
    order_service.delete_order(db, principal, order_id)
    return {"success": True, "data": {}}
