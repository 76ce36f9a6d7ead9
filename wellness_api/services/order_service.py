"""
Order fulfillment workflow.

Placing an order takes stock from every medicine with an atomic conditional
update; if a later line fails, the units already taken for this order are put
back before the error propagates. Name, price and image are copied onto each
line so later catalog edits never change a placed order.
"""
import logging
from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from wellness_api.config import FREE_SHIPPING_THRESHOLD, SHIPPING_PRICE, TAX_RATE
from wellness_api.database.models import Medicine, Order, OrderItem, OrderStatus, UserRole
from wellness_api.database.store import (
    decrement_stock, get_or_404, remove, restore_stock, save,
)
from wellness_api.errors import (
    AuthenticationError, ForbiddenError, InsufficientStockError, InvalidStateError,
    ValidationFailure,
)

from .access_policy import Action, EntityKind, Principal, allowed_statuses, ensure
from .api_features import list_records

logger = logging.getLogger(__name__)

STATUS_VALUES = {status.value for status in OrderStatus}
TERMINAL_STATUSES = {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value}


# ==================== PRICING ====================

def compute_prices(items_price: float) -> dict:
    """Tax and shipping for an order whose line items sum to ``items_price``"""
    items_price = round(items_price, 2)
    shipping_price = 0.0 if items_price > FREE_SHIPPING_THRESHOLD else float(SHIPPING_PRICE)
    tax_price = round(items_price * TAX_RATE, 2)
    total_price = round(items_price + tax_price + shipping_price, 2)
    return {
        "items_price": items_price,
        "tax_price": tax_price,
        "shipping_price": shipping_price,
        "total_price": total_price,
    }


# ==================== CREATE ====================

def _take_stock(db: Session, line: Mapping) -> OrderItem:
    """Resolve one requested line, take its stock and return the snapshot item"""
    medicine = get_or_404(db, Medicine, line.get("medicine"), "Medicine")
    quantity = line.get("quantity")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationFailure(f"Invalid quantity for {medicine.name}: {quantity}")

    item = OrderItem(
        medicine_id=medicine.id,
        name=medicine.name,
        price=medicine.price,
        image_url=(medicine.image_urls or [None])[0],
        quantity=quantity,
    )

    if medicine.stock < quantity:
        raise InsufficientStockError(medicine.name, medicine.stock)
    if not decrement_stock(db, medicine.id, quantity):
        # Another order took the stock between the read and the update
        db.refresh(medicine)
        logger.warning("Stock race lost for medicine %s (wanted %s)", medicine.id, quantity)
        raise InsufficientStockError(medicine.name, medicine.stock)
    return item


def _give_back(db: Session, taken) -> None:
    db.rollback()
    for medicine_id, quantity in taken:
        restore_stock(db, medicine_id, quantity)
    if taken:
        logger.warning("Restored stock for %d line(s) of a failed order", len(taken))


def create_order(db: Session, principal: Principal, data: Mapping) -> Order:
    """
    Place an order.

    ``data`` carries ``order_items`` (a list of ``{"medicine", "quantity"}``),
    ``shipping_address`` and ``payment_method``.
    """
    ensure(principal, Action.CREATE, EntityKind.ORDER)

    lines = data.get("order_items") or []
    if not lines:
        raise ValidationFailure("No order items")

    taken = []
    try:
        items = []
        for line in lines:
            item = _take_stock(db, line)
            taken.append((item.medicine_id, item.quantity))
            items.append(item)

        order = Order(
            user_id=principal.user_id,
            items=items,
            shipping_address=dict(data.get("shipping_address") or {}),
            payment_method=data.get("payment_method"),
            is_paid=False,
            is_delivered=False,
            order_status=OrderStatus.PENDING.value,
            **compute_prices(sum(item.price * item.quantity for item in items)),
        )
        save(db, order)
    except Exception:
        _give_back(db, taken)
        raise

    logger.info(
        "Order %s placed by user %s: %d item(s), total %.2f",
        order.id, principal.user_id, len(order.items), order.total_price,
    )
    return order


# ==================== READ ====================

def list_orders(db: Session, principal: Principal, query_params: Optional[Mapping] = None) -> dict:
    if principal is None:
        raise AuthenticationError("Not authorized to access this route")

    query = db.query(Order)
    if principal.role == UserRole.USER.value:
        query = query.filter(Order.user_id == principal.user_id)
    elif not principal.is_admin:
        raise ForbiddenError(f"User role {principal.role} is not authorized to view orders")

    return list_records(query, Order, query_params or {})


def get_order(db: Session, principal: Principal, order_id) -> Order:
    order = get_or_404(db, Order, order_id, "Order")
    ensure(principal, Action.READ, EntityKind.ORDER, order)
    return order


# ==================== TRANSITIONS ====================

def _require_admin(principal: Principal, message: str) -> None:
    if principal is None:
        raise AuthenticationError("Not authorized to access this route")
    if not principal.is_admin:
        raise ForbiddenError(message)


def mark_paid(db: Session, principal: Principal, order_id, payment_result: Optional[Mapping] = None) -> Order:
    order = get_or_404(db, Order, order_id, "Order")
    _require_admin(principal, "Not authorized to mark order as paid")
    if order.is_paid:
        raise InvalidStateError("Order is already paid")

    order.is_paid = True
    order.paid_at = datetime.now()
    order.payment_result = dict(payment_result or {})
    save(db, order)
    logger.info("Order %s marked paid by admin %s", order.id, principal.user_id)
    return order


def mark_delivered(db: Session, principal: Principal, order_id) -> Order:
    order = get_or_404(db, Order, order_id, "Order")
    _require_admin(principal, "Not authorized to mark order as delivered")
    if order.is_delivered:
        raise InvalidStateError("Order is already delivered")
    if order.order_status in TERMINAL_STATUSES:
        raise InvalidStateError(f"Order is already {order.order_status}")

    order.is_delivered = True
    order.delivered_at = datetime.now()
    order.order_status = OrderStatus.DELIVERED.value
    save(db, order)
    logger.info("Order %s marked delivered by admin %s", order.id, principal.user_id)
    return order


def set_status(db: Session, principal: Principal, order_id, new_status: str) -> Order:
    order = get_or_404(db, Order, order_id, "Order")
    ensure(principal, Action.UPDATE, EntityKind.ORDER, order)

    statuses = allowed_statuses(principal, EntityKind.ORDER, order)
    if statuses is not None and new_status not in statuses:
        raise ForbiddenError("Not authorized to update this order status")
    if new_status not in STATUS_VALUES:
        raise ValidationFailure(f"Invalid order status: {new_status}")

    previous = order.order_status
    if new_status == previous:
        return order
    if previous in TERMINAL_STATUSES:
        raise InvalidStateError(f"Order is already {previous}")

    order.order_status = new_status
    if new_status == OrderStatus.DELIVERED.value:
        order.is_delivered = True
        order.delivered_at = datetime.now()
    save(db, order)
    logger.info("Order %s status %s -> %s by user %s", order.id, previous, new_status, principal.user_id)
    return order


# ==================== DELETE ====================

def delete_order(db: Session, principal: Principal, order_id) -> None:
    order = get_or_404(db, Order, order_id, "Order")
    ensure(principal, Action.DELETE, EntityKind.ORDER, order)
    remove(db, order)
    logger.info("Order %s deleted by admin %s", order_id, principal.user_id)
