import pytest

from wellness_api.database.models import Medicine, Order
from wellness_api.errors import (
    ForbiddenError, InsufficientStockError, InvalidStateError, NotFoundError, ValidationFailure,
)
from wellness_api.services import order_service

SHIPPING = {"address": "1 Lake View", "city": "Srinagar", "postal_code": "190001", "country": "India"}


def place(db, principal, *lines):
    return order_service.create_order(db, principal, {
        "order_items": [{"medicine": medicine_id, "quantity": quantity} for medicine_id, quantity in lines],
        "shipping_address": SHIPPING,
        "payment_method": "COD",
    })


def stock_of(db, medicine_id):
    db.expire_all()
    return db.get(Medicine, medicine_id).stock


@pytest.fixture
def customer(make_user, principal):
    return principal(make_user())


@pytest.fixture
def admin(make_user, principal):
    return principal(make_user(role="admin"))


# ==================== PLACING ORDERS ====================

def test_paracetamol_scenario(db, customer, make_medicine):
    paracetamol = make_medicine(name="Paracetamol", stock=10, price=5)

    order = place(db, customer, (paracetamol.id, 3))
    assert stock_of(db, paracetamol.id) == 7
    assert order.items_price == 15

    paracetamol = db.get(Medicine, paracetamol.id)
    paracetamol.price = 8
    db.commit()

    db.refresh(order)
    assert order.items[0].price == 5
    assert order.items_price == 15

    with pytest.raises(InsufficientStockError) as excinfo:
        place(db, customer, (paracetamol.id, 20))
    assert excinfo.value.available == 7
    assert isinstance(excinfo.value, InvalidStateError)
    assert stock_of(db, paracetamol.id) == 7


def test_line_items_snapshot_name_price_and_image(db, customer, make_medicine):
    medicine = make_medicine(name="Cetirizine", price=12.5, image_urls=["/uploads/medicines/a.png", "/b.png"])

    order = place(db, customer, (medicine.id, 2))

    assert order.to_dict()["order_items"] == [{
        "medicine": medicine.id,
        "name": "Cetirizine",
        "price": 12.5,
        "image_url": "/uploads/medicines/a.png",
        "quantity": 2,
    }]
    assert order.order_status == "pending"
    assert order.is_paid is False
    assert order.is_delivered is False
    assert order.user_id == customer.user_id


def test_prices_include_tax_and_shipping(db, customer, make_medicine):
    small = make_medicine(price=100)
    large = make_medicine(price=300)

    cheap = place(db, customer, (small.id, 1))
    assert cheap.shipping_price == 40
    assert cheap.tax_price == 18
    assert cheap.total_price == 158

    dear = place(db, customer, (large.id, 2))
    assert dear.shipping_price == 0
    assert dear.tax_price == 108
    assert dear.total_price == 708


def test_compute_prices_rounds_to_cents():
    prices = order_service.compute_prices(33.333)
    assert prices == {"items_price": 33.33, "tax_price": 6.0, "shipping_price": 40.0, "total_price": 79.33}


def test_empty_order_is_rejected(db, customer):
    with pytest.raises(ValidationFailure):
        place(db, customer)


def test_failed_line_restores_earlier_lines(db, customer, make_medicine):
    plenty = make_medicine(stock=50)
    scarce = make_medicine(stock=1)

    with pytest.raises(InsufficientStockError):
        place(db, customer, (plenty.id, 5), (scarce.id, 2))

    assert stock_of(db, plenty.id) == 50
    assert stock_of(db, scarce.id) == 1
    assert db.query(Order).count() == 0


def test_missing_medicine_restores_earlier_lines(db, customer, make_medicine):
    plenty = make_medicine(stock=50)

    with pytest.raises(NotFoundError):
        place(db, customer, (plenty.id, 5), (9999, 1))

    assert stock_of(db, plenty.id) == 50


def test_stock_never_goes_negative(db, customer, make_medicine):
    medicine = make_medicine(stock=2)

    place(db, customer, (medicine.id, 2))
    with pytest.raises(InsufficientStockError) as excinfo:
        place(db, customer, (medicine.id, 1))

    assert excinfo.value.available == 0
    assert stock_of(db, medicine.id) == 0


# ==================== READ ====================

def test_list_is_scoped_to_owner_and_admin(db, make_user, principal, admin, make_medicine):
    medicine = make_medicine()
    alice, bob = principal(make_user()), principal(make_user())
    place(db, alice, (medicine.id, 1))
    place(db, bob, (medicine.id, 1))

    assert [o["user_id"] for o in order_service.list_orders(db, alice, {})["data"]] == [alice.user_id]
    assert order_service.list_orders(db, admin, {})["total"] == 2

    with pytest.raises(ForbiddenError):
        order_service.list_orders(db, principal(make_user(role="lab_staff")), {})


def test_list_filters_on_boolean_columns(db, customer, admin, make_medicine):
    medicine = make_medicine()
    paid = place(db, customer, (medicine.id, 1))
    place(db, customer, (medicine.id, 1))
    order_service.mark_paid(db, admin, paid.id, {"id": "txn_1"})

    page = order_service.list_orders(db, customer, {"is_paid": "true"})

    assert [record["id"] for record in page["data"]] == [paid.id]


def test_get_is_owner_or_admin(db, customer, admin, make_user, principal, make_medicine):
    order = place(db, customer, (make_medicine().id, 1))

    assert order_service.get_order(db, customer, order.id).id == order.id
    assert order_service.get_order(db, admin, order.id).id == order.id
    with pytest.raises(ForbiddenError):
        order_service.get_order(db, principal(make_user()), order.id)
    with pytest.raises(NotFoundError):
        order_service.get_order(db, admin, "nope")


# ==================== TRANSITIONS ====================

def test_mark_paid(db, customer, admin, make_medicine):
    order = place(db, customer, (make_medicine().id, 1))

    with pytest.raises(ForbiddenError):
        order_service.mark_paid(db, customer, order.id, {"id": "txn_1"})

    paid = order_service.mark_paid(db, admin, order.id, {"id": "txn_1", "status": "COMPLETED"})
    assert paid.is_paid is True
    assert paid.paid_at is not None
    assert paid.payment_result == {"id": "txn_1", "status": "COMPLETED"}

    with pytest.raises(InvalidStateError):
        order_service.mark_paid(db, admin, order.id, {})


def test_mark_delivered(db, customer, admin, make_medicine):
    order = place(db, customer, (make_medicine().id, 1))

    with pytest.raises(ForbiddenError):
        order_service.mark_delivered(db, customer, order.id)

    delivered = order_service.mark_delivered(db, admin, order.id)
    assert delivered.is_delivered is True
    assert delivered.delivered_at is not None
    assert delivered.order_status == "delivered"

    with pytest.raises(InvalidStateError):
        order_service.mark_delivered(db, admin, order.id)


def test_owner_may_only_cancel(db, customer, make_medicine):
    order = place(db, customer, (make_medicine().id, 1))

    with pytest.raises(ForbiddenError):
        order_service.set_status(db, customer, order.id, "shipped")

    assert order_service.set_status(db, customer, order.id, "cancelled").order_status == "cancelled"


def test_admin_sets_any_status_until_terminal(db, customer, admin, make_medicine):
    order = place(db, customer, (make_medicine().id, 1))

    assert order_service.set_status(db, admin, order.id, "processing").order_status == "processing"
    assert order_service.set_status(db, admin, order.id, "shipped").order_status == "shipped"
    assert order_service.set_status(db, admin, order.id, "cancelled").order_status == "cancelled"

    with pytest.raises(InvalidStateError):
        order_service.set_status(db, admin, order.id, "processing")
    with pytest.raises(InvalidStateError):
        order_service.mark_delivered(db, admin, order.id)


def test_unknown_status_is_rejected(db, customer, admin, make_medicine):
    order = place(db, customer, (make_medicine().id, 1))
    with pytest.raises(ValidationFailure):
        order_service.set_status(db, admin, order.id, "lost")


def test_delete_is_admin_only(db, customer, admin, make_medicine):
    order = place(db, customer, (make_medicine().id, 1))

    with pytest.raises(ForbiddenError):
        order_service.delete_order(db, customer, order.id)

    order_service.delete_order(db, admin, order.id)
    assert db.query(Order).count() == 0
