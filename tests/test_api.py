"""HTTP surface: routing, auth dependency and error rendering"""
import pytest

PNG = (
    b"\x89PNG\r\n\x1a\n"
    b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00"
    + b"\x00" * 32
)


@pytest.fixture
def admin_headers(make_user, auth_headers):
    return auth_headers(make_user(role="admin"))


def test_root_and_health(api_client):
    assert api_client.get("/health").json() == {"status": "healthy"}
    assert api_client.get("/").json()["status"] == "running"


# ==================== AUTH ====================

def test_register_login_and_me(api_client):
    response = api_client.post("/api/v1/auth/register", json={
        "name": "Asha", "email": "asha@example.com", "password": "secret123", "role": "admin",
    })
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "user"

    login = api_client.post("/api/v1/auth/login", json={"email": "asha@example.com", "password": "secret123"})
    token = login.json()["token"]

    me = api_client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "asha@example.com"


def test_bad_credentials_render_error_body(api_client):
    response = api_client.post("/api/v1/auth/login", json={"email": "no@example.com", "password": "x"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "kind": "unauthenticated", "detail": "Invalid credentials"}


def test_protected_routes_need_a_valid_token(api_client):
    assert api_client.get("/api/v1/users/me").status_code == 401
    assert api_client.get("/api/v1/orders", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_token_for_deleted_user_is_rejected(api_client, db, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    db.delete(user)
    db.commit()

    assert api_client.get("/api/v1/users/me", headers=headers).status_code == 401


def test_forgot_and_reset_password(api_client, make_user, notifier):
    make_user(email="forgot@example.com")

    for email in ("forgot@example.com", "ghost@example.com"):
        response = api_client.post("/api/v1/auth/forgotpassword", json={"email": email})
        assert response.status_code == 200
        assert response.json() == {"success": True, "data": "Email sent"}
    assert len(notifier.sent) == 1

    raw_token = notifier.sent[0]["body"].rsplit("/", 1)[-1]
    reset = api_client.put(f"/api/v1/auth/resetpassword/{raw_token}", json={"password": "new-secret"})
    assert reset.status_code == 200
    assert reset.json()["token"]

    again = api_client.put(f"/api/v1/auth/resetpassword/{raw_token}", json={"password": "new-secret"})
    assert again.status_code == 404


def test_notifier_failure_is_bad_gateway(api_client, make_user, notifier):
    make_user(email="down@example.com")
    notifier.fail = True

    response = api_client.post("/api/v1/auth/forgotpassword", json={"email": "down@example.com"})

    assert response.status_code == 502
    assert response.json()["kind"] == "upstream_failure"


# ==================== CATALOG ====================

def test_medicine_crud(api_client, admin_headers, make_user, auth_headers):
    created = api_client.post("/api/v1/medicines", headers=admin_headers, json={
        "name": "Paracetamol", "description": "Fever", "price": 5, "stock": 10, "category": "Pain Relief",
    })
    assert created.status_code == 201
    medicine_id = created.json()["data"]["id"]
    assert "version" not in created.json()["data"]

    listing = api_client.get("/api/v1/medicines", params={"price[lte]": "5", "fields": "name"})
    assert listing.json()["data"] == [{"id": medicine_id, "name": "Paracetamol"}]

    forbidden = api_client.put(f"/api/v1/medicines/{medicine_id}", headers=auth_headers(make_user()), json={"price": 1})
    assert forbidden.status_code == 403

    updated = api_client.put(f"/api/v1/medicines/{medicine_id}", headers=admin_headers, json={"price": 6})
    assert updated.json()["data"]["price"] == 6
    assert "version" not in api_client.get(f"/api/v1/medicines/{medicine_id}").json()["data"]

    assert api_client.delete(f"/api/v1/medicines/{medicine_id}", headers=admin_headers).status_code == 200
    missing = api_client.get(f"/api/v1/medicines/{medicine_id}")
    assert missing.status_code == 404
    assert missing.json()["kind"] == "not_found"


def test_anonymous_cannot_create_medicine(api_client):
    response = api_client.post("/api/v1/medicines", json={"name": "X", "description": "Y", "price": 1})
    assert response.status_code == 401


def test_schema_errors_stay_422(api_client, admin_headers):
    response = api_client.post("/api/v1/medicines", headers=admin_headers, json={"name": "X", "price": -1})
    assert response.status_code == 422


def test_doctor_and_lab_endpoints(api_client, admin_headers, make_user):
    user = make_user()
    doctor = api_client.post("/api/v1/doctors", headers=admin_headers, json={
        "user_id": user.id, "name": "Dr. Khan", "specialization": "Dermatology", "phone": "+91900",
        "email": "khan@example.com", "clinic_address": "Skin Clinic", "latitude": 34.1, "longitude": 74.8,
    })
    assert doctor.status_code == 201
    assert doctor.json()["data"]["location"]["coordinates"] == [74.8, 34.1]

    lab = api_client.post("/api/v1/labs", headers=admin_headers, json={
        "name": "Lab One", "address": "Main Road", "phone": "+91901", "latitude": 34.0, "longitude": 74.7,
        "services": ["X-Ray"],
    })
    assert lab.status_code == 201

    doctors = api_client.get("/api/v1/doctors", params={"keyword": "derma"}).json()
    assert doctors["total"] == 1
    labs = api_client.get("/api/v1/labs", params={"services": "X-Ray"}).json()
    assert labs["total"] == 1


# ==================== APPOINTMENTS & ORDERS ====================

def test_book_and_cancel_appointment(api_client, make_user, make_doctor, auth_headers):
    patient = make_user()
    headers = auth_headers(patient)
    doctor = make_doctor(longitude=74.8, latitude=34.1, clinic_address="Clinic X")

    booked = api_client.post("/api/v1/appointments", headers=headers, json={
        "doctor": doctor.id, "appointment_date": "2026-11-02", "appointment_time": "10:00 AM",
    })
    assert booked.status_code == 201
    body = booked.json()["data"]
    assert body["type"] == "offline"
    assert body["location"] == {"type": "Point", "coordinates": [74.8, 34.1], "address": "Clinic X"}
    assert body["doctor"]["name"] == doctor.name

    confirm = api_client.put(f"/api/v1/appointments/{body['id']}", headers=headers, json={"status": "confirmed"})
    assert confirm.status_code == 403

    cancel = api_client.put(f"/api/v1/appointments/{body['id']}", headers=headers, json={"status": "cancelled"})
    assert cancel.json()["data"]["status"] == "cancelled"

    both = api_client.post("/api/v1/appointments", headers=headers, json={
        "doctor": doctor.id, "lab": 1, "appointment_date": "2026-11-03", "appointment_time": "10:00 AM",
    })
    assert both.status_code == 400
    assert both.json()["kind"] == "invalid_state"


def test_order_flow(api_client, make_user, make_medicine, auth_headers, admin_headers):
    customer = auth_headers(make_user())
    medicine = make_medicine(name="Paracetamol", price=5, stock=10)
    shipping = {"address": "1 Lake View", "city": "Srinagar", "postal_code": "190001", "country": "India"}

    placed = api_client.post("/api/v1/orders", headers=customer, json={
        "order_items": [{"medicine": medicine.id, "quantity": 3}],
        "shipping_address": shipping,
        "payment_method": "COD",
    })
    assert placed.status_code == 201
    order = placed.json()["data"]
    assert order["items_price"] == 15
    assert order["total_price"] == 57.7

    too_many = api_client.post("/api/v1/orders", headers=customer, json={
        "order_items": [{"medicine": medicine.id, "quantity": 20}],
        "shipping_address": shipping,
        "payment_method": "COD",
    })
    assert too_many.status_code == 400
    assert too_many.json() == {
        "success": False,
        "kind": "insufficient_stock",
        "detail": "Not enough stock for Paracetamol. Available: 7",
    }

    assert api_client.put(f"/api/v1/orders/{order['id']}/pay", headers=customer, json={}).status_code == 403
    paid = api_client.put(f"/api/v1/orders/{order['id']}/pay", headers=admin_headers,
                          json={"payment_result": {"id": "txn_9"}})
    assert paid.json()["data"]["is_paid"] is True
    assert api_client.put(f"/api/v1/orders/{order['id']}/pay", headers=admin_headers).status_code == 400

    delivered = api_client.put(f"/api/v1/orders/{order['id']}/deliver", headers=admin_headers)
    assert delivered.json()["data"]["order_status"] == "delivered"

    cancel = api_client.put(f"/api/v1/orders/{order['id']}/status", headers=customer, json={"status": "cancelled"})
    assert cancel.status_code == 400

    mine = api_client.get("/api/v1/orders", headers=customer).json()
    assert mine["total"] == 1


# ==================== SEARCH & UPLOAD ====================

def test_global_search(api_client, make_medicine, make_doctor, make_lab):
    make_medicine(name="Heart Tonic")
    make_doctor(specialization="Heart Surgeon")
    make_lab(name="Lung Lab")

    data = api_client.get("/api/v1/search/global", params={"keyword": "heart"}).json()["data"]

    assert [m["name"] for m in data["medicines"]] == ["Heart Tonic"]
    assert len(data["doctors"]) == 1
    assert data["labs"] == []
    quoted = api_client.get("/api/v1/search/global", params={"keyword": '"'}).json()["data"]
    assert quoted == {"medicines": [], "doctors": [], "labs": []}
    assert api_client.get("/api/v1/search/global").json()["data"] == {"medicines": [], "doctors": [], "labs": []}


def test_upload_and_delete_image(api_client, make_user, auth_headers, admin_headers):
    headers = auth_headers(make_user())

    uploaded = api_client.post(
        "/api/v1/upload/medicines", headers=headers,
        files={"file": ("pill.png", PNG, "image/png")},
    )
    assert uploaded.status_code == 201
    url = uploaded.json()["url"]
    assert url.startswith("/uploads/medicines/") and url.endswith(".png")

    fake = api_client.post(
        "/api/v1/upload/medicines", headers=headers,
        files={"file": ("pill.png", b"not really a png", "image/png")},
    )
    assert fake.status_code == 400

    assert api_client.delete("/api/v1/upload", headers=headers, params={"url": url}).status_code == 403
    assert api_client.delete("/api/v1/upload", headers=admin_headers, params={"url": url}).status_code == 200
    assert api_client.delete("/api/v1/upload", headers=admin_headers, params={"url": url}).status_code == 404
