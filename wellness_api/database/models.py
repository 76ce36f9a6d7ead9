"""
Kashmir Wellness - Database Models
Users, catalog (medicines, doctors, labs), appointments and orders
"""
from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Text, Boolean, Float, Date,
    JSON, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from .connection import Base

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

DEFAULT_MEDICINE_IMAGE = "https://placehold.co/400x300/E0F2F7/000000?text=Medicine"
DEFAULT_USER_IMAGE = "https://placehold.co/400x300/E0F2F7/000000?text=User"
DEFAULT_DOCTOR_IMAGE = "/uploads/default-doctor.jpg"


# ============================================
# ENUMS
# ============================================

class UserRole(str, enum.Enum):
    USER = "user"
    DOCTOR = "doctor"
    ADMIN = "admin"
    LAB_STAFF = "lab_staff"


class MedicineCategory(str, enum.Enum):
    PAIN_RELIEF = "Pain Relief"
    ANTIBIOTICS = "Antibiotics"
    VITAMINS = "Vitamins"
    COUGH_COLD = "Cough & Cold"
    DIGESTIVE_HEALTH = "Digestive Health"
    SKIN_CARE = "Skin Care"
    FIRST_AID = "First Aid"
    OTHER = "Other"


class AppointmentType(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    LAB = "lab"


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


def point(longitude, latitude):
    """GeoJSON point, or None when either coordinate is missing"""
    if longitude is None or latitude is None:
        return None
    return {"type": "Point", "coordinates": [longitude, latitude]}


# ============================================
# USER MANAGEMENT
# ============================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)  # user | doctor | admin | lab_staff
    phone = Column(String(20))
    address = Column(String(100))
    image_url = Column(String(500), default=DEFAULT_USER_IMAGE)

    # sha256 of the emailed token, never the token itself
    reset_password_token = Column(String(64), index=True)
    reset_password_expire = Column(DateTime)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    version = Column(Integer, nullable=False)

    # Relationships
    doctor_profile = relationship("Doctor", back_populates="user", uselist=False)
    appointments = relationship("Appointment", back_populates="user")
    orders = relationship("Order", back_populates="user")

    __mapper_args__ = {"version_id_col": version}

    def to_dict(self, include_version=False):
        record = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "phone": self.phone,
            "address": self.address,
            "image_url": self.image_url,
            "created_at": self.created_at,
        }
        if include_version:
            record["version"] = self.version
        return record


# ============================================
# CATALOG
# ============================================

class Medicine(Base):
    __tablename__ = "medicines"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_medicines_price_non_negative"),
        CheckConstraint("stock >= 0", name="ck_medicines_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(500), nullable=False)
    price = Column(Float, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    category = Column(String(50), nullable=False, default=MedicineCategory.OTHER.value)
    image_urls = Column(JSONType, default=lambda: [DEFAULT_MEDICINE_IMAGE])  # ordered
    manufacturer = Column(String(100))
    expiration_date = Column(Date)

    # Creator, kept for attribution; admin overrides it
    user_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    version = Column(Integer, nullable=False)

    # Relationships
    order_items = relationship("OrderItem", back_populates="medicine")

    __mapper_args__ = {"version_id_col": version}

    def to_dict(self, include_version=False):
        record = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "stock": self.stock,
            "category": self.category,
            "image_urls": list(self.image_urls or []),
            "manufacturer": self.manufacturer,
            "expiration_date": self.expiration_date,
            "user_id": self.user_id,
            "created_at": self.created_at,
        }
        if include_version:
            record["version"] = self.version
        return record


class Doctor(Base):
    __tablename__ = "doctors"
    __table_args__ = (
        CheckConstraint("experience >= 0", name="ck_doctors_experience_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    name = Column(String(100), nullable=False)
    specialization = Column(String(100), nullable=False)
    experience = Column(Integer, nullable=False, default=0)
    qualifications = Column(JSONType, default=list)  # ["MBBS", "MD Cardiology"]

    # Clinic location: address and coordinates always travel together
    clinic_address = Column(String(200))
    longitude = Column(Float)
    latitude = Column(Float)

    phone = Column(String(20), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    image_url = Column(String(500), default=DEFAULT_DOCTOR_IMAGE)
    availability = Column(JSONType, default=list)  # ["9 AM - 1 PM", "3 PM - 7 PM"]

    average_rating = Column(Float, default=0.0)
    num_of_reviews = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    version = Column(Integer, nullable=False)

    # Relationships
    user = relationship("User", back_populates="doctor_profile")
    appointments = relationship("Appointment", back_populates="doctor")

    __mapper_args__ = {"version_id_col": version}

    @property
    def location(self):
        return point(self.longitude, self.latitude)

    def to_dict(self, include_version=False):
        record = {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "specialization": self.specialization,
            "experience": self.experience,
            "qualifications": list(self.qualifications or []),
            "clinic_address": self.clinic_address,
            "location": self.location,
            "phone": self.phone,
            "email": self.email,
            "image_url": self.image_url,
            "availability": list(self.availability or []),
            "average_rating": self.average_rating,
            "num_of_reviews": self.num_of_reviews,
            "created_at": self.created_at,
        }
        if include_version:
            record["version"] = self.version
        return record


class Lab(Base):
    __tablename__ = "labs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    address = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=False)
    email = Column(String(255))
    services = Column(JSONType, default=list)  # ["Blood Test", "X-Ray"]
    operating_hours = Column(String(100))  # "Mon-Sat: 9 AM - 6 PM"
    longitude = Column(Float, nullable=False)
    latitude = Column(Float, nullable=False)

    # Optional owner (admin or lab_staff attribution)
    user_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    version = Column(Integer, nullable=False)

    # Relationships
    appointments = relationship("Appointment", back_populates="lab")

    __mapper_args__ = {"version_id_col": version}

    @property
    def location(self):
        return point(self.longitude, self.latitude)

    def to_dict(self, include_version=False):
        record = {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "services": list(self.services or []),
            "operating_hours": self.operating_hours,
            "location": self.location,
            "user_id": self.user_id,
            "created_at": self.created_at,
        }
        if include_version:
            record["version"] = self.version
        return record


# ============================================
# APPOINTMENTS
# ============================================

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "doctor_id", "appointment_date", "appointment_time",
            name="uq_appointments_doctor_slot",
        ),
        UniqueConstraint(
            "user_id", "lab_id", "appointment_date", "appointment_time",
            name="uq_appointments_lab_slot",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Exactly one of doctor_id / lab_id is set
    doctor_id = Column(Integer, ForeignKey("doctors.id"))
    lab_id = Column(Integer, ForeignKey("labs.id"))

    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String(20), nullable=False)  # "10:00 AM"
    type = Column(String(20), nullable=False, default=AppointmentType.OFFLINE.value)
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    reason = Column(String(500))

    # Snapshot of the doctor/lab location at booking time, never refreshed
    location_longitude = Column(Float)
    location_latitude = Column(Float)
    location_address = Column(String(200))

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    version = Column(Integer, nullable=False)

    # Relationships
    user = relationship("User", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    lab = relationship("Lab", back_populates="appointments")

    __mapper_args__ = {"version_id_col": version}

    @property
    def location(self):
        snapshot = point(self.location_longitude, self.location_latitude)
        if snapshot is None:
            return None
        snapshot["address"] = self.location_address
        return snapshot

    def to_dict(self, include_version=False):
        record = {
            "id": self.id,
            "user_id": self.user_id,
            "doctor_id": self.doctor_id,
            "lab_id": self.lab_id,
            "appointment_date": self.appointment_date,
            "appointment_time": self.appointment_time,
            "type": self.type,
            "status": self.status,
            "reason": self.reason,
            "location": self.location,
            "created_at": self.created_at,
        }
        if include_version:
            record["version"] = self.version
        return record


# ============================================
# ORDERS
# ============================================

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    shipping_address = Column(JSONType, nullable=False)  # {"address", "city", "postal_code", "country"}
    payment_method = Column(String(50), nullable=False)

    items_price = Column(Float, nullable=False, default=0.0)
    tax_price = Column(Float, nullable=False, default=0.0)
    shipping_price = Column(Float, nullable=False, default=0.0)
    total_price = Column(Float, nullable=False, default=0.0)

    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime)
    payment_result = Column(JSONType)  # opaque, as confirmed by an admin

    is_delivered = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(DateTime)

    order_status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    version = Column(Integer, nullable=False)

    # Relationships
    user = relationship("User", back_populates="orders")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dict(self, include_version=False):
        record = {
            "id": self.id,
            "user_id": self.user_id,
            "order_items": [item.to_dict() for item in self.items],
            "shipping_address": self.shipping_address,
            "payment_method": self.payment_method,
            "items_price": self.items_price,
            "tax_price": self.tax_price,
            "shipping_price": self.shipping_price,
            "total_price": self.total_price,
            "is_paid": self.is_paid,
            "paid_at": self.paid_at,
            "payment_result": self.payment_result,
            "is_delivered": self.is_delivered,
            "delivered_at": self.delivered_at,
            "order_status": self.order_status,
            "created_at": self.created_at,
        }
        if include_version:
            record["version"] = self.version
        return record


class OrderItem(Base):
    """Line item; name and price are copied from the medicine at purchase time"""
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id", ondelete="RESTRICT"), nullable=False)
    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)  # Price at time of order
    image_url = Column(String(500))
    quantity = Column(Integer, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="items")
    medicine = relationship("Medicine", back_populates="order_items")

    def to_dict(self):
        return {
            "medicine": self.medicine_id,
            "name": self.name,
            "price": self.price,
            "image_url": self.image_url,
            "quantity": self.quantity,
        }
