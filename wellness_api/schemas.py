# schemas.py - request bodies
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from wellness_api.database.models import (
    AppointmentStatus, AppointmentType, MedicineCategory, OrderStatus,
)


class Schema(BaseModel):
    model_config = ConfigDict(use_enum_values=True)


# ==================== AUTH & USERS ====================

class UserRegister(Schema):
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=100)


class UserLogin(Schema):
    email: EmailStr
    password: str


class ForgotPasswordRequest(Schema):
    email: EmailStr


class ResetPasswordRequest(Schema):
    password: str = Field(..., min_length=6)


class UserUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = None


# ==================== MEDICINES ====================

class MedicineCreate(Schema):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    category: MedicineCategory = MedicineCategory.OTHER
    image_urls: Optional[List[str]] = None
    manufacturer: Optional[str] = Field(None, max_length=100)
    expiration_date: Optional[date] = None


class MedicineUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category: Optional[MedicineCategory] = None
    image_urls: Optional[List[str]] = None
    manufacturer: Optional[str] = Field(None, max_length=100)
    expiration_date: Optional[date] = None


# ==================== DOCTORS ====================

class DoctorCreate(Schema):
    user_id: int
    name: str = Field(..., min_length=1, max_length=100)
    specialization: str = Field(..., min_length=1, max_length=100)
    experience: int = Field(0, ge=0)
    qualifications: List[str] = []
    clinic_address: Optional[str] = Field(None, max_length=200)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: str = Field(..., max_length=20)
    email: EmailStr
    image_url: Optional[str] = None
    availability: List[str] = []


class DoctorUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    specialization: Optional[str] = Field(None, max_length=100)
    experience: Optional[int] = Field(None, ge=0)
    qualifications: Optional[List[str]] = None
    clinic_address: Optional[str] = Field(None, max_length=200)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    image_url: Optional[str] = None
    availability: Optional[List[str]] = None


# ==================== LABS ====================

class LabCreate(Schema):
    name: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., max_length=20)
    email: Optional[EmailStr] = None
    services: List[str] = []
    operating_hours: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    user_id: Optional[int] = Field(None, description="Owner; defaults to the creating admin")


class LabUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    services: Optional[List[str]] = None
    operating_hours: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = None
    longitude: Optional[float] = None


# ==================== APPOINTMENTS ====================

class AppointmentCreate(Schema):
    doctor: Optional[int] = Field(None, description="Doctor id (or lab, not both)")
    lab: Optional[int] = Field(None, description="Lab id (or doctor, not both)")
    appointment_date: date
    appointment_time: str = Field(..., min_length=1, max_length=20, description="e.g. 10:00 AM")
    type: Optional[AppointmentType] = None
    reason: Optional[str] = Field(None, max_length=500)


class AppointmentUpdate(Schema):
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = Field(None, max_length=20)
    type: Optional[AppointmentType] = None
    status: Optional[AppointmentStatus] = None
    reason: Optional[str] = Field(None, max_length=500)


# ==================== ORDERS ====================

class OrderItemIn(Schema):
    medicine: int
    quantity: int = Field(..., ge=1)


class ShippingAddress(Schema):
    address: str
    city: str
    postal_code: str
    country: str


class OrderCreate(Schema):
    order_items: List[OrderItemIn] = []
    shipping_address: ShippingAddress
    payment_method: str = Field(..., min_length=1, max_length=50)


class PaymentResult(Schema):
    """Opaque confirmation recorded by an admin; stored as-is"""
    payment_result: Dict[str, Any] = {}


class OrderStatusUpdate(Schema):
    status: OrderStatus


def payload(model: BaseModel) -> dict:
    """Fields the client actually sent"""
    return model.model_dump(exclude_unset=True)
