# Database Package - Centralized imports
# Allows easy importing of models, connection utilities, and ORM objects

from .connection import (
    engine,
    Base,
    SessionLocal,
    get_db,
)

from .models import (
    # Enums
    UserRole,
    MedicineCategory,
    AppointmentType,
    AppointmentStatus,
    OrderStatus,

    # User
    User,

    # Catalog
    Medicine,
    Doctor,
    Lab,

    # Bookings & purchases
    Appointment,
    Order,
    OrderItem,
)

__all__ = [
    # Connection
    "engine",
    "Base",
    "SessionLocal",
    "get_db",

    # Enums
    "UserRole",
    "MedicineCategory",
    "AppointmentType",
    "AppointmentStatus",
    "OrderStatus",

    # Models
    "User",
    "Medicine",
    "Doctor",
    "Lab",
    "Appointment",
    "Order",
    "OrderItem",
]
