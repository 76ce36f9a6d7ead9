"""
Database setup

    python -m wellness_api.manage init-db
    python -m wellness_api.manage create-admin --name "Admin" --email admin@example.com
    python -m wellness_api.manage seed
"""
import argparse
import getpass
import logging
import sys
from datetime import date

from sqlalchemy import inspect

from wellness_api.config import LOG_LEVEL
from wellness_api.database.connection import Base, SessionLocal, engine
from wellness_api.database.models import Lab, Medicine, MedicineCategory, User, UserRole
from wellness_api.database.store import save
from wellness_api.errors import ServiceError
from wellness_api.integrations.credentials import hash_password

logger = logging.getLogger("wellness_api.manage")


def init_db() -> int:
    """Create tables"""
    Base.metadata.create_all(bind=engine)
    tables = inspect(engine).get_table_names()
    logger.info("%d tables ready", len(tables))
    return 0


def create_admin(name: str, email: str, password: str) -> int:
    """Create the first admin, or promote an existing account with that email"""
    init_db()
    db = SessionLocal()
    try:
        email = email.strip().lower()
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            user = User(name=name, email=email, password_hash=hash_password(password))
        user.role = UserRole.ADMIN.value
        save(db, user)
        logger.info("Admin ready: %s (id %s)", user.email, user.id)
        return 0
    finally:
        db.close()


# ==================== SAMPLE CATALOG ====================

SAMPLE_MEDICINES = [
    {
        "name": "Paracetamol 500mg",
        "description": "Fever and mild pain relief",
        "price": 25.0,
        "stock": 500,
        "category": MedicineCategory.PAIN_RELIEF.value,
        "manufacturer": "Cipla",
        "expiration_date": date(2027, 12, 31),
    },
    {
        "name": "Amoxicillin 250mg",
        "description": "Broad-spectrum antibiotic",
        "price": 85.0,
        "stock": 200,
        "category": MedicineCategory.ANTIBIOTICS.value,
        "manufacturer": "Sun Pharma",
        "expiration_date": date(2027, 6, 30),
    },
    {
        "name": "Vitamin D3 1000 IU",
        "description": "Daily vitamin D supplement",
        "price": 150.0,
        "stock": 300,
        "category": MedicineCategory.VITAMINS.value,
        "manufacturer": "HealthKart",
        "expiration_date": date(2028, 1, 31),
    },
]

SAMPLE_LABS = [
    {
        "name": "Valley Diagnostics",
        "address": "Residency Road, Srinagar",
        "phone": "+911942450000",
        "email": "contact@valleydiagnostics.in",
        "services": ["Blood Test", "X-Ray", "Ultrasound"],
        "operating_hours": "Mon-Sat: 8 AM - 8 PM",
        "longitude": 74.8064,
        "latitude": 34.0740,
    },
]


def seed() -> int:
    """Insert the sample catalog; existing names are left untouched"""
    init_db()
    db = SessionLocal()
    try:
        admin = db.query(User).filter(User.role == UserRole.ADMIN.value).first()
        if admin is None:
            logger.error("Create an admin first: python -m wellness_api.manage create-admin")
            return 1

        created = 0
        for data in SAMPLE_MEDICINES:
            if db.query(Medicine.id).filter(Medicine.name == data["name"]).first() is None:
                save(db, Medicine(user_id=admin.id, **data))
                created += 1
        for data in SAMPLE_LABS:
            if db.query(Lab.id).filter(Lab.name == data["name"]).first() is None:
                save(db, Lab(user_id=admin.id, **data))
                created += 1

        logger.info("Seeded %d catalog entries", created)
        return 0
    finally:
        db.close()


def main(argv=None) -> int:
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(message)s")

    parser = argparse.ArgumentParser(prog="wellness-manage", description=__doc__.splitlines()[1])
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="create tables")

    admin_parser = commands.add_parser("create-admin", help="create or promote an admin account")
    admin_parser.add_argument("--name", default="Administrator")
    admin_parser.add_argument("--email", required=True)
    admin_parser.add_argument("--password", help="prompted for when omitted")

    commands.add_parser("seed", help="insert a sample catalog")

    args = parser.parse_args(argv)
    try:
        if args.command == "init-db":
            return init_db()
        if args.command == "create-admin":
            password = args.password or getpass.getpass("Admin password: ")
            return create_admin(args.name, args.email, password)
        return seed()
    except ServiceError as exc:
        logger.error("%s: %s", exc.kind, exc.message)
        return 1


if __name__ == "__main__":
    sys.exit(main())
