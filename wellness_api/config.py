# config.py - environment driven settings
import os
from pathlib import Path
from urllib.parse import quote_plus

from dotenv import load_dotenv

load_dotenv()

# ==================== DATABASE ====================

DB_USER = os.getenv("DB_USER", "wellness_admin")
DB_PASS = os.getenv("DB_PASS", "")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "wellness")

# URL ENCODE PASSWORD
DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql://{DB_USER}:{quote_plus(DB_PASS)}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

# ==================== AUTH ====================

JWT_SECRET = os.getenv("JWT_SECRET", "your-super-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "1440"))  # 1 day

RESET_TOKEN_BYTES = 20
RESET_TOKEN_EXPIRE_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "10"))
RESET_PASSWORD_URL = os.getenv(
    "RESET_PASSWORD_URL", "http://localhost:3000/auth/resetpassword"
)

# ==================== LIST QUERIES ====================

DEFAULT_PAGE_LIMIT = 25
MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "100"))

# ==================== ORDERS ====================

TAX_RATE = float(os.getenv("TAX_RATE", "0.18"))
SHIPPING_PRICE = float(os.getenv("SHIPPING_PRICE", "40"))
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", "500"))

# ==================== EMAIL ====================

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_EMAIL = os.getenv("SMTP_EMAIL")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
FROM_NAME = os.getenv("FROM_NAME", "Kashmir Wellness")
FROM_EMAIL = os.getenv("FROM_EMAIL", "noreply@kashmirwellness.in")

# ==================== UPLOADS ====================

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", "uploads"))
UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5 MB

# ==================== APP ====================

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
