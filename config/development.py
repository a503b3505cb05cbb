import os

from config import parse_roles

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "staff_attendance"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo users on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

# QR attendance policy
QR_TOKEN_VALIDITY_SECONDS = int(os.getenv("QR_TOKEN_VALIDITY_SECONDS", "30"))
QR_TOKEN_RETENTION = int(os.getenv("QR_TOKEN_RETENTION", "10"))
QR_ISSUER_ROLES = parse_roles(os.getenv("QR_ISSUER_ROLES", "admin,qr-manager"))
QR_AUTO_ROTATE = bool(int(os.getenv("QR_AUTO_ROTATE", "0")))

BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Asia/Riyadh")
LATE_GRACE_MINUTES = int(os.getenv("LATE_GRACE_MINUTES", "0"))
CROSS_MIDNIGHT_CHECKOUT = bool(int(os.getenv("CROSS_MIDNIGHT_CHECKOUT", "1")))
