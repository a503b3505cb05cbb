import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "staff_attendance_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

QR_TOKEN_VALIDITY_SECONDS = 30
QR_TOKEN_RETENTION = 10
QR_ISSUER_ROLES = ("admin", "qr-manager")
QR_AUTO_ROTATE = False

BUSINESS_TIMEZONE = "Asia/Riyadh"
LATE_GRACE_MINUTES = 0
CROSS_MIDNIGHT_CHECKOUT = True
