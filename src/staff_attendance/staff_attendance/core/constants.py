"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_TOKEN_VALIDITY_SECONDS = 30
TOKEN_RETENTION_LIMIT = 10
# 32 random bytes -> 256 bits of entropy per QR token.
TOKEN_ENTROPY_BYTES = 32

DEFAULT_BUSINESS_TIMEZONE = "Asia/Riyadh"
DEFAULT_LATE_GRACE_MINUTES = 0

DEFAULT_HISTORY_DAYS = 30
DEFAULT_HISTORY_LIMIT = 30
DEFAULT_LOGS_PAGE_SIZE = 100
MAX_LOGS_PAGE_SIZE = 500

DEFAULT_QR_ISSUER_ROLES = ("admin", "qr-manager")
