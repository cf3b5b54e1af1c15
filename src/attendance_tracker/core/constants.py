"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_WORK_START_TIME = "07:00"
DEFAULT_LATE_THRESHOLD_MINUTES = 15
DEFAULT_HISTORY_LIMIT = 30
DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0
DEFAULT_CONNECTION_TIMEOUT_SECONDS = 5

# Payload printed on student badges: "HADER:<student id>"
QR_PREFIX = "HADER:"
# Barcodes are zero-padded to this width
BARCODE_WIDTH = 8

SYSTEM_ACTOR = "system"
ADMIN_ACTOR = "admin"
