import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_db"),
    "connection_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "5")),
}

# "mysql" for the durable store, "memory" for a throwaway demo kiosk
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "mysql")

WORK_START_TIME = os.getenv("WORK_START_TIME", "07:00")
LATE_THRESHOLD_MINUTES = int(os.getenv("LATE_THRESHOLD_MINUTES", "15"))
LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5"))

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also insert the demo roster when the students table is empty
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
