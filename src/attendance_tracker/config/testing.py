SECRET_KEY = "test-secret"

STORAGE_BACKEND = "memory"

WORK_START_TIME = "07:00"
LATE_THRESHOLD_MINUTES = 15
LOCK_TIMEOUT_SECONDS = 1.0

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = False
AUTO_SEED_DB = False
