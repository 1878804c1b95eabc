import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS", "*")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Outbound notifier (email gateway). Unset means events are only logged.
NOTIFIER_URL = os.getenv("NOTIFIER_URL") or None
NOTIFIER_TIMEOUT_SECONDS = float(os.getenv("NOTIFIER_TIMEOUT_SECONDS", "10"))
NOTIFIER_MAX_RETRIES = int(os.getenv("NOTIFIER_MAX_RETRIES", "2"))

CALENDAR_CACHE_TTL_SECONDS = int(os.getenv("CALENDAR_CACHE_TTL_SECONDS", "300"))
DEFAULT_CALENDAR_MONTHS = int(os.getenv("DEFAULT_CALENDAR_MONTHS", "3"))
MAX_CALENDAR_MONTHS = int(os.getenv("MAX_CALENDAR_MONTHS", "24"))

# Retries when another writer bumped the property version mid-admission
ADMISSION_MAX_RETRIES = int(os.getenv("ADMISSION_MAX_RETRIES", "3"))
