import os
from dotenv import load_dotenv

# .env at the project root
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./chatorder.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
SQL_ECHO = _env_flag("SQL_ECHO")

# Conversation session
STATE_TTL_MIN = int(os.getenv("STATE_TTL_MIN", "10"))
PICKUP_PAYMENT_TIMEOUT_MIN = int(os.getenv("PICKUP_PAYMENT_TIMEOUT_MIN", "10"))
CATALOG_CACHE_TTL_SECONDS = float(os.getenv("CATALOG_CACHE_TTL_SECONDS", "60"))
DEFAULT_STORE_TIMEZONE = os.getenv("DEFAULT_STORE_TIMEZONE", "Asia/Kolkata").strip() or "Asia/Kolkata"
DEFAULT_CURRENCY_SYMBOL = os.getenv("DEFAULT_CURRENCY_SYMBOL", "₹")

# External integrations
EXTERNAL_TIMEOUT_SECONDS = float(os.getenv("EXTERNAL_TIMEOUT_SECONDS", "8"))
INTEGRATION_FAILURE_THRESHOLD = int(os.getenv("INTEGRATION_FAILURE_THRESHOLD", "3"))
INTEGRATION_COOLDOWN_SECONDS = float(os.getenv("INTEGRATION_COOLDOWN_SECONDS", "60"))

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "").strip()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash").strip()
GEMINI_API_BASE = os.getenv(
    "GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
).rstrip("/")

GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "").strip()
GOOGLE_GEOCODE_URL = os.getenv(
    "GOOGLE_GEOCODE_URL", "https://maps.googleapis.com/maps/api/geocode/json"
)

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "").strip()
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "").strip()
RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1").rstrip("/")
APP_PUBLIC_URL = os.getenv("APP_PUBLIC_URL", "").strip().rstrip("/")

# HTTP adapter
INGEST_API_TOKEN = os.getenv("INGEST_API_TOKEN", "").strip()

_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
