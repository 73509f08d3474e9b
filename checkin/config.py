# checkin/config.py
import os

from dotenv import load_dotenv

load_dotenv(override=True)


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


# ---------- database ----------
DATABASE_URL = os.getenv("DATABASE_URL", "")

DB_POOL_MAX_SIZE = int(os.getenv("DB_POOL_MAX_SIZE", "10"))
DB_POOL_MIN_SIZE = int(os.getenv("DB_POOL_MIN_SIZE", "1"))
DB_POOL_MAX_WAIT = float(os.getenv("DB_POOL_MAX_WAIT", "15"))   # seconds to wait for a conn
DB_OP_TIMEOUT    = float(os.getenv("DB_OP_TIMEOUT", "10"))      # server-side statement_timeout (seconds)

# ---------- queue ----------
REDIS_URL     = os.getenv("REDIS_URL", "")
QUEUE_NAME    = os.getenv("QUEUE_NAME", "outbound")
DISABLE_QUEUE = _flag("DISABLE_QUEUE")

# ---------- mail provider ----------
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
SENDER_EMAIL   = os.getenv("SENDER_EMAIL", "Check-In System <onboarding@resend.dev>")
REPLY_TO_EMAIL = os.getenv("REPLY_TO_EMAIL", "")
# If true, skip actual provider sends (helpful for demos)
DEMO_SEND      = _flag("DEMO_SEND")

# ---------- inbound webhook ----------
# Optional. Absence disables signature verification (local development only).
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "")

# ---------- verification links ----------
VERIFICATION_BASE_URL = os.getenv("VERIFICATION_BASE_URL", "http://localhost:3000")

# ---------- operator access ----------
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN", "")

# ---------- analysis ----------
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL   = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "30"))

# ---------- scheduler ----------
ENABLE_SCHEDULER    = _flag("ENABLE_SCHEDULER", "true")
CHECKIN_CRON_MINUTE = os.getenv("CHECKIN_CRON_MINUTE", "0")
CHECKIN_MAX_WORKERS = int(os.getenv("CHECKIN_MAX_WORKERS", "4"))

# ---------- realtime ----------
ENABLE_REALTIME            = _flag("ENABLE_REALTIME", "true")
SUBMISSIONS_CHANNEL        = os.getenv("SUBMISSIONS_CHANNEL", "form_submissions")
REALTIME_RECONNECT_SECONDS = float(os.getenv("REALTIME_RECONNECT_SECONDS", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
