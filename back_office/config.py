"""Back Office configuration: loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(REPO_ROOT / ".env")

# Supabase
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.environ.get("SUPABASE_SERVICE_KEY", "")

# Webhook secret (delivery system to Back Office auth)
WEBHOOK_SECRET = os.environ.get("WEBHOOK_SECRET", "")

# Server
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

# VAT fallback when the tenant row is missing
DEFAULT_ENABLE_VAT = os.environ.get("DEFAULT_ENABLE_VAT", "true").lower() in ("1", "true", "yes")
DEFAULT_VAT_RATE = float(os.environ.get("DEFAULT_VAT_RATE", "7"))

# Lifecycle summary-date fallbacks
DEFAULT_SERVICE_INTERVAL_MONTHS = int(os.environ.get("DEFAULT_SERVICE_INTERVAL_MONTHS", "6"))
DEFAULT_USAGE_DURATION_DAYS = int(os.environ.get("DEFAULT_USAGE_DURATION_DAYS", "365"))

# Scheduler
EXPIRY_CHECK_HOURS = int(os.environ.get("EXPIRY_CHECK_HOURS", "6"))
