import os
from dotenv import load_dotenv

load_dotenv()

YOUTUBE_API_KEY = os.getenv("YOUTUBE_API_KEY", "")
YOUTUBE_BASE_URL = os.getenv("YOUTUBE_BASE_URL", "https://www.googleapis.com/youtube/v3")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./evernet.db")
OUTPUT_DIR = os.getenv("OUTPUT_DIR", "/tmp/evernet_reports")

SCAN_BATCH_SIZE = int(os.getenv("SCAN_BATCH_SIZE", "100"))
SCAN_MAX_WORKERS = int(os.getenv("SCAN_MAX_WORKERS", "8"))
PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "15"))
SCAN_INTERVAL_HOURS = float(os.getenv("SCAN_INTERVAL_HOURS", "24"))
UNLOCK_INTERVAL_HOURS = float(os.getenv("UNLOCK_INTERVAL_HOURS", "24"))

# Seed values for the app_settings record (written only when it is absent)
DEFAULT_PAYOUT_RATE_PER_1000 = os.getenv("DEFAULT_PAYOUT_RATE_PER_1000", "0.30")
DEFAULT_PREMIUM_SHARE_PERCENT = os.getenv("DEFAULT_PREMIUM_SHARE_PERCENT", "7")
DEFAULT_LOCK_PERIOD_DAYS = int(os.getenv("DEFAULT_LOCK_PERIOD_DAYS", "90"))
DEFAULT_MINIMUM_WITHDRAWAL = os.getenv("DEFAULT_MINIMUM_WITHDRAWAL", "50.00")
