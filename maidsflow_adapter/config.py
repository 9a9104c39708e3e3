"""Environment configuration for the MaidsFlow adapter."""
import os

from dotenv import load_dotenv

load_dotenv()

BASE_URL = os.getenv("MAIDSFLOW_BASE_URL", "https://api.maidsflow.com/api").rstrip("/")
API_TOKEN = os.getenv("MAIDSFLOW_API_TOKEN")
TIMEOUT = float(os.getenv("MAIDSFLOW_TIMEOUT", "15"))

# Wall-clock zone used by the "local-clock" convention
TIMEZONE = os.getenv("MAIDSFLOW_TIMEZONE", "UTC")
# "utc" or "local-clock"; applies to single and recurring appointments alike
TIME_CONVENTION = os.getenv("MAIDSFLOW_TIME_CONVENTION", "utc")

# 1 = await each create before issuing the next
SERIES_CONCURRENCY = int(os.getenv("SERIES_CONCURRENCY", "1"))

ADAPTER_API_KEY = os.getenv("ADAPTER_API_KEY", "")


def offline_mode() -> bool:
    return os.getenv("OFFLINE_MODE", "0") == "1"
