"""
config.py
Runtime settings read from the environment (paths, gateway keys, poll timing, limits).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.environ.get("MEMBERSHIP_DATA_DIR", BASE_DIR / "data"))
DB_FILE = Path(os.environ.get("MEMBERSHIP_DB", DATA_DIR / "members.db"))

PARTY_NAME = os.environ.get("PARTY_NAME", "Kla Tham Party")

# Payment gateway (Omise). Keys must come from the environment.
OMISE_API_URL = os.environ.get("OMISE_API_URL", "https://api.omise.co")
OMISE_SECRET_KEY = os.environ.get("OMISE_SECRET_KEY", "")
OMISE_DASHBOARD_URL = "https://dashboard.omise.co/"
GATEWAY_TIMEOUT_SECONDS = float(os.environ.get("GATEWAY_TIMEOUT", "15") or "15")

# Payment proxy (server.py) as seen from the Streamlit app
PROXY_HOST = os.environ.get("PROXY_HOST", "127.0.0.1")
PROXY_PORT = int(os.environ.get("PORT", "3001") or "3001")
PROXY_BASE_URL = os.environ.get("PROXY_BASE_URL", f"http://localhost:{PROXY_PORT}")

CURRENCY = "THB"
POLL_INTERVAL_SECONDS = 3
POLL_TIMEOUT_SECONDS = 600

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
MIN_MEMBER_AGE = 18

ADDRESS_DATA_BASE_URL = os.environ.get(
    "ADDRESS_DATA_BASE_URL",
    "https://raw.githubusercontent.com/kongvut/thai-province-data/refs/heads/master/api/latest",
)
ADDRESS_CACHE_DIR = DATA_DIR / "address"

DEFAULT_ADMIN_USERNAME = os.environ.get("DEFAULT_ADMIN_USERNAME", "admin@example.com")
DEFAULT_ADMIN_PASSWORD = os.environ.get("DEFAULT_ADMIN_PASSWORD", "admin123")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, level or LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
