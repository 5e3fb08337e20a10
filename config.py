import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


# --------------------------
# Helpers
# --------------------------

def env(key: str, default: Optional[str] = None) -> Optional[str]:
  """Fetch an env var, treating an empty value as missing."""
  value = os.getenv(key)
  if value is None or value.strip() == "":
    return default
  return value.strip()


def parse_participants(raw: Optional[str]) -> List[str]:
  if not raw:
    return []
  return [name.strip() for name in raw.split(",") if name.strip()]


# --------------------------
# Persistence
# --------------------------

# Remote KV store (Vercel KV / Upstash REST). Its URL selects the remote backend.
KV_REST_API_URL = env("KV_REST_API_URL")
KV_REST_API_TOKEN = env("KV_REST_API_TOKEN", "")
KV_KEY = env("KV_KEY", "secret-santa:data")

DATA_DIR = Path(env("SANTA_DATA_DIR", str(Path.cwd() / "data")))
DATA_FILE = DATA_DIR / "secret-santa.json"

# --------------------------
# Assignments
# --------------------------

DEFAULT_PARTICIPANTS = parse_participants(env("SANTA_PARTICIPANTS"))

# --------------------------
# Auth / session
# --------------------------

LOCKOUT_THRESHOLD = 5
ADMIN_CONTACT = env("SANTA_ADMIN_CONTACT", "an administrator")
SESSION_COOKIE = "secretSantaUser"
SESSION_MAX_AGE = 7 * 24 * 60 * 60

# --------------------------
# Logging
# --------------------------

LOG_LEVEL = env("LOG_LEVEL", "INFO").upper()


def setup_logging(level: str = LOG_LEVEL) -> logging.Logger:
  logger = logging.getLogger()
  logger.setLevel(level)

  # Prevent duplicate handlers on reload
  if any(getattr(h, "_santa_handler", False) for h in logger.handlers):
    return logger

  fmt = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
  )
  handler = logging.StreamHandler(sys.stdout)
  handler.setFormatter(fmt)
  handler._santa_handler = True
  logger.addHandler(handler)
  return logger


# --------------------------
# Server
# --------------------------

HOST = env("HOST", "127.0.0.1")
PORT = int(env("PORT", "8000"))
