import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# .env sits next to the executable (frozen build) or at the project root
if getattr(sys, "frozen", False):
    BASE_DIR = Path(sys.executable).parent
else:
    BASE_DIR = Path(__file__).resolve().parents[2]

load_dotenv(dotenv_path=BASE_DIR / ".env")

# ---------------------
# Required values
# ---------------------
DATABASE_URL = os.getenv("DATABASE_URL")
JWT_SECRET = os.getenv("JWT_SECRET")

if not DATABASE_URL or not JWT_SECRET:
    raise RuntimeError("Set DATABASE_URL and JWT_SECRET in .env")

# ---------------------
# Optional values
# ---------------------
JWT_ALGO = os.getenv("JWT_ALGO", "HS256")
ACCESS_TOKEN_MINUTES = int(os.getenv("ACCESS_TOKEN_MINUTES", "720"))

SITE_URL = os.getenv("SITE_URL", "http://localhost:8080").rstrip("/")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:8080,http://127.0.0.1:8080",
    ).split(",")
    if o.strip()
]

SELECTED_BRANCH_COOKIE = os.getenv("SELECTED_BRANCH_COOKIE", "selectedBranch")
