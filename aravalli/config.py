# aravalli/config.py
"""Environment-driven settings for the Aravalli Watch backend.

Every value has a safe default so the app starts with no extra
configuration; a local `.env` file is honoured.
"""
import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))  # aravalli/
PROJECT_ROOT_DIR = os.path.dirname(BASE_DIR)

APP_NAME = "Aravalli Watch"
SITE_VERSION = os.getenv("AW_SITE_VERSION", "1.2.1")

# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL")
SQLITE_PATH = os.path.join(PROJECT_ROOT_DIR, "aravalli.db")

# --- Logging ---
LOG_LEVEL = os.getenv("AW_LOG_LEVEL", "INFO")

# --- Gemini ---
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("AW_GEMINI_MODEL", "gemini-2.5-flash")
LLM_TIMEOUT_SECONDS = float(os.getenv("AW_LLM_TIMEOUT", "60"))

# --- Site builder / file access ---
SOURCE_BASE_DIR = os.getenv("AW_SOURCE_BASE_DIR", PROJECT_ROOT_DIR)
SOURCE_ROOT = os.getenv("AW_SOURCE_ROOT", "static")
SOURCE_EXTENSIONS = (".html", ".css", ".js", ".ts", ".tsx")
SOURCE_EXCLUDED_DIRS = ("node_modules",)
STATIC_DIR = os.path.join(SOURCE_BASE_DIR, SOURCE_ROOT)

# --- Accounts seeded at startup ---
ADMIN_USERNAME = os.getenv("AW_ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("AW_ADMIN_PASSWORD")
LEGACY_ADMIN_USERNAME = os.getenv("AW_LEGACY_ADMIN_USERNAME")
SEED_TEST_USER = os.getenv("AW_SEED_TEST_USER", "1") == "1"

# --- API ---
HISTORY_LIMIT = int(os.getenv("AW_HISTORY_LIMIT", "50"))
PROMPT_HISTORY_LIMIT = int(os.getenv("AW_PROMPT_HISTORY_LIMIT", "10"))
LOCATION_DELAY_SECONDS = float(os.getenv("AW_LOCATION_DELAY", "0.5"))
