"""Converter configuration. Loads from environment and .env file."""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")

# Supported formats
ACCEPTED_INPUT_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/bmp",
    "image/svg+xml",
}
FORMAT_MIME_TYPES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}
FORMAT_EXTENSIONS = {
    "jpeg": "jpg",
    "png": "png",
    "webp": "webp",
}

# Conversion defaults (env overrides)
DEFAULT_FORMAT = os.getenv("DEFAULT_FORMAT", "webp").strip().lower()
DEFAULT_QUALITY = int(os.getenv("DEFAULT_QUALITY", "80"))
# lanczos | bicubic | bilinear
RESAMPLE_FILTER = os.getenv("RESAMPLE_FILTER", "lanczos").strip().lower()
# Pillow decompression bomb guard; 0 keeps Pillow's own default
MAX_IMAGE_PIXELS = int(os.getenv("MAX_IMAGE_PIXELS", "0"))

# Queue: seconds without a terminal event before a job is failed (0 = no timeout)
JOB_TIMEOUT_SECONDS = float(os.getenv("JOB_TIMEOUT_SECONDS", "0"))

# Archive download name: <prefix>_<YYYY-MM-DD>.zip
ARCHIVE_PREFIX = os.getenv("ARCHIVE_PREFIX", "kagami").strip() or "kagami"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)