"""Project-wide configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(os.environ.get("GALLERY_INGEST_PROJECT_ROOT", Path.cwd()))

load_dotenv(PROJECT_ROOT / ".env")

DB_PATH = Path(os.environ.get("GALLERY_DB_PATH", PROJECT_ROOT / "gallery_ingest.duckdb"))
STORE_DIR = Path(os.environ.get("GALLERY_STORE_DIR", PROJECT_ROOT / "data" / "store"))

# Google Drive API
GOOGLE_DRIVE_API_KEY = os.environ.get("GOOGLE_DRIVE_API_KEY", "")
GOOGLE_DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
DRIVE_PAGE_SIZE = 1000

# Compression
SIZE_THRESHOLD = 40 * 1024 * 1024
TARGET_SIZE = 10 * 1024 * 1024
INITIAL_QUALITY = 80
QUALITY_STEP = 10
QUALITY_FLOOR = 30
RESIZE_QUALITY = 75
MAX_IMAGE_PIXELS = 268_402_689  # 0x3FFF * 0x3FFF

# Object store locators
STORE_BASE_URL = os.environ.get("GALLERY_STORE_BASE_URL", "http://127.0.0.1:8000/objects")
LOCATOR_SECRET = os.environ.get("GALLERY_LOCATOR_SECRET", "")
LOCATOR_TTL_SECONDS = 7 * 24 * 60 * 60

# Label detection – YOLO11
YOLO_MODEL_NAME = "yolo11x"
YOLO_MODEL_PATH = PROJECT_ROOT / "models" / "yolo11x.pt"
LABEL_MAX = 10
LABEL_MIN_CONFIDENCE = 0.70

# Face detection – InsightFace
INSIGHTFACE_MODEL_NAME = "insightface/buffalo_l"
FACE_EMBEDDING_DIM = 512
FACE_INDEX_MAX_FACES = 10
AGE_RANGE_MARGIN = 5

# Pipeline
INGEST_MAX_WORKERS = int(os.environ.get("GALLERY_INGEST_MAX_WORKERS", "4"))
LOG_LEVEL = os.environ.get("GALLERY_LOG_LEVEL", "INFO")
