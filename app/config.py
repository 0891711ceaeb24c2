"""
Application configuration settings for the image annotator UI and services
"""
import os
from pathlib import Path

# Project directories
# Support relocated data via environment variable override
PROJECT_ROOT = Path(os.environ.get('IMAGE_ANNOTATOR_ROOT', Path(__file__).parent.parent))
DATA_DIR = PROJECT_ROOT / "data"

# Storage backend: 'remote' (read-only demo API), 'local' (JSON file store) or 'database'
STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'local').lower()

# Remote demo API (rejects writes)
DEMO_API_URL = os.getenv('DEMO_API_URL', 'https://my-json-server.typicode.com/MostafaKMilly/demo')
REQUEST_TIMEOUT = float(os.getenv('REQUEST_TIMEOUT', '10'))

# Local persisted store
LOCAL_STORE_PATH = Path(os.getenv('LOCAL_STORE_PATH', DATA_DIR / "local_store.json"))
# Seed the local store from the demo API on first run
SEED_FROM_REMOTE = os.getenv('SEED_FROM_REMOTE', 'true').lower() == 'true'

# Managed database backend
DATABASE_URL = os.getenv('DATABASE_URL', f"sqlite:///{DATA_DIR / 'annotator.db'}")

# Display box for the annotation surface
# Wide viewports (> WIDE_VIEWPORT_THRESHOLD) get the wider box
MAX_DISPLAY_WIDTH = 800
WIDE_MAX_DISPLAY_WIDTH = 1000
WIDE_VIEWPORT_THRESHOLD = 1200
MAX_DISPLAY_HEIGHT = 600

# Rectangles must exceed this many display pixels on both sides
MIN_ANNOTATION_SIZE = 5
ANNOTATION_STROKE_WIDTH = 3

# Annotation Canvas Configuration
# Development mode connects to Vite dev server at http://localhost:5174
# Production mode loads pre-built component from frontend/annotation_canvas/build/
ANNOTATION_CANVAS_RELEASE_MODE = os.getenv('ANNOTATION_CANVAS_RELEASE', 'false').lower() == 'true'

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
