# hotspot_sync/settings.py

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s | %(levelname)s | %(name)s\n%(message)s\n"
)

logger = logging.getLogger("hotspot_sync")

# --- Configuration ---
ROW_STORE_BACKEND   = os.getenv("ROW_STORE_BACKEND", "sql")      # sql | memory
REGISTRY_TITLE      = os.getenv("REGISTRY_TITLE", "Hotspot Editor - Project Registry")
DOCUMENT_TITLE_PREFIX = os.getenv("DOCUMENT_TITLE_PREFIX", "Hotspot Editor - ")

# --- Editor limits ---
MAX_HOTSPOTS_PER_SLIDE = int(os.getenv("MAX_HOTSPOTS_PER_SLIDE", "50"))
MIN_ZOOM_LEVEL         = 0.1
MAX_ZOOM_LEVEL         = 5.0
MIN_HOTSPOT_SIZE       = 16
MAX_HOTSPOT_SIZE       = 100

# --- Synchronization windows ---
POSITION_DEBOUNCE_SECONDS = int(os.getenv("POSITION_DEBOUNCE_MS", "500")) / 1000.0
COALESCE_WINDOW_SECONDS   = int(os.getenv("COALESCE_WINDOW_MS", "1000")) / 1000.0
PERIODIC_FLUSH_SECONDS    = float(os.getenv("PERIODIC_FLUSH_SECONDS", "30"))
FLUSH_POLL_INTERVAL       = float(os.getenv("FLUSH_POLL_INTERVAL", "0.1"))

# Rows per upsert chunk; bounds the payload of a single save, not a transaction.
SAVE_BATCH_SIZE = int(os.getenv("SAVE_BATCH_SIZE", "100"))
