import os
from pathlib import Path
from typing import Dict

BASE_DIR = Path(__file__).resolve().parents[3]
DATA_DIR = Path(os.environ.get("APPHARVEST_DATA_DIR") or BASE_DIR / "data")

# Snapshot files, in pipeline order
ALL_LISTINGS_FILE = "allApp.json"
TOP_LISTINGS_FILE = "topApps.json"
ENRICHED_FILE = "topAppsRecent.json"

# Source site
INDEX_URL = "https://sasi.heymantle.com/categories"
CATEGORY_LINK_MARKER = "/category/"
LISTING_LINK_MARKER = "apps.shopify.com"
LISTING_CONTAINER_SELECTOR = "div.grid, table tbody tr"
VIEWPORT = {"width": 1280, "height": 1024}

# Waits (milliseconds)
INDEX_WAIT_MS = 10_000
LISTING_WAIT_MS = 5_000
NAVIGATION_TIMEOUT_MS = 60_000

# Crawl limits
MAX_PAGES_PER_CATEGORY = 50
POPULARITY_THRESHOLD = 20

# Detail-page request types not needed to read the launch date
BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font", "media", "other"})


def snapshot_paths(data_dir: Path = DATA_DIR) -> Dict[str, Path]:
    data_dir = Path(data_dir)
    return {
        "all": data_dir / ALL_LISTINGS_FILE,
        "top": data_dir / TOP_LISTINGS_FILE,
        "enriched": data_dir / ENRICHED_FILE,
    }
