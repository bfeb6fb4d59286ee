import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("PASTEE_DATA_DIR", Path.home() / ".local" / "share" / "pastee"))
DB_NAME = "history.db"
IMAGE_DIR_NAME = "images"
LOG_NAME = "pastee.log"

POLL_INTERVAL = 0.25  # seconds between pasteboard change-count samples
DEBOUNCE_WINDOW = 0.5  # identical content seen again within this window is a re-fire
CHANNEL_CAPACITY = 128  # events buffered between capture and storage
MAX_TEXT_SIZE = 1_000_000  # 1MB text limit
MAX_IMAGE_SIZE = 20_000_000  # 20MB image limit
PREVIEW_LENGTH = 100  # characters of text shown in a preview
SEARCH_LIMIT = 50
RECENT_LIMIT = 50


def _parse_max_entries() -> int:
    raw = os.environ.get("PASTEE_MAX_ENTRIES")
    if raw is None:
        return 1000
    try:
        value = int(raw)
    except ValueError:
        return 1000
    if value < 0:
        return 1000
    return value


MAX_ENTRIES = _parse_max_entries()  # default keep count for an explicit purge_old()
