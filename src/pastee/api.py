"""Calls the UI layer makes into the clip history."""

from pastee.config import RECENT_LIMIT
from pastee.models import ClipData, ClipPreview
from pastee.storage import StorageManager


def query_history(
    storage: StorageManager,
    query: str | None = None,
    limit: int = RECENT_LIMIT,
    offset: int = 0,
) -> list[ClipPreview]:
    """Recent clips for a blank query, full-text matches otherwise.

    ``limit`` and ``offset`` page either listing. Search matches are also
    capped by the store before paging.
    """
    if query is None or not query.strip():
        return storage.get_recent(limit, offset)
    return storage.search(query)[offset:offset + limit]


def select_clip_item(storage: StorageManager, clip_id: int) -> ClipData:
    """Full content of a clip, ready to be put back on the clipboard.

    Raises ClipNotFoundError when the clip or its image blob is gone.
    """
    return storage.get_content(clip_id)
