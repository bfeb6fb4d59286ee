import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from pastee.channel import EventChannel
from pastee.config import DEBOUNCE_WINDOW
from pastee.models import (
    ClipboardSnapshot,
    ClipEvent,
    ErrorEvent,
    FileListEvent,
    HtmlEvent,
    ImageEvent,
    TextEvent,
)
from pastee.utils import compute_hash

logger = logging.getLogger(__name__)


class SnapshotReader(Protocol):
    def read_snapshot(self) -> ClipboardSnapshot: ...


def classify(snapshot: ClipboardSnapshot) -> tuple[ClipEvent, bytes] | None:
    """Pick the richest flavor of a snapshot and its canonical bytes.

    Priority is HTML, then plain text, then image, then file list.
    """
    if snapshot.html:
        return HtmlEvent(html=snapshot.html, text=snapshot.text or None), snapshot.html.encode("utf-8")
    if snapshot.text:
        return TextEvent(snapshot.text), snapshot.text.encode("utf-8")
    if snapshot.image:
        return ImageEvent(snapshot.image), snapshot.image
    if snapshot.files:
        paths = [str(p) for p in snapshot.files]
        return FileListEvent(paths), "\n".join(paths).encode("utf-8")
    return None


class ClipboardListener:
    """Turns clipboard-change notifications into debounced events on a channel.

    ``on_clipboard_change`` runs on whatever thread delivers the notification
    and never raises.
    """

    def __init__(
        self,
        reader: SnapshotReader,
        channel: EventChannel,
        debounce_window: float = DEBOUNCE_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._reader = reader
        self._channel = channel
        self._debounce_window = debounce_window
        self._clock = clock
        self._lock = threading.Lock()
        self._last_hash = ""
        self._last_seen_at = 0.0

    def on_clipboard_change(self) -> bool:
        try:
            snapshot = self._reader.read_snapshot()
        except Exception as e:
            logger.warning("Clipboard read failed: %s", e)
            return self._emit(ErrorEvent(str(e) or type(e).__name__))

        classified = classify(snapshot)
        if classified is None:
            logger.debug("Clipboard changed but holds no supported format")
            return False

        event, canonical = classified
        if not self._update_latest(canonical):
            logger.debug("Suppressed repeated %s notification", type(event).__name__)
            return False
        return self._emit(event)

    def _update_latest(self, data: bytes) -> bool:
        content_hash = compute_hash(data)
        now = self._clock()
        with self._lock:
            if content_hash == self._last_hash and now - self._last_seen_at < self._debounce_window:
                return False
            self._last_hash = content_hash
            self._last_seen_at = now
        return True

    def _emit(self, event: ClipEvent) -> bool:
        try:
            return self._channel.send(event)
        except Exception:
            logger.exception("Failed to hand off %s", type(event).__name__)
            return False
