import logging
import threading

from pastee.channel import EventChannel
from pastee.models import ClipEvent, ErrorEvent, FileListEvent, HtmlEvent, ImageEvent, TextEvent
from pastee.storage import StorageManager
from pastee.utils import html_to_text

logger = logging.getLogger(__name__)


class Dispatcher:
    """Drains the event channel into storage on its own thread.

    A failed write is logged and the loop moves on to the next event. Closing
    the channel ends the loop.
    """

    def __init__(self, channel: EventChannel, storage: StorageManager):
        self._channel = channel
        self._storage = storage
        self._thread: threading.Thread | None = None
        self.processed = 0
        self.failed = 0

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self.run, name="pastee-dispatcher", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread:
            self._thread.join(timeout=timeout)

    def run(self) -> None:
        logger.info("Dispatcher started")
        while True:
            event = self._channel.receive()
            if event is None:
                break
            self.dispatch(event)
        logger.info("Dispatcher stopped (%d stored, %d failed)", self.processed, self.failed)

    def dispatch(self, event: ClipEvent) -> int | None:
        try:
            clip_id = self._store(event)
        except Exception:
            self.failed += 1
            logger.exception("Failed to store %s", type(event).__name__)
            return None

        if clip_id:
            self.processed += 1
            logger.info("Stored %s as clip %d", type(event).__name__, clip_id)
        return clip_id

    def _store(self, event: ClipEvent) -> int | None:
        if isinstance(event, TextEvent):
            return self._storage.add_text(event.text)
        if isinstance(event, HtmlEvent):
            preview_text = event.text or html_to_text(event.html)
            return self._storage.add_html(preview_text, event.html)
        if isinstance(event, ImageEvent):
            return self._storage.add_image(event.data)
        if isinstance(event, FileListEvent):
            return self._storage.add_files(event.paths)
        if isinstance(event, ErrorEvent):
            logger.warning("Clipboard capture error: %s", event.message)
            return None
        raise TypeError(f"Unknown clipboard event: {event!r}")
