import logging
import queue
import threading

from pastee.config import CHANNEL_CAPACITY
from pastee.models import ClipEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


class EventChannel:
    """Bounded FIFO between the clipboard callback thread and the dispatcher.

    ``send`` never blocks: when the queue is full the event is dropped and
    logged. ``receive`` blocks until an event arrives and returns ``None`` once
    the channel has been closed and everything queued before the close has
    been handed out.
    """

    def __init__(self, maxsize: int = CHANNEL_CAPACITY):
        # One slot beyond maxsize is reserved for the close marker
        self._maxsize = maxsize
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize + 1)
        self._lock = threading.Lock()
        self._closed = False
        self._dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        return self._dropped

    def send(self, event: ClipEvent) -> bool:
        with self._lock:
            if self._closed:
                logger.debug("Channel closed, dropping %s", type(event).__name__)
                return False
            if self._queue.qsize() >= self._maxsize:
                self._dropped += 1
                logger.warning("Event channel full (%d), dropping %s", self._maxsize, type(event).__name__)
                return False
            self._queue.put_nowait(event)
        return True

    def receive(self, timeout: float | None = None) -> ClipEvent | None:
        """Return the next event, or None when closed and drained.

        Raises ``queue.Empty`` if ``timeout`` elapses with nothing to read.
        """
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # Put the marker back so later receives also see the close
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def __len__(self) -> int:
        size = self._queue.qsize()
        return max(0, size - 1) if self._closed else size
