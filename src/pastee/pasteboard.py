import logging
import threading

from AppKit import (
    NSBitmapImageRep,
    NSFilenamesPboardType,
    NSPasteboard,
    NSPasteboardTypeHTML,
    NSPasteboardTypePNG,
    NSPasteboardTypeString,
    NSPasteboardTypeTIFF,
)

from pastee.config import MAX_IMAGE_SIZE, MAX_TEXT_SIZE, POLL_INTERVAL
from pastee.models import ClipboardSnapshot

logger = logging.getLogger(__name__)

PNG_FILE_TYPE = 4  # NSBitmapImageFileTypePNG


def tiff_to_png(tiff_bytes: bytes) -> bytes | None:
    bitmap_rep = NSBitmapImageRep.imageRepWithData_(tiff_bytes)
    if not bitmap_rep:
        return None
    png_data = bitmap_rep.representationUsingType_properties_(PNG_FILE_TYPE, None)
    if not png_data:
        return None
    return bytes(png_data)


class PasteboardReader:
    """Reads every supported flavor from the general pasteboard."""

    def read_snapshot(self) -> ClipboardSnapshot:
        # Looked up on every call; the pasteboard contents are already replaced when we're told
        pasteboard = NSPasteboard.generalPasteboard()
        types = pasteboard.types()
        if types is None:
            return ClipboardSnapshot()

        # Stop at the first flavor that wins; text is kept next to HTML as its rendering
        snapshot = ClipboardSnapshot()
        if NSPasteboardTypeHTML in types:
            snapshot.html = self._read_string(pasteboard, NSPasteboardTypeHTML)
        if NSPasteboardTypeString in types:
            snapshot.text = self._read_string(pasteboard, NSPasteboardTypeString)
        if snapshot.html or snapshot.text:
            return snapshot

        snapshot.image = self._read_image(pasteboard, types)
        if snapshot.image:
            return snapshot

        if NSFilenamesPboardType in types:
            snapshot.files = self._read_files(pasteboard)
        return snapshot

    @staticmethod
    def _read_string(pasteboard, pb_type) -> str | None:
        value = pasteboard.stringForType_(pb_type)
        if not value:
            return None
        text = str(value)
        if len(text.encode("utf-8")) > MAX_TEXT_SIZE:
            logger.warning("Clipboard %s too large, skipping", pb_type)
            return None
        return text

    @staticmethod
    def _read_image(pasteboard, types) -> bytes | None:
        for img_type in (NSPasteboardTypePNG, NSPasteboardTypeTIFF):
            if img_type not in types:
                continue
            data = pasteboard.dataForType_(img_type)
            if data is None:
                continue
            img_bytes = bytes(data)
            if len(img_bytes) > MAX_IMAGE_SIZE:
                logger.warning("Image too large (%d bytes), skipping", len(img_bytes))
                return None
            if img_type == NSPasteboardTypeTIFF:
                return tiff_to_png(img_bytes)
            return img_bytes
        return None

    @staticmethod
    def _read_files(pasteboard) -> list[str] | None:
        filenames = pasteboard.propertyListForType_(NSFilenamesPboardType)
        if not filenames:
            return None
        return [str(name) for name in filenames]


class ChangeCountWatcher:
    """Notification source for a ClipboardListener.

    The pasteboard exposes no change callback, only a counter that moves on
    every write, so a daemon thread samples it and notifies the listener.
    """

    def __init__(self, listener, interval: float = POLL_INTERVAL):
        self._listener = listener
        self._interval = interval
        self._pasteboard = NSPasteboard.generalPasteboard()
        self._last_change_count = self._pasteboard.changeCount()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="pastee-watcher", daemon=True)
        self._thread.start()
        logger.info("Clipboard watcher started")

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Clipboard watcher did not stop within %.1fs", timeout)
                return
            self._thread = None
            logger.info("Clipboard watcher stopped")

    def poll(self) -> bool:
        current_count = self._pasteboard.changeCount()
        if current_count == self._last_change_count:
            return False
        self._last_change_count = current_count
        self._listener.on_clipboard_change()
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.poll()
            except Exception:
                logger.exception("Error polling pasteboard")
            self._stop.wait(self._interval)
