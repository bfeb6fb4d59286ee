from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class ContentType(str, Enum):
    TEXT = "text"
    HTML = "html"
    IMAGE = "image"
    FILES = "files"


@dataclass
class ClipRecord:
    id: int
    kind: ContentType
    content_hash: str
    created_at: int
    text_content: str | None = None
    html_content: str | None = None
    image_ref: str | None = None
    file_paths: str | None = None
    is_pinned: bool = False


@dataclass
class ClipPreview:
    """A history row as shown in a list, derived on read."""

    id: int
    kind: ContentType
    preview: str
    created_at: int
    is_pinned: bool = False


# Full content of a stored clip, as returned by StorageManager.get_content().


@dataclass(frozen=True)
class TextData:
    text: str


@dataclass(frozen=True)
class HtmlData:
    text: str
    html: str


@dataclass(frozen=True)
class ImageData:
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class FilesData:
    paths: list[str]


ClipData = Union[TextData, HtmlData, ImageData, FilesData]


@dataclass
class ClipboardSnapshot:
    """Every flavor the clipboard offered at one moment."""

    html: str | None = None
    text: str | None = None
    image: bytes | None = field(default=None, repr=False)
    files: list[str] | None = None

    def is_empty(self) -> bool:
        return not (self.html or self.text or self.image or self.files)


# Events carried from the capture listener to the dispatcher.


@dataclass(frozen=True)
class TextEvent:
    text: str


@dataclass(frozen=True)
class HtmlEvent:
    html: str
    text: str | None = None  # plain-text flavor offered alongside the markup


@dataclass(frozen=True)
class ImageEvent:
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class FileListEvent:
    paths: list[str]


@dataclass(frozen=True)
class ErrorEvent:
    message: str


ClipEvent = Union[TextEvent, HtmlEvent, ImageEvent, FileListEvent, ErrorEvent]
