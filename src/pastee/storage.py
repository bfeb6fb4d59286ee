import json
import logging
import os
import sqlite3
import threading
import time
from pathlib import Path

from pastee.config import DATA_DIR, DB_NAME, IMAGE_DIR_NAME, MAX_ENTRIES, PREVIEW_LENGTH, RECENT_LIMIT, SEARCH_LIMIT
from pastee.models import (
    ClipData,
    ClipPreview,
    ClipRecord,
    ContentType,
    FilesData,
    HtmlData,
    ImageData,
    TextData,
)
from pastee.utils import compute_hash, flatten_preview

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS clips (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    kind           TEXT NOT NULL CHECK(kind IN ('text', 'html', 'image', 'files')),
    text_content   TEXT,
    html_content   TEXT,
    image_ref      TEXT,
    file_paths     TEXT,
    content_hash   TEXT NOT NULL UNIQUE,
    created_at     INTEGER NOT NULL,
    is_pinned      INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_clips_order ON clips(is_pinned DESC, created_at DESC);

CREATE VIRTUAL TABLE IF NOT EXISTS clips_fts USING fts5(
    text_content,
    content='clips',
    content_rowid='id'
);

CREATE TRIGGER IF NOT EXISTS clips_ai AFTER INSERT ON clips BEGIN
    INSERT INTO clips_fts(rowid, text_content) VALUES (new.id, new.text_content);
END;

CREATE TRIGGER IF NOT EXISTS clips_ad AFTER DELETE ON clips BEGIN
    INSERT INTO clips_fts(clips_fts, rowid, text_content)
    VALUES ('delete', old.id, old.text_content);
END;

CREATE TRIGGER IF NOT EXISTS clips_au AFTER UPDATE OF text_content ON clips BEGIN
    INSERT INTO clips_fts(clips_fts, rowid, text_content)
    VALUES ('delete', old.id, old.text_content);
    INSERT INTO clips_fts(rowid, text_content) VALUES (new.id, new.text_content);
END;
"""

UPSERT_SQL = """
INSERT INTO clips (kind, content_hash, created_at, text_content, html_content, image_ref, file_paths)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(content_hash) DO UPDATE SET created_at = excluded.created_at
RETURNING id
"""

PREVIEW_COLUMNS = "id, kind, text_content, file_paths, created_at, is_pinned"

IMAGE_MARKER = "[Image]"
FILES_MARKER = "[Files]"


class StorageError(Exception):
    pass


class ClipNotFoundError(StorageError, LookupError):
    pass


class ReadOnlyStorageError(StorageError):
    pass


def _now() -> int:
    return int(time.time())


class StorageManager:
    """Clip history store: one SQLite database, an FTS5 index and an image blob directory.

    The writable instance is meant to be driven by a single writer thread.
    UI threads open their own instance with ``readonly=True`` against the same
    data directory.
    """

    def __init__(self, data_dir: str | Path | None = None, readonly: bool = False):
        self._data_dir = Path(data_dir) if data_dir else DATA_DIR
        self._db_path = self._data_dir / DB_NAME
        self._image_dir = self._data_dir / IMAGE_DIR_NAME
        self._readonly = readonly
        self._lock = threading.RLock()

        if readonly:
            uri = self._db_path.resolve().as_uri() + "?mode=ro"
            self._conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        else:
            self._image_dir.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.row_factory = sqlite3.Row

        if not readonly:
            self.init_db()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def image_dir(self) -> Path:
        return self._image_dir

    @property
    def readonly(self) -> bool:
        return self._readonly

    def init_db(self) -> None:
        version = self._conn.execute("PRAGMA user_version").fetchone()[0]
        if version < SCHEMA_VERSION:
            self._conn.executescript(SCHEMA)
            self._conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            self._conn.commit()
            logger.debug("Initialized schema version %d at %s", SCHEMA_VERSION, self._db_path)

    # -- writes --------------------------------------------------------

    def add_text(self, text: str) -> int:
        text = text.strip()
        if not text:
            return 0
        content_hash = compute_hash(text)
        with self._lock:
            self._require_writable()
            with self._conn:
                return self._upsert(ContentType.TEXT, content_hash, text_content=text)

    def add_html(self, preview_text: str, html: str) -> int:
        if not html:
            return 0
        content_hash = compute_hash(html)
        with self._lock:
            self._require_writable()
            with self._conn:
                return self._upsert(
                    ContentType.HTML,
                    content_hash,
                    text_content=preview_text.strip(),
                    html_content=html,
                )

    def add_image(self, data: bytes) -> int:
        if not data:
            return 0
        content_hash = compute_hash(data)
        with self._lock:
            self._require_writable()
            existing = self._find_id(content_hash)
            if existing is not None:
                with self._conn:
                    self._conn.execute(
                        "UPDATE clips SET created_at = ? WHERE id = ?",
                        (_now(), existing),
                    )
                return existing

            image_ref = f"{content_hash}.png"
            blob_path = self._image_dir / image_ref
            created_blob = False
            if not blob_path.exists():
                self._write_blob(blob_path, data)
                created_blob = True

            try:
                with self._conn:
                    return self._upsert(ContentType.IMAGE, content_hash, image_ref=image_ref)
            except Exception:
                if created_blob:
                    blob_path.unlink(missing_ok=True)
                raise

    def add_files(self, paths: list[str]) -> int:
        if not paths:
            return 0
        paths = [str(p) for p in paths]
        serialized = json.dumps(paths)
        search_text = "\n".join(paths)
        content_hash = compute_hash(serialized)
        with self._lock:
            self._require_writable()
            with self._conn:
                return self._upsert(
                    ContentType.FILES,
                    content_hash,
                    text_content=search_text,
                    file_paths=serialized,
                )

    def set_pinned(self, clip_id: int, pinned: bool) -> bool:
        with self._lock:
            self._require_writable()
            with self._conn:
                cursor = self._conn.execute(
                    "UPDATE clips SET is_pinned = ? WHERE id = ?",
                    (int(pinned), clip_id),
                )
            return cursor.rowcount > 0

    def toggle_pin(self, clip_id: int) -> bool:
        with self._lock:
            record = self.get_record(clip_id)
            if record is None:
                return False
            new_pinned = not record.is_pinned
            self.set_pinned(clip_id, new_pinned)
            return new_pinned

    def delete(self, clip_id: int) -> bool:
        with self._lock:
            self._require_writable()
            row = self._conn.execute(
                "SELECT image_ref FROM clips WHERE id = ?", (clip_id,)
            ).fetchone()
            if row is None:
                return False
            with self._conn:
                self._conn.execute("DELETE FROM clips WHERE id = ?", (clip_id,))
            self._delete_blob(row["image_ref"])
            return True

    def purge_old(self, keep_count: int | None = None) -> int:
        keep = keep_count if keep_count is not None else MAX_ENTRIES
        with self._lock:
            self._require_writable()
            rows = self._conn.execute(
                """SELECT id, image_ref FROM clips
                   WHERE is_pinned = 0
                   ORDER BY created_at DESC, id DESC
                   LIMIT -1 OFFSET ?""",
                (keep,),
            ).fetchall()
            if not rows:
                return 0
            with self._conn:
                self._conn.executemany(
                    "DELETE FROM clips WHERE id = ?", [(row["id"],) for row in rows]
                )
            for row in rows:
                self._delete_blob(row["image_ref"])
            logger.info("Purged %d old clips", len(rows))
            return len(rows)

    # -- reads ---------------------------------------------------------

    def get_recent(self, limit: int = RECENT_LIMIT, offset: int = 0) -> list[ClipPreview]:
        with self._lock:
            rows = self._conn.execute(
                f"""SELECT {PREVIEW_COLUMNS} FROM clips
                    ORDER BY is_pinned DESC, created_at DESC, id DESC
                    LIMIT ? OFFSET ?""",
                (limit, offset),
            ).fetchall()
        return [self._row_to_preview(r) for r in rows]

    def search(self, query: str) -> list[ClipPreview]:
        phrase = self._sanitize_fts_query(query)
        if not phrase:
            return []
        with self._lock:
            rows = self._conn.execute(
                f"""SELECT {PREVIEW_COLUMNS} FROM clips
                    WHERE id IN (SELECT rowid FROM clips_fts WHERE clips_fts MATCH ?)
                    ORDER BY created_at DESC, id DESC
                    LIMIT ?""",
                (phrase, SEARCH_LIMIT),
            ).fetchall()
        return [self._row_to_preview(r) for r in rows]

    def get_content(self, clip_id: int) -> ClipData:
        record = self.get_record(clip_id)
        if record is None:
            raise ClipNotFoundError(f"No clip with id {clip_id}")

        if record.kind == ContentType.TEXT:
            return TextData(record.text_content or "")
        if record.kind == ContentType.HTML:
            return HtmlData(text=record.text_content or "", html=record.html_content or "")
        if record.kind == ContentType.IMAGE:
            if not record.image_ref:
                raise ClipNotFoundError(f"Clip {clip_id} has no image blob")
            blob_path = self._image_dir / record.image_ref
            try:
                return ImageData(blob_path.read_bytes())
            except FileNotFoundError as e:
                raise ClipNotFoundError(f"Image blob missing for clip {clip_id}: {blob_path}") from e
        return FilesData(self._load_paths(record.file_paths) or [])

    def get_record(self, clip_id: int) -> ClipRecord | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM clips WHERE id = ?", (clip_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def find_by_hash(self, content_hash: str) -> int | None:
        with self._lock:
            return self._find_id(content_hash)

    def count(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) AS cnt FROM clips").fetchone()
        return row["cnt"]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # -- internals -----------------------------------------------------

    def _require_writable(self) -> None:
        if self._readonly:
            raise ReadOnlyStorageError(f"Storage at {self._data_dir} is opened read-only")

    def _upsert(
        self,
        kind: ContentType,
        content_hash: str,
        text_content: str | None = None,
        html_content: str | None = None,
        image_ref: str | None = None,
        file_paths: str | None = None,
    ) -> int:
        # Content columns keep their first-seen values; a conflict only bumps created_at.
        rows = self._conn.execute(
            UPSERT_SQL,
            (kind.value, content_hash, _now(), text_content, html_content, image_ref, file_paths),
        ).fetchall()
        return rows[0]["id"]

    def _find_id(self, content_hash: str) -> int | None:
        row = self._conn.execute(
            "SELECT id FROM clips WHERE content_hash = ?", (content_hash,)
        ).fetchone()
        return row["id"] if row else None

    @staticmethod
    def _write_blob(path: Path, data: bytes) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)

    def _delete_blob(self, image_ref: str | None) -> None:
        if image_ref:
            (self._image_dir / image_ref).unlink(missing_ok=True)

    @staticmethod
    def _sanitize_fts_query(query: str) -> str:
        # Quotes are stripped and the rest is matched as a single phrase
        cleaned = query.replace('"', "").strip()
        if not cleaned:
            return ""
        return f'"{cleaned}"'

    @staticmethod
    def _load_paths(file_paths: str | None) -> list[str] | None:
        if not file_paths:
            return None
        try:
            paths = json.loads(file_paths)
        except ValueError:
            logger.warning("Unreadable file list in storage")
            return None
        if not isinstance(paths, list):
            return None
        return [str(p) for p in paths]

    def _row_to_preview(self, row: sqlite3.Row) -> ClipPreview:
        kind = ContentType(row["kind"])
        if kind in (ContentType.TEXT, ContentType.HTML):
            preview = flatten_preview(row["text_content"] or "", PREVIEW_LENGTH)
        elif kind == ContentType.IMAGE:
            preview = IMAGE_MARKER
        else:
            paths = self._load_paths(row["file_paths"])
            if paths:
                preview = f"{FILES_MARKER} {len(paths)} item(s): {paths[0]}"
            else:
                preview = FILES_MARKER
        return ClipPreview(
            id=row["id"],
            kind=kind,
            preview=preview,
            created_at=row["created_at"],
            is_pinned=bool(row["is_pinned"]),
        )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ClipRecord:
        return ClipRecord(
            id=row["id"],
            kind=ContentType(row["kind"]),
            content_hash=row["content_hash"],
            created_at=row["created_at"],
            text_content=row["text_content"],
            html_content=row["html_content"],
            image_ref=row["image_ref"],
            file_paths=row["file_paths"],
            is_pinned=bool(row["is_pinned"]),
        )
