import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from pastee import __version__
from pastee.api import query_history, select_clip_item
from pastee.config import DATA_DIR, DB_NAME, LOG_NAME, RECENT_LIMIT
from pastee.models import FilesData, HtmlData, ImageData, TextData
from pastee.storage import ClipNotFoundError, StorageManager
from pastee.utils import ensure_dirs


def setup_logging(data_dir: Path, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(data_dir / LOG_NAME),
            logging.StreamHandler(sys.stderr),
        ],
    )


def run_app(data_dir: Path, verbose: bool = False) -> int:
    """Capture the clipboard into storage until interrupted."""
    ensure_dirs(data_dir)
    setup_logging(data_dir, verbose)
    logger = logging.getLogger("pastee")

    from pastee.channel import EventChannel
    from pastee.dispatcher import Dispatcher
    from pastee.monitor import ClipboardListener
    from pastee.pasteboard import ChangeCountWatcher, PasteboardReader

    storage = StorageManager(data_dir)
    channel = EventChannel()
    dispatcher = Dispatcher(channel, storage)
    listener = ClipboardListener(PasteboardReader(), channel)
    watcher = ChangeCountWatcher(listener)

    dispatcher.start()
    watcher.start()
    logger.info("pastee %s recording clipboard history to %s", __version__, data_dir)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        watcher.stop()
        channel.close()
        dispatcher.join()
        storage.close()
    return 0


def format_preview(item) -> str:
    stamp = datetime.fromtimestamp(item.created_at).strftime("%Y-%m-%d %H:%M")
    pin = "*" if item.is_pinned else " "
    return f"{item.id:>6} {pin} {stamp} [{item.kind.value}] {item.preview}"


def show_history(data_dir: Path, query: str | None, limit: int) -> int:
    if not (data_dir / DB_NAME).exists():
        print("No clipboard history yet.")
        return 0
    with StorageManager(data_dir, readonly=True) as storage:
        items = query_history(storage, query, limit=limit)
    if not items:
        print("No matching clips.")
        return 0
    for item in items:
        print(format_preview(item))
    return 0


def show_clip(data_dir: Path, clip_id: int) -> int:
    if not (data_dir / DB_NAME).exists():
        print(f"Clip {clip_id} not found.", file=sys.stderr)
        return 1
    with StorageManager(data_dir, readonly=True) as storage:
        try:
            data = select_clip_item(storage, clip_id)
        except ClipNotFoundError as e:
            print(str(e), file=sys.stderr)
            return 1

    if isinstance(data, TextData):
        print(data.text)
    elif isinstance(data, HtmlData):
        print(data.html)
    elif isinstance(data, ImageData):
        print(f"[Image: {len(data.data)} bytes]")
    elif isinstance(data, FilesData):
        print("\n".join(data.paths))
    return 0


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="pastee",
        description="pastee - clipboard history recorder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  (none)          Record clipboard history in the foreground
  history [QUERY] List recent clips, or search them
  show ID         Print the full content of a clip

Examples:
  pastee                  # start recording
  pastee history invoice  # search for "invoice"
  pastee show 42          # print clip 42
""",
    )
    parser.add_argument("--data-dir", type=Path, default=DATA_DIR, help="Where history is stored")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command")

    history_parser = subparsers.add_parser("history", help="List or search clips")
    history_parser.add_argument("query", nargs="?", help="Full-text search phrase")
    history_parser.add_argument("--limit", type=int, default=RECENT_LIMIT, help="Maximum clips to list")

    show_parser = subparsers.add_parser("show", help="Print one clip")
    show_parser.add_argument("id", type=int)

    args = parser.parse_args(argv)

    if args.command == "history":
        sys.exit(show_history(args.data_dir, args.query, args.limit))
    elif args.command == "show":
        sys.exit(show_clip(args.data_dir, args.id))
    else:
        sys.exit(run_app(args.data_dir, args.verbose))


if __name__ == "__main__":
    main()
