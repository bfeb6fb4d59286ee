"""Tests for __main__.py CLI commands."""

from unittest.mock import patch

import pytest

from pastee.__main__ import format_preview, main, show_clip, show_history
from pastee.models import ClipPreview, ContentType
from pastee.storage import StorageManager


@pytest.fixture
def data_dir(tmp_path):
    with StorageManager(tmp_path) as mgr:
        mgr.add_text("remember the milk")
        mgr.add_files(["/Users/me/notes.txt"])
    return tmp_path


class TestFormatPreview:
    def test_includes_id_kind_and_preview(self):
        line = format_preview(ClipPreview(id=7, kind=ContentType.TEXT, preview="hi", created_at=0))
        assert line.strip().startswith("7")
        assert "[text] hi" in line

    def test_marks_pinned(self):
        line = format_preview(ClipPreview(id=1, kind=ContentType.IMAGE, preview="[Image]", created_at=0, is_pinned=True))
        assert " * " in line


class TestShowHistory:
    def test_lists_recent(self, data_dir, capsys):
        assert show_history(data_dir, None, 10) == 0
        out = capsys.readouterr().out
        assert "remember the milk" in out
        assert "[Files] 1 item(s): /Users/me/notes.txt" in out

    def test_search(self, data_dir, capsys):
        assert show_history(data_dir, "milk", 10) == 0
        out = capsys.readouterr().out
        assert "remember the milk" in out
        assert "notes.txt" not in out

    def test_search_honours_limit(self, tmp_path, capsys):
        with StorageManager(tmp_path) as mgr:
            for i in range(4):
                mgr.add_text(f"grocery list {i}")
        assert show_history(tmp_path, "grocery", 2) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 2

    def test_no_matches(self, data_dir, capsys):
        show_history(data_dir, "giraffe", 10)
        assert "No matching clips." in capsys.readouterr().out

    def test_no_database(self, tmp_path, capsys):
        assert show_history(tmp_path / "empty", None, 10) == 0
        assert "No clipboard history yet." in capsys.readouterr().out


class TestShowClip:
    def test_prints_text(self, data_dir, capsys):
        assert show_clip(data_dir, 1) == 0
        assert capsys.readouterr().out.strip() == "remember the milk"

    def test_prints_files(self, data_dir, capsys):
        assert show_clip(data_dir, 2) == 0
        assert capsys.readouterr().out.strip() == "/Users/me/notes.txt"

    def test_missing_clip(self, data_dir, capsys):
        assert show_clip(data_dir, 99) == 1
        assert "99" in capsys.readouterr().err


class TestMain:
    def test_history_command(self, data_dir):
        with patch("pastee.__main__.show_history", return_value=0) as mock_history:
            with pytest.raises(SystemExit) as exc:
                main(["--data-dir", str(data_dir), "history", "milk", "--limit", "5"])
        assert exc.value.code == 0
        mock_history.assert_called_once_with(data_dir, "milk", 5)

    def test_show_command(self, data_dir):
        with patch("pastee.__main__.show_clip", return_value=1) as mock_show:
            with pytest.raises(SystemExit) as exc:
                main(["--data-dir", str(data_dir), "show", "3"])
        assert exc.value.code == 1
        mock_show.assert_called_once_with(data_dir, 3)

    def test_default_runs_app(self, tmp_path):
        with patch("pastee.__main__.run_app", return_value=0) as mock_run:
            with pytest.raises(SystemExit):
                main(["--data-dir", str(tmp_path), "-v"])
        mock_run.assert_called_once_with(tmp_path, True)
