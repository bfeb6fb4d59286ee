import pytest

from pastee.channel import EventChannel
from pastee.models import ClipboardSnapshot
from pastee.storage import StorageManager


@pytest.fixture
def storage(tmp_path):
    mgr = StorageManager(data_dir=tmp_path / "data")
    yield mgr
    mgr.close()


@pytest.fixture
def channel():
    return EventChannel(maxsize=16)


class FakeReader:
    """Stands in for the pasteboard: returns whatever snapshot the test set."""

    def __init__(self):
        self.snapshot = ClipboardSnapshot()
        self.error: Exception | None = None
        self.reads = 0

    def read_snapshot(self) -> ClipboardSnapshot:
        self.reads += 1
        if self.error is not None:
            raise self.error
        return self.snapshot


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def reader():
    return FakeReader()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fixed_time(monkeypatch):
    """Controls the epoch seconds storage writes into created_at."""

    class _Time:
        now = 1_700_000_000

        def set(self, value: int) -> None:
            self.now = value

    t = _Time()
    monkeypatch.setattr("pastee.storage._now", lambda: t.now)
    return t
