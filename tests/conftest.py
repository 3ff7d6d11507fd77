import threading

import pytest

from pytilelayer._errors import FetchError, FetchErrorKind
from pytilelayer.source import TileSource
from pytilelayer.tile import Tile


class RecordingSource(TileSource):
    """In-memory source counting its fetches.

    `failures` maps tile keys to the kinds of error raised by consecutive
    fetches of that tile before it succeeds. With `gate` set, every fetch
    blocks until the event is set.

    """

    name = "recording"

    def __init__(self, failures=None, gate=None):  # noqa: ANN001, ANN204
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.gate = gate
        self.calls = []
        self.started = threading.Event()
        self.closed = False
        self._lock = threading.Lock()

    def fetch(self, tile: Tile) -> bytes:
        with self._lock:
            self.calls.append(tile.key)
            pending = self.failures.get(tile.key)
            kind = pending.pop(0) if pending else None
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if kind is not None:
            raise FetchError(kind, tile.key, "injected")

        return "{}/{}/{}".format(*tile.key).encode()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def source_cls():
    return RecordingSource


@pytest.fixture
def source():
    return RecordingSource()


@pytest.fixture
def failing_source():
    return RecordingSource(failures={(1, 1, 0): [FetchErrorKind.network]})
