import threading

import pytest

from pytilelayer._errors import FetchError, FetchErrorKind
from pytilelayer.cache import MemoryTileCache

KEY = (3, 2, 1)


@pytest.fixture
def cache() -> MemoryTileCache:
    return MemoryTileCache()


def test_store_lookup(cache: MemoryTileCache):
    assert cache.lookup(KEY) is None
    assert KEY not in cache
    cache.store(KEY, b"data")
    assert cache.lookup(KEY) == b"data"
    assert KEY in cache
    assert len(cache) == 1

    cache.evict(KEY)
    assert len(cache) == 0
    cache.store(KEY, b"data")
    cache.clear()
    assert KEY not in cache


def test_get_or_fetch(cache: MemoryTileCache):
    calls = []

    def loader() -> bytes:
        calls.append(KEY)
        return b"data"

    assert cache.get_or_fetch(KEY, loader) == b"data"
    assert cache.get_or_fetch(KEY, loader) == b"data"
    assert len(calls) == 1


def test_failures_not_stored(cache: MemoryTileCache):
    def failing() -> bytes:
        raise FetchError(FetchErrorKind.network, KEY)

    with pytest.raises(FetchError):
        cache.get_or_fetch(KEY, failing)
    assert KEY not in cache
    assert cache.get_or_fetch(KEY, lambda: b"data") == b"data"


def test_single_flight(cache: MemoryTileCache):
    started = threading.Event()
    release = threading.Event()
    calls = []

    def loader() -> bytes:
        calls.append(KEY)
        started.set()
        release.wait(timeout=5)
        return b"data"

    results = []

    def worker() -> None:
        results.append(cache.get_or_fetch(KEY, loader))

    leader = threading.Thread(target=worker)
    leader.start()
    assert started.wait(timeout=5)
    followers = [threading.Thread(target=worker) for _ in range(8)]
    for thread in followers:
        thread.start()
    release.set()
    for thread in [leader, *followers]:
        thread.join(timeout=5)

    assert len(calls) == 1
    assert results == [b"data"] * 9


def test_single_flight_shares_failure(cache: MemoryTileCache):
    started = threading.Event()
    release = threading.Event()
    errors = []

    def loader() -> bytes:
        started.set()
        release.wait(timeout=5)
        raise FetchError(FetchErrorKind.network, KEY)

    def worker() -> None:
        try:
            cache.get_or_fetch(KEY, loader)
        except FetchError as err:
            errors.append(err)

    leader = threading.Thread(target=worker)
    leader.start()
    assert started.wait(timeout=5)
    follower = threading.Thread(target=worker)
    follower.start()
    # let the follower find the in-flight fetch before it completes
    follower.join(timeout=0.2)
    release.set()
    leader.join(timeout=5)
    follower.join(timeout=5)

    assert len(errors) == 2
    assert KEY not in cache


def test_eviction_hook():
    class BoundedCache(MemoryTileCache):
        def _after_store(self, key: tuple) -> None:
            while len(self._data) > 2:
                self._data.pop(next(iter(self._data)))

    cache = BoundedCache()
    for x in range(4):
        cache.store((2, x, 0), b"data")
    assert len(cache) == 2
    assert (2, 3, 0) in cache
    assert (2, 0, 0) not in cache
