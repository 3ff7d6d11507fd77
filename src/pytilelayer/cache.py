# Copyright (c) 2025, TU Wien
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT OWNER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.
#
# The views and conclusions contained in the software and documentation are
# those of the authors and should not be interpreted as representing official
# policies, either expressed or implied, of the FreeBSD Project.

"""Cache module defining payload caches with single-flight fetching."""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import Future

from pytilelayer._types import TileKey

__all__ = ["MemoryTileCache", "TileCache"]

logger = logging.getLogger(__name__)


class TileCache(ABC):
    """Base class of payload caches keyed by tile coordinates (z, x, y).

    Concrete caches implement the storage primitives. `get_or_fetch` adds the
    access discipline for concurrent callers: at most one fetch per key is in
    flight at any time, and callers asking for the same key while it is
    being fetched wait for and share that one outcome.

    Eviction is left to subclasses; the default `_after_store` hook does
    nothing, so a cache grows without bound.

    """

    def __init__(self) -> None:
        """Initialise the in-flight bookkeeping."""
        self._lock = threading.RLock()
        self._in_flight: dict[TileKey, Future] = {}

    @abstractmethod
    def lookup(self, key: TileKey) -> bytes | None:
        """Return the cached payload or None."""

    @abstractmethod
    def store(self, key: TileKey, data: bytes) -> None:
        """Store a payload."""

    @abstractmethod
    def evict(self, key: TileKey) -> None:
        """Remove a payload if present."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all payloads."""

    @abstractmethod
    def __len__(self) -> int:
        """Return number of cached payloads."""

    def __contains__(self, key: TileKey) -> bool:
        """Check if a payload is cached for the given key."""
        return self.lookup(key) is not None

    def get_or_fetch(self, key: TileKey, loader: Callable[[], bytes]) -> bytes:
        """Return the cached payload or fetch, store and return it.

        Parameters
        ----------
        key: TileKey
            Tile coordinates (z, x, y).
        loader: Callable[[], bytes]
            Function performing the actual fetch.

        Returns
        -------
        bytes
            Payload.

        Notes
        -----
        Exceptions raised by `loader` are passed on to every caller waiting
        for the same key and are never stored, so a later call tries again.

        """
        with self._lock:
            data = self.lookup(key)
            if data is not None:
                logger.debug("Cache hit for tile %s.", key)
                return data

            future = self._in_flight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._in_flight[key] = future

        if not leader:
            logger.debug("Waiting for in-flight fetch of tile %s.", key)
            return future.result()

        try:
            data = loader()
            self.store(key, data)
        except BaseException as err:
            future.set_exception(err)
            raise
        else:
            future.set_result(data)
        finally:
            with self._lock:
                del self._in_flight[key]

        return data


class MemoryTileCache(TileCache):
    """Unbounded in-memory payload cache."""

    def __init__(self) -> None:
        """Initialise an empty cache."""
        super().__init__()
        self._data: dict[TileKey, bytes] = {}

    def lookup(self, key: TileKey) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def store(self, key: TileKey, data: bytes) -> None:
        with self._lock:
            self._data[key] = data
            self._after_store(key)

    def evict(self, key: TileKey) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def _after_store(self, key: TileKey) -> None:
        """Hook called after each store; override to implement an eviction policy."""

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
