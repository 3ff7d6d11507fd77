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

"""Source module defining the capability of fetching raw tile payloads."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any

import requests

from pytilelayer._const import DEF_EXTENSION, TIMEOUT, USER_AGENT
from pytilelayer._errors import FetchError, FetchErrorKind
from pytilelayer.cache import TileCache
from pytilelayer.pyramid import CornerOfOrigin, flip_row
from pytilelayer.tile import Tile

__all__ = [
    "CachingSource",
    "DirectorySource",
    "HttpSource",
    "RetryingSource",
    "TileSource",
    "fetch_tile",
]

logger = logging.getLogger(__name__)

NOT_FOUND_STATUS = (404, 410)
XYZ_PLACEHOLDERS = ("{z}", "{x}", "{y}", "{-y}")


class TileSource(ABC):
    """Capability of fetching the raw payload of one tile.

    Every call performs exactly one attempt. Failures are reported as
    `FetchError` carrying one of the kinds network, not-found or decode.

    """

    name: str | None = None

    @abstractmethod
    def fetch(self, tile: Tile) -> bytes:
        """Fetch the payload of a tile.

        Parameters
        ----------
        tile: Tile
            Tile to fetch; only its coordinates are used.

        Returns
        -------
        bytes
            Raw tile payload.

        Raises
        ------
        FetchError
            If the payload could not be retrieved.

        """

    def close(self) -> None:
        """Release resources held by the source."""

    def __enter__(self) -> "TileSource":
        """Enter the runtime context."""
        return self

    def __exit__(self, *args: object) -> None:
        """Close the source when leaving the runtime context."""
        self.close()

    def __repr__(self) -> str:
        """Return string representation of this class."""
        return f"{type(self).__name__}(name={self.name!r})"


def fetch_tile(source: TileSource, tile: Tile) -> Tile:
    """Perform one fetch attempt and return the resulting tile.

    Parameters
    ----------
    source: TileSource
        Source to fetch from.
    tile: Tile
        Unloaded tile.

    Returns
    -------
    Tile
        Loaded tile, or an errored tile if the source raised a `FetchError`.

    """
    try:
        data = source.fetch(tile)
    except FetchError as err:
        logger.debug("%s", err)
        return tile.errored(err)

    return tile.loaded(data)


def as_template(url: str, extension: str = DEF_EXTENSION) -> str:
    """Turn a base URL into a path-style `<base>/{z}/{x}/{y}.<ext>` template.

    URLs which already contain a placeholder are returned unchanged.

    """
    if any(p in url for p in XYZ_PLACEHOLDERS):
        return url

    return f"{url.rstrip('/')}/{{z}}/{{x}}/{{y}}.{extension}"


class HttpSource(TileSource):
    """Fetch tiles from a tile server addressed by a templated URL.

    The template placeholders `{z}`, `{x}` and `{y}` are substituted by the tile
    coordinates; `{-y}` denotes the flipped (TMS) row. Given several mirror
    URLs, the mirror is chosen from the tile coordinates, so a tile is always
    requested from the same server.

    Each thread uses its own `requests.Session`.

    """

    def __init__(  # noqa: PLR0913
        self,
        url: str | Sequence[str],
        *,
        name: str | None = None,
        extension: str = DEF_EXTENSION,
        timeout: float = TIMEOUT,
        headers: dict[str, str] | None = None,
        content_type: str | None = None,
        corner_of_origin: CornerOfOrigin = CornerOfOrigin.top_left,
        session_factory: Callable[[], Any] = requests.Session,
    ) -> None:
        """Initialise an HTTP tile source.

        Parameters
        ----------
        url: str | Sequence[str]
            URL template, base URL or a list of mirror URLs.
        name: str | None, optional
            Name of the source.
        extension: str, optional
            File extension appended to plain base URLs.
        timeout: float, optional
            Timeout in seconds for connecting and reading.
        headers: dict[str, str] | None, optional
            Additional request headers.
        content_type: str | None, optional
            Expected prefix of the response's Content-Type, e.g. "image/".
            Responses not matching it are treated as undecodable.
        corner_of_origin: CornerOfOrigin, optional
            Row numbering of the server. With `bottom_left` (TMS) the `{y}`
            placeholder receives the flipped row.
        session_factory: Callable[[], Any], optional
            Factory creating the HTTP session of each thread.

        """
        urls = [url] if isinstance(url, str) else list(url)
        if not urls:
            err_msg = "At least one URL is required."
            raise ValueError(err_msg)

        self.name = name
        self.templates = [as_template(u, extension) for u in urls]
        self.timeout = timeout
        self.headers = {"User-Agent": USER_AGENT, **(headers or {})}
        self.content_type = content_type
        self.corner_of_origin = CornerOfOrigin(corner_of_origin)
        self._session_factory = session_factory
        self._local = threading.local()
        self._sessions: list[Any] = []
        self._sessions_lock = threading.Lock()

    def url_for(self, tile: Tile) -> str:
        """Build the request URL of a tile."""
        template = self.templates[(tile.x + tile.y) % len(self.templates)]
        flipped = flip_row(tile.z, tile.y)
        y = flipped if self.corner_of_origin == CornerOfOrigin.bottom_left else tile.y
        return (
            template.replace("{z}", str(tile.z))
            .replace("{x}", str(tile.x))
            .replace("{-y}", str(flipped))
            .replace("{y}", str(y))
        )

    def _session(self) -> Any:  # noqa: ANN401
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)

        return session

    def fetch(self, tile: Tile) -> bytes:
        url = self.url_for(tile)
        logger.debug("Requesting %s.", url)
        try:
            with self._session().get(
                url, headers=self.headers, timeout=self.timeout
            ) as resp:
                status = resp.status_code
                content = resp.content
                content_type = resp.headers.get("Content-Type", "")
        except requests.Timeout as err:
            reason = f"no response from {url} within {self.timeout}s"
            raise FetchError(FetchErrorKind.network, tile.key, reason) from err
        except requests.exceptions.ContentDecodingError as err:
            raise FetchError(FetchErrorKind.decode, tile.key, str(err)) from err
        except requests.RequestException as err:
            raise FetchError(FetchErrorKind.network, tile.key, str(err)) from err

        if status in NOT_FOUND_STATUS:
            raise FetchError(FetchErrorKind.not_found, tile.key, f"HTTP {status}")
        if not 200 <= status < 300:  # noqa: PLR2004
            raise FetchError(FetchErrorKind.network, tile.key, f"HTTP {status}")
        if not content:
            raise FetchError(FetchErrorKind.decode, tile.key, "empty response body")
        if self.content_type and not content_type.startswith(self.content_type):
            reason = f"unexpected content type '{content_type}'"
            raise FetchError(FetchErrorKind.decode, tile.key, reason)

        return content

    def close(self) -> None:
        """Close the HTTP sessions of all threads."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
            self._local = threading.local()
        for session in sessions:
            session.close()


class DirectorySource(TileSource):
    """Read tiles from a directory tree laid out as `<root>/{z}/{x}/{y}.<ext>`."""

    def __init__(
        self,
        root: Path | str,
        *,
        name: str | None = None,
        extension: str = DEF_EXTENSION,
        corner_of_origin: CornerOfOrigin = CornerOfOrigin.top_left,
    ) -> None:
        """Initialise a directory tile source.

        Parameters
        ----------
        root: Path | str
            Root directory.
        name: str | None, optional
            Name of the source. Defaults to the directory name.
        extension: str, optional
            File extension of the tiles.
        corner_of_origin: CornerOfOrigin, optional
            Row numbering of the stored files (`bottom_left` for TMS).

        """
        self.root = Path(root)
        self.name = name or self.root.name
        self.extension = extension
        self.corner_of_origin = CornerOfOrigin(corner_of_origin)

    def path_for(self, tile: Tile) -> Path:
        """Path of the file storing a tile."""
        y = tile.y
        if self.corner_of_origin == CornerOfOrigin.bottom_left:
            y = flip_row(tile.z, y)
        return self.root / str(tile.z) / str(tile.x) / f"{y}.{self.extension}"

    def fetch(self, tile: Tile) -> bytes:
        path = self.path_for(tile)
        try:
            data = path.read_bytes()
        except FileNotFoundError as err:
            raise FetchError(FetchErrorKind.not_found, tile.key, str(path)) from err
        except OSError as err:
            raise FetchError(FetchErrorKind.decode, tile.key, str(err)) from err

        if not data:
            raise FetchError(FetchErrorKind.decode, tile.key, f"{path} is empty")

        return data


class RetryingSource(TileSource):
    """Wrap a source and repeat failed fetches of selected kinds."""

    def __init__(
        self,
        source: TileSource,
        attempts: int = 3,
        backoff: float = 0.5,
        kinds: Iterable[FetchErrorKind] = (FetchErrorKind.network,),
    ) -> None:
        """Initialise a retrying source.

        Parameters
        ----------
        source: TileSource
            Wrapped source.
        attempts: int, optional
            Maximum number of attempts per fetch.
        backoff: float, optional
            Seconds to wait before the second attempt; the wait grows
            linearly with each further attempt.
        kinds: Iterable[FetchErrorKind], optional
            Failure kinds worth another attempt.

        """
        if attempts < 1:
            err_msg = "At least one attempt is required."
            raise ValueError(err_msg)

        self.source = source
        self.name = source.name
        self.attempts = attempts
        self.backoff = backoff
        self.kinds = frozenset(kinds)

    def fetch(self, tile: Tile) -> bytes:
        attempt = 1
        while True:
            try:
                return self.source.fetch(tile)
            except FetchError as err:
                if err.kind not in self.kinds or attempt >= self.attempts:
                    raise
                wait = self.backoff * attempt
                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %.1fs.",
                    attempt,
                    self.attempts,
                    err,
                    wait,
                )
                time.sleep(wait)
                attempt += 1

    def close(self) -> None:
        self.source.close()


class CachingSource(TileSource):
    """Wrap a source and route its fetches through a payload cache."""

    def __init__(self, source: TileSource, cache: TileCache) -> None:
        """Initialise a caching source.

        Parameters
        ----------
        source: TileSource
            Wrapped source.
        cache: TileCache
            Payload cache; concurrent fetches of one tile are coalesced.

        """
        self.source = source
        self.name = source.name
        self.cache = cache

    def fetch(self, tile: Tile) -> bytes:
        return self.cache.get_or_fetch(tile.key, lambda: self.source.fetch(tile))

    def close(self) -> None:
        self.source.close()
