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

"""Cursor module defining a lazy, restartable enumeration of tiles."""

import logging

from pytilelayer._const import MAX_ZOOM
from pytilelayer._errors import InvalidRangeError, InvalidZoomError
from pytilelayer._types import BoundsPredicate
from pytilelayer.bounds import Bounds
from pytilelayer.pyramid import TileRange, bounds_to_range, tile_bounds, validate_zoom
from pytilelayer.source import TileSource, fetch_tile
from pytilelayer.tile import Tile

__all__ = ["TileCursor"]

logger = logging.getLogger(__name__)


class TileCursor:
    """Lazily enumerate the tiles of a tile range.

    Tiles are produced row by row: ascending y, and within each row ascending
    x. Two cursors built from the same parameters therefore yield identical
    sequences.

    If a predicate is given, the geographic bounds of each candidate tile are
    passed to it right before the tile would be produced, and tiles failing
    the predicate are skipped. If a source is given, each tile is fetched
    before it is returned. A failed fetch yields an errored tile and the
    enumeration carries on with the next coordinate.

    The source is only borrowed; the cursor never closes it.

    """

    def __init__(  # noqa: PLR0913
        self,
        tile_range: TileRange | None = None,
        *,
        bounds: Bounds | None = None,
        zoom: int | None = None,
        source: TileSource | None = None,
        predicate: BoundsPredicate | None = None,
        max_zoom: int = MAX_ZOOM,
    ) -> None:
        """Initialise a tile cursor.

        Parameters
        ----------
        tile_range: TileRange | None, optional
            Explicit range of tiles to enumerate.
        bounds: Bounds | None, optional
            Bounds to cover at `zoom`. Without bounds and without a range the
            whole grid of `zoom` is enumerated.
        zoom: int | None, optional
            Zoom level; required if no tile range is given.
        source: TileSource | None, optional
            Source used to fetch each tile before it is returned.
        predicate: BoundsPredicate | None, optional
            Function receiving the geographic bounds of a tile and returning
            False for tiles which should be skipped.
        max_zoom: int, optional
            Highest allowed zoom level.

        Raises
        ------
        InvalidZoomError
            If the zoom level is missing or not supported.
        InvalidRangeError
            If both a range and bounds/zoom are given.
        OutOfRangeError
            If the bounds do not overlap with the valid Web Mercator domain.

        """
        if tile_range is not None:
            if bounds is not None or zoom is not None:
                err_msg = "Pass either a tile range or bounds and a zoom level, not both."
                raise InvalidRangeError(err_msg)
            validate_zoom(tile_range.zoom, max_zoom)
        elif zoom is None:
            raise InvalidZoomError(zoom, 0, max_zoom)
        elif bounds is None:
            tile_range = TileRange.world(validate_zoom(zoom, max_zoom))
        else:
            tile_range = bounds_to_range(bounds, zoom, max_zoom)

        self._tile_range = tile_range
        self._source = source
        self._predicate = predicate
        self._position = 0
        self._closed = False
        logger.debug("Created %r.", self)

    @property
    def tile_range(self) -> TileRange:
        """Range of candidate tiles."""
        return self._tile_range

    @property
    def zoom(self) -> int:
        """Zoom level of the tiles."""
        return self._tile_range.zoom

    @property
    def bounds(self) -> Bounds:
        """Geographic bounds of the candidate tiles."""
        return self._tile_range.bounds

    @property
    def size(self) -> int | None:
        """Number of tiles the cursor yields, if known without enumerating.

        With a predicate the number is only known after a full enumeration and
        None is returned.

        """
        return None if self._predicate is not None else self._tile_range.size

    @property
    def position(self) -> int:
        """Number of candidate coordinates visited so far."""
        return self._position

    @property
    def source(self) -> TileSource | None:
        """Source tiles are fetched from."""
        return self._source

    def reset(self) -> None:
        """Restart the enumeration at the first tile."""
        self._position = 0
        self._closed = False

    def close(self) -> None:
        """Stop the enumeration; further iteration yields nothing."""
        self._closed = True

    def __iter__(self) -> "TileCursor":
        """Return the cursor itself."""
        return self

    def __next__(self) -> Tile:
        """Produce the next tile.

        Returns
        -------
        Tile
            Unloaded tile without a source, otherwise a loaded or errored tile.

        """
        n_candidates = self._tile_range.size
        while not self._closed and self._position < n_candidates:
            x, y = self._tile_range.index_to_xy(self._position)
            self._position += 1
            if self._predicate is not None and not self._predicate(
                tile_bounds(self.zoom, x, y)
            ):
                continue

            tile = Tile(z=self.zoom, x=x, y=y)
            if self._source is not None:
                tile = fetch_tile(self._source, tile)
            return tile

        raise StopIteration

    def __enter__(self) -> "TileCursor":
        """Enter the runtime context."""
        return self

    def __exit__(self, *args: object) -> None:
        """Close the cursor when leaving the runtime context."""
        self.close()

    def __repr__(self) -> str:
        """Return string representation of this class."""
        r = self._tile_range
        return (
            f"TileCursor(zoom={r.zoom}, x=[{r.min_x}, {r.max_x}], "
            f"y=[{r.min_y}, {r.max_y}], source={self._source!r})"
        )
