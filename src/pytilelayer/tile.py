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

"""Tile module defining the XYZ tile entity and its retrieval state."""

from enum import Enum
from typing import Any

import morecantile
from morecantile.models import Tile as RegularTile
from pydantic import BaseModel, model_validator

from pytilelayer._const import WEB_MERCATOR_QUAD
from pytilelayer._errors import FetchError, InvalidRangeError, TileStateError
from pytilelayer._types import TileKey
from pytilelayer.bounds import Bounds
from pytilelayer.pyramid import lonlat_to_tile, tile_bounds, validate_zoom

__all__ = ["Tile", "TileState"]

WMQ = morecantile.tms.get(WEB_MERCATOR_QUAD)
WEB_MERCATOR_EPSG = 3857


class TileState(Enum):
    """Retrieval state of a tile."""

    unloaded = "unloaded"
    loaded = "loaded"
    errored = "errored"


class Tile(BaseModel, arbitrary_types_allowed=True, frozen=True):
    """Defines one cell (z, x, y) of the tile pyramid and its retrieval state.

    Tiles are immutable. A fetch attempt replaces an unloaded tile by a loaded
    or an errored copy, see `loaded()` and `errored()`. Equality and hashing
    only consider the coordinates.

    """

    z: int
    x: int
    y: int
    state: TileState = TileState.unloaded
    data: bytes | None = None
    error: FetchError | None = None

    @model_validator(mode="after")
    def check_tile(self) -> "Tile":
        """Check if the tile lies on the grid and its state is consistent."""
        validate_zoom(self.z)
        n = 2**self.z
        if not (0 <= self.x < n and 0 <= self.y < n):
            err_msg = f"Tile {self.z}/{self.x}/{self.y} is not on the {n}x{n} grid."
            raise InvalidRangeError(err_msg)

        if (self.state == TileState.loaded) != (self.data is not None):
            err_msg = "Only loaded tiles carry data."
            raise ValueError(err_msg)
        if (self.state == TileState.errored) != (self.error is not None):
            err_msg = "Only errored tiles carry an error."
            raise ValueError(err_msg)

        return self

    @classmethod
    def from_lonlat(cls, lon: float, lat: float, zoom: int) -> "Tile":
        """Create the tile containing a geographic coordinate.

        Parameters
        ----------
        lon: float
            Longitude.
        lat: float
            Latitude.
        zoom: int
            Zoom level.

        Returns
        -------
        Tile
            Unloaded tile.

        """
        x, y = lonlat_to_tile(lon, lat, zoom)
        return cls(z=zoom, x=x, y=y)

    @classmethod
    def from_morecantile(cls, tile: RegularTile) -> "Tile":
        """Create an unloaded tile from morecantile's tile representation."""
        return cls(z=tile.z, x=tile.x, y=tile.y)

    def to_morecantile(self) -> RegularTile:
        """Morecantile's representation of the tile coordinates."""
        return RegularTile(self.x, self.y, self.z)

    @property
    def zoom(self) -> int:
        """Zoom level of the tile."""
        return self.z

    @property
    def key(self) -> TileKey:
        """Coordinate key (z, x, y)."""
        return self.z, self.x, self.y

    @property
    def is_loaded(self) -> bool:
        """True if the tile holds a payload."""
        return self.state == TileState.loaded

    @property
    def is_errored(self) -> bool:
        """True if the last fetch attempt failed."""
        return self.state == TileState.errored

    @property
    def bounds(self) -> Bounds:
        """Geographic bounds of the tile."""
        return tile_bounds(self.z, self.x, self.y)

    @property
    def xy_bounds(self) -> Bounds:
        """Web Mercator bounds of the tile in metres."""
        bbox = WMQ.xy_bounds(self.to_morecantile())
        return Bounds(
            west=bbox.left,
            south=bbox.bottom,
            east=bbox.right,
            north=bbox.top,
            crs=WEB_MERCATOR_EPSG,
        )

    def parent(self) -> "Tile | None":
        """Tile one zoom level up containing this tile; None at zoom 0."""
        if self.z == 0:
            return None

        return Tile.from_morecantile(WMQ.parent(self.to_morecantile())[0])

    def children(self) -> list["Tile"]:
        """The four tiles one zoom level down, in row-major order."""
        children = [Tile.from_morecantile(t) for t in WMQ.children(self.to_morecantile())]
        return sorted(children, key=lambda t: (t.y, t.x))

    def loaded(self, data: bytes) -> "Tile":
        """Return a copy of this unloaded tile holding the fetched payload.

        Raises
        ------
        TileStateError
            If the tile is not unloaded.

        """
        if self.state != TileState.unloaded:
            raise TileStateError(self, TileState.loaded.value)

        return self.model_copy(update={"state": TileState.loaded, "data": bytes(data)})

    def errored(self, error: FetchError) -> "Tile":
        """Return a copy of this unloaded tile holding the fetch error.

        Raises
        ------
        TileStateError
            If the tile is not unloaded.

        """
        if self.state != TileState.unloaded:
            raise TileStateError(self, TileState.errored.value)

        return self.model_copy(update={"state": TileState.errored, "error": error})

    def __eq__(self, other: Any) -> bool:  # noqa: ANN401
        """Compare tiles by their coordinates."""
        if not isinstance(other, Tile):
            return NotImplemented

        return self.key == other.key

    def __hash__(self) -> int:
        """Hash the coordinates."""
        return hash(self.key)

    def __repr__(self) -> str:
        """Return string representation of this class."""
        return f"Tile(z={self.z}, x={self.x}, y={self.y}, state={self.state.value})"

    __str__ = __repr__
