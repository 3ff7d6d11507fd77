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

"""Pyramid module converting between geographic bounds and XYZ tile indices.

The tile pyramid follows the standard power-of-two Web Mercator scheme: at zoom
level `z` the world is covered by `2^z x 2^z` tiles, with the origin in the
upper left corner (x grows to the east, y grows to the south).

"""

import math
from collections.abc import Generator
from enum import Enum
from numbers import Integral
from typing import Any

from pydantic import BaseModel, model_validator

from pytilelayer._const import MAX_LAT, MAX_LON, MAX_ZOOM
from pytilelayer._errors import InvalidRangeError, InvalidZoomError, OutOfRangeError
from pytilelayer.bounds import Bounds, normalise_lon

__all__ = [
    "CornerOfOrigin",
    "TileRange",
    "bounds_to_range",
    "flip_row",
    "lonlat_to_tile",
    "range_to_bounds",
    "tile_bounds",
    "tile_count",
    "validate_zoom",
]


class CornerOfOrigin(Enum):
    """Defines the corner of origin of the tile rows in an OGC compliant manner.

    `top_left` is the XYZ (slippy map) scheme, `bottom_left` the TMS scheme.

    """

    bottom_left = "bottomLeft"
    top_left = "topLeft"


def flip_row(zoom: int, y: int) -> int:
    """Convert a row index between the XYZ and the TMS scheme."""
    return 2**zoom - 1 - y


def validate_zoom(zoom: Any, max_zoom: int = MAX_ZOOM, min_zoom: int = 0) -> int:  # noqa: ANN401
    """Check if a zoom level is an integer within the supported range.

    Parameters
    ----------
    zoom: Any
        Zoom level to check.
    max_zoom: int, optional
        Highest allowed zoom level.
    min_zoom: int, optional
        Lowest allowed zoom level.

    Returns
    -------
    int
        Forwarded zoom level.

    Raises
    ------
    InvalidZoomError
        If the zoom level is not an integer or lies outside the range.

    """
    if isinstance(zoom, bool) or not isinstance(zoom, Integral):
        raise InvalidZoomError(zoom, min_zoom, max_zoom)
    if not min_zoom <= zoom <= max_zoom:
        raise InvalidZoomError(zoom, min_zoom, max_zoom)

    return int(zoom)


def col_to_lon(col: int, n: int) -> float:
    """Longitude of the western edge of a tile column."""
    return col / n * 360.0 - MAX_LON


def row_to_lat(row: int, n: int) -> float:
    """Latitude of the northern edge of a tile row."""
    return math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * row / n))))


def lon_to_col(lon: float, n: int) -> int:
    """Tile column containing a longitude in [-180, 180]."""
    col = math.floor((lon + MAX_LON) / 360.0 * n)
    col = min(max(col, 0), n - 1)
    # float rounding may place the edge on the wrong side of the value
    if col > 0 and col_to_lon(col, n) > lon:
        col -= 1
    elif col < n - 1 and col_to_lon(col + 1, n) <= lon:
        col += 1

    return col


def lat_to_row(lat: float, n: int) -> int:
    """Tile row containing a latitude within the Mercator latitude limits."""
    lat_rad = math.radians(lat)
    row = math.floor((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)
    row = min(max(row, 0), n - 1)
    if row > 0 and row_to_lat(row, n) < lat:
        row -= 1
    elif row < n - 1 and row_to_lat(row + 1, n) >= lat:
        row += 1

    return row


class TileRange(BaseModel, frozen=True):
    """Define an inclusive, non-empty rectangle of tile indices at one zoom level."""

    zoom: int
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @model_validator(mode="after")
    def check_range(self) -> "TileRange":
        """Check if the range is non-empty and lies on the tile grid."""
        validate_zoom(self.zoom)
        if self.min_x > self.max_x or self.min_y > self.max_y:
            err_msg = (
                f"x [{self.min_x}, {self.max_x}] and y [{self.min_y}, {self.max_y}] "
                "must not be empty or inverted."
            )
            raise InvalidRangeError(err_msg)

        n = 2**self.zoom
        if self.min_x < 0 or self.min_y < 0 or self.max_x >= n or self.max_y >= n:
            err_msg = (
                f"x [{self.min_x}, {self.max_x}] and y [{self.min_y}, {self.max_y}] "
                f"exceed the {n}x{n} grid of zoom level {self.zoom}."
            )
            raise InvalidRangeError(err_msg)

        return self

    @classmethod
    def from_tile(cls, zoom: int, x: int, y: int) -> "TileRange":
        """Create a range holding a single tile."""
        return cls(zoom=zoom, min_x=x, min_y=y, max_x=x, max_y=y)

    @classmethod
    def world(cls, zoom: int) -> "TileRange":
        """Create a range holding all tiles of a zoom level."""
        n = 2 ** validate_zoom(zoom)
        return cls(zoom=zoom, min_x=0, min_y=0, max_x=n - 1, max_y=n - 1)

    @property
    def width(self) -> int:
        """Number of tile columns."""
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        """Number of tile rows."""
        return self.max_y - self.min_y + 1

    @property
    def size(self) -> int:
        """Number of tiles in the range."""
        return self.width * self.height

    @property
    def bounds(self) -> Bounds:
        """Geographic bounds covered by the range."""
        return range_to_bounds(self)

    def index_to_xy(self, index: int) -> tuple[int, int]:
        """Map a row-major position within the range to tile indices.

        Parameters
        ----------
        index: int
            Position in [0, size).

        Returns
        -------
        tuple[int, int]
            Tile indices (x, y).

        """
        row, col = divmod(index, self.width)
        return self.min_x + col, self.min_y + row

    def __contains__(self, item: Any) -> bool:  # noqa: ANN401
        """Check if a tile or a (z, x, y) tuple lies within the range."""
        z, x, y = (item.z, item.x, item.y) if hasattr(item, "z") else item
        return (
            z == self.zoom
            and self.min_x <= x <= self.max_x
            and self.min_y <= y <= self.max_y
        )

    def __iter__(self) -> Generator[tuple[int, int], None, None]:
        """Iterate over (x, y) indices, row by row (ascending y, then x)."""
        for y in range(self.min_y, self.max_y + 1):
            for x in range(self.min_x, self.max_x + 1):
                yield x, y

    def __len__(self) -> int:
        """Return number of tiles in the range."""
        return self.size


def bounds_to_range(bounds: Bounds, zoom: int, max_zoom: int = MAX_ZOOM) -> TileRange:
    """Compute the range of tiles covering the given bounds.

    Parameters
    ----------
    bounds: Bounds
        Bounds to cover. Projected bounds are reprojected to geographic
        coordinates first.
    zoom: int
        Zoom level.
    max_zoom: int, optional
        Highest allowed zoom level.

    Returns
    -------
    TileRange
        Tile range whose tiles fully cover `bounds`.

    Raises
    ------
    InvalidZoomError
        If the zoom level is not supported.
    OutOfRangeError
        If the bounds do not overlap with the valid Web Mercator domain.

    Notes
    -----
    Latitudes are clamped to the Mercator limits (about ±85.0511°) and
    longitudes outside [-180, 180] are wrapped. Bounds crossing the
    antimeridian or spanning a full turn are covered by all columns. A
    coordinate lying exactly on a tile edge belongs to the tile to its
    east/south (floor rule).

    """
    zoom = validate_zoom(zoom, max_zoom)
    geog = bounds.to_geog()
    if not geog.is_finite:
        raise OutOfRangeError(bounds, "Coordinates must be finite.")
    if geog.south > geog.north:
        raise OutOfRangeError(bounds, "South must not lie north of north.")
    if geog.south > MAX_LAT or geog.north < -MAX_LAT:
        raise OutOfRangeError(bounds, f"Latitudes must overlap [-{MAX_LAT}, {MAX_LAT}].")

    n = 2**zoom
    west, east = geog.lon_extent
    if east < west:
        min_x, max_x = 0, n - 1
    else:
        min_x, max_x = lon_to_col(west, n), lon_to_col(east, n)
    min_y = lat_to_row(min(geog.north, MAX_LAT), n)
    max_y = lat_to_row(max(geog.south, -MAX_LAT), n)

    return TileRange(zoom=zoom, min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y)


def range_to_bounds(tile_range: TileRange) -> Bounds:
    """Compute the geographic bounds of a tile range.

    The result covers every tile of the range completely and therefore
    contains any bounds the range was derived from.

    Parameters
    ----------
    tile_range: TileRange
        Tile range.

    Returns
    -------
    Bounds
        Geographic bounds (EPSG:4326).

    """
    n = 2**tile_range.zoom
    return Bounds(
        west=col_to_lon(tile_range.min_x, n),
        south=row_to_lat(tile_range.max_y + 1, n),
        east=col_to_lon(tile_range.max_x + 1, n),
        north=row_to_lat(tile_range.min_y, n),
    )


def tile_bounds(zoom: int, x: int, y: int) -> Bounds:
    """Compute the geographic bounds of a single tile."""
    n = 2**zoom
    return Bounds(
        west=col_to_lon(x, n),
        south=row_to_lat(y + 1, n),
        east=col_to_lon(x + 1, n),
        north=row_to_lat(y, n),
    )


def lonlat_to_tile(lon: float, lat: float, zoom: int) -> tuple[int, int]:
    """Get the indices (x, y) of the tile containing a geographic coordinate.

    Raises
    ------
    OutOfRangeError
        If the latitude lies outside the Mercator latitude limits.

    """
    zoom = validate_zoom(zoom)
    if not (math.isfinite(lon) and math.isfinite(lat)) or abs(lat) > MAX_LAT:
        raise OutOfRangeError((lon, lat))

    n = 2**zoom
    return lon_to_col(normalise_lon(lon), n), lat_to_row(lat, n)


def tile_count(bounds: Bounds, zoom: int) -> int:
    """Number of tiles needed to cover the given bounds at a zoom level."""
    return bounds_to_range(bounds, zoom).size
