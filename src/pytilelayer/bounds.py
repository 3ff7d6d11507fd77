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

"""Bounds module defining rectangular extents in a certain projection."""

import math
from typing import Annotated, Any

import pyproj
import shapely
from antimeridian import fix_polygon
from pydantic import AfterValidator, BaseModel

from pytilelayer._const import GEOG_EPSG, MAX_LON
from pytilelayer._types import BoundsPredicate, Extent

__all__ = ["Bounds", "intersecting", "normalise_lon"]

GEOG_CRS = pyproj.CRS.from_epsg(GEOG_EPSG)
DENSIFY_PTS = 21  # points added along each edge when reprojecting


def convert_crs(arg: Any) -> pyproj.CRS:  # noqa: ANN401
    return pyproj.CRS.from_user_input(arg)


def normalise_lon(lon: float) -> float:
    """Wrap a longitude into [-180, 180]; values already inside are kept."""
    if -MAX_LON <= lon <= MAX_LON:
        return lon

    return ((lon + MAX_LON) % 360.0) - MAX_LON


class Bounds(BaseModel, arbitrary_types_allowed=True, frozen=True):
    """Define a rectangular extent (west, south, east, north) in a certain projection.

    For geographic bounds `east` may be smaller than `west`, which denotes an
    extent crossing the antimeridian. Longitudes outside [-180, 180] are
    wrapped before the bounds are compared or turned into geometries.

    """

    west: float
    south: float
    east: float
    north: float
    crs: Annotated[Any, AfterValidator(convert_crs)] = GEOG_CRS

    @classmethod
    def from_extent(cls, extent: Extent, crs: Any = GEOG_CRS) -> "Bounds":  # noqa: ANN401
        """Create bounds from an extent tuple.

        Parameters
        ----------
        extent: Extent
            Extent (west, south, east, north).
        crs: Any, optional
            A projection definition pyproj.CRS can handle.
            Defaults to geographic coordinates (EPSG:4326).

        Returns
        -------
        Bounds
            Bounds instance.

        """
        west, south, east, north = extent
        return cls(west=west, south=south, east=east, north=north, crs=crs)

    @property
    def extent(self) -> Extent:
        """Extent tuple (west, south, east, north)."""
        return self.west, self.south, self.east, self.north

    @property
    def is_finite(self) -> bool:
        """True if all four coordinates are finite numbers."""
        return all(math.isfinite(v) for v in self.extent)

    @property
    def is_geog(self) -> bool:
        """True if the bounds are given in geographic coordinates (EPSG:4326)."""
        return self.crs.is_exact_same(GEOG_CRS)

    @property
    def lon_extent(self) -> tuple[float, float]:
        """Western and eastern edge, wrapped into [-180, 180] for geographic bounds.

        Geographic bounds spanning a full turn or more cover all longitudes.

        """
        if not self.is_geog:
            return self.west, self.east
        if self.east - self.west >= 2 * MAX_LON:
            return -MAX_LON, MAX_LON

        return normalise_lon(self.west), normalise_lon(self.east)

    @property
    def crosses_antimeridian(self) -> bool:
        """True if geographic bounds wrap around the antimeridian."""
        if not self.is_geog:
            return False

        west, east = self.lon_extent
        return east < west

    def to_geog(self) -> "Bounds":
        """Return the bounds reprojected to geographic coordinates.

        Edges are densified before the transformation, so the returned bounds
        enclose the curved outline of the original rectangle.

        Returns
        -------
        Bounds
            Geographic bounds (EPSG:4326).

        """
        if self.is_geog:
            return self

        transformer = pyproj.Transformer.from_crs(self.crs, GEOG_CRS, always_xy=True)
        extent = transformer.transform_bounds(*self.extent, densify_pts=DENSIFY_PTS)
        return Bounds.from_extent(extent)

    def to_shapely(self) -> shapely.Geometry:
        """Bounds represented by a shapely geometry.

        Antimeridian crossing bounds are returned as a MultiPolygon split at
        the antimeridian.

        """
        west, east = self.lon_extent
        south, north = self.south, self.north
        poly = shapely.Polygon([(west, south), (east, south), (east, north), (west, north)])
        if self.crosses_antimeridian:
            poly = fix_polygon(poly)

        return poly

    def contains(self, other: "Bounds") -> bool:
        """Check if these bounds fully contain other bounds.

        Parameters
        ----------
        other: Bounds
            Bounds to test. They are expected to share the same CRS.

        Returns
        -------
        bool
            True if `other` lies within or on the edges of these bounds.

        """
        if self.crosses_antimeridian or other.crosses_antimeridian:
            return bool(shapely.covers(self.to_shapely(), other.to_shapely()))

        west, east = self.lon_extent
        other_west, other_east = other.lon_extent
        return (
            west <= other_west
            and self.south <= other.south
            and east >= other_east
            and self.north >= other.north
        )

    def intersects(self, other: "Bounds") -> bool:
        """Check if these bounds intersect with other bounds."""
        return bool(shapely.intersects(self.to_shapely(), other.to_shapely()))

    def __str__(self) -> str:
        """Return string representation of this class."""
        return f"({self.west}, {self.south}, {self.east}, {self.north})"


def intersecting(geom: shapely.Geometry) -> BoundsPredicate:
    """Create a bounds predicate selecting tiles which intersect a geometry.

    Parameters
    ----------
    geom: shapely.Geometry
        Geometry in geographic coordinates (EPSG:4326).

    Returns
    -------
    BoundsPredicate
        Function returning True for tile bounds intersecting `geom`.

    """
    shapely.prepare(geom)

    def predicate(bounds: Bounds) -> bool:
        return bool(shapely.intersects(geom, bounds.to_shapely()))

    return predicate
