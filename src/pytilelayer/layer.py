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

"""Layer module composing a tile source with an optional payload cache."""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import orjson
from pydantic import BaseModel, NonNegativeInt, PositiveFloat, model_validator

from pytilelayer._const import DEF_EXTENSION, JSON_INDENT, MAX_ZOOM, TIMEOUT
from pytilelayer._errors import InvalidRangeError
from pytilelayer._types import BoundsPredicate, Extent
from pytilelayer.bounds import Bounds
from pytilelayer.cache import MemoryTileCache, TileCache
from pytilelayer.cursor import TileCursor
from pytilelayer.pyramid import CornerOfOrigin, TileRange, validate_zoom
from pytilelayer.source import (
    CachingSource,
    DirectorySource,
    HttpSource,
    RetryingSource,
    TileSource,
    fetch_tile,
)
from pytilelayer.tile import Tile

__all__ = ["LayerDefinition", "TileLayer"]

logger = logging.getLogger(__name__)

OSM_URL = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
OSM_MAX_ZOOM = 19


class LayerDefinition(BaseModel):
    """Settings of a tile layer, e.g. as stored in a JSON file."""

    name: str
    url: str | list[str] | None = None
    directory: Path | None = None
    extension: str = DEF_EXTENSION
    timeout: PositiveFloat = TIMEOUT
    headers: dict[str, str] | None = None
    content_type: str | None = None
    corner_of_origin: CornerOfOrigin = CornerOfOrigin.top_left
    min_zoom: NonNegativeInt = 0
    max_zoom: NonNegativeInt = MAX_ZOOM
    bounds: Extent | None = None
    cache: bool = True
    retries: NonNegativeInt = 0

    @model_validator(mode="after")
    def check_definition(self) -> "LayerDefinition":
        """Check if exactly one source is given and the zoom limits are valid."""
        if (self.url is None) == (self.directory is None):
            err_msg = f"Layer '{self.name}' needs either a URL or a directory."
            raise ValueError(err_msg)
        if not self.min_zoom <= self.max_zoom <= MAX_ZOOM:
            err_msg = (
                f"Layer '{self.name}' has invalid zoom limits "
                f"[{self.min_zoom}, {self.max_zoom}]."
            )
            raise ValueError(err_msg)

        return self

    @classmethod
    def from_file(cls, json_path: Path) -> "LayerDefinition":
        """Create a layer definition from a JSON file.

        Parameters
        ----------
        json_path: Path
            Path to JSON file storing the layer definition.

        Returns
        -------
        LayerDefinition
            Layer definition.

        """
        with json_path.open("rb") as f:
            layer_def = orjson.loads(f.read())

        return cls(**layer_def)

    def to_file(self, json_path: Path) -> None:
        """Write the layer definition to a JSON file."""
        layer_def = self.model_dump_json(indent=JSON_INDENT, exclude_none=True)
        with json_path.open("w") as f:
            f.writelines(layer_def)

    def create_source(self) -> TileSource:
        """Create the tile source described by the definition."""
        if self.url is not None:
            source = HttpSource(
                self.url,
                name=self.name,
                extension=self.extension,
                timeout=self.timeout,
                headers=self.headers,
                content_type=self.content_type,
                corner_of_origin=self.corner_of_origin,
            )
        else:
            source = DirectorySource(
                self.directory,
                name=self.name,
                extension=self.extension,
                corner_of_origin=self.corner_of_origin,
            )

        if self.retries:
            source = RetryingSource(source, attempts=self.retries + 1)

        return source


class TileLayer:
    """Give access to the tiles of one source.

    A layer owns its source and, optionally, a payload cache shared by all
    tiles and cursors it hands out. Fetches of the same tile issued
    concurrently through a cached layer result in a single fetch from the
    source. Failed fetches are not cached.

    """

    def __init__(  # noqa: PLR0913
        self,
        source: TileSource,
        *,
        name: str | None = None,
        cache: TileCache | bool | None = None,
        min_zoom: int = 0,
        max_zoom: int = MAX_ZOOM,
        bounds: Bounds | None = None,
    ) -> None:
        """Initialise a tile layer.

        Parameters
        ----------
        source: TileSource
            Source the layer takes ownership of.
        name: str | None, optional
            Name of the layer. Defaults to the name of the source.
        cache: TileCache | bool | None, optional
            Payload cache. True creates an unbounded in-memory cache.
        min_zoom: int, optional
            Lowest zoom level served by the layer.
        max_zoom: int, optional
            Highest zoom level served by the layer.
        bounds: Bounds | None, optional
            Extent covered by the layer; defaults to the whole world.

        """
        self.max_zoom = validate_zoom(max_zoom)
        self.min_zoom = validate_zoom(min_zoom, self.max_zoom)
        if cache is True:
            cache = MemoryTileCache()
        elif cache is False:
            cache = None

        self.name = name or source.name
        self.bounds = bounds
        self._source = source
        self._cache = cache
        self._fetcher = source if cache is None else CachingSource(source, cache)

    @classmethod
    def from_definition(cls, layer_def: LayerDefinition) -> "TileLayer":
        """Create a tile layer from a layer definition."""
        bounds = Bounds.from_extent(layer_def.bounds) if layer_def.bounds else None
        return cls(
            layer_def.create_source(),
            name=layer_def.name,
            cache=layer_def.cache,
            min_zoom=layer_def.min_zoom,
            max_zoom=layer_def.max_zoom,
            bounds=bounds,
        )

    @classmethod
    def from_file(cls, json_path: Path) -> "TileLayer":
        """Create a tile layer from a layer definition stored in a JSON file."""
        return cls.from_definition(LayerDefinition.from_file(json_path))

    @classmethod
    def osm(cls, **kwargs: Any) -> "TileLayer":  # noqa: ANN401
        """Create a cached layer of the OpenStreetMap standard tile server.

        Keyword arguments are passed on to `HttpSource`.

        """
        source = HttpSource(OSM_URL, name="OSM", content_type="image/", **kwargs)
        return cls(source, cache=True, max_zoom=OSM_MAX_ZOOM)

    @property
    def source(self) -> TileSource:
        """Source of the layer."""
        return self._source

    @property
    def cache(self) -> TileCache | None:
        """Payload cache of the layer."""
        return self._cache

    def get(self, zoom: int, x: int, y: int) -> Tile:
        """Get a single tile.

        Parameters
        ----------
        zoom: int
            Zoom level.
        x: int
            Column index.
        y: int
            Row index.

        Returns
        -------
        Tile
            Loaded tile, or errored tile if the fetch failed.

        Raises
        ------
        InvalidZoomError
            If the zoom level is not served by the layer.
        InvalidRangeError
            If the coordinates are not on the tile grid.

        """
        validate_zoom(zoom, self.max_zoom, self.min_zoom)
        return fetch_tile(self._fetcher, Tile(z=zoom, x=x, y=y))

    def tiles(
        self,
        zoom: int,
        bounds: Bounds | TileRange | None = None,
        predicate: BoundsPredicate | None = None,
        *,
        fetch: bool = True,
    ) -> TileCursor:
        """Create a cursor over the tiles of a zoom level.

        Parameters
        ----------
        zoom: int
            Zoom level.
        bounds: Bounds | TileRange | None, optional
            Bounds to cover or an explicit tile range. Defaults to the bounds
            of the layer.
        predicate: BoundsPredicate | None, optional
            Function receiving the geographic bounds of a tile and returning
            False for tiles which should be skipped.
        fetch: bool, optional
            If False, the cursor yields unloaded tiles.

        Returns
        -------
        TileCursor
            Cursor fetching through the layer's cache.

        """
        validate_zoom(zoom, self.max_zoom, self.min_zoom)
        source = self._fetcher if fetch else None
        if isinstance(bounds, TileRange):
            if bounds.zoom != zoom:
                err_msg = f"Tile range is defined for zoom {bounds.zoom}, not {zoom}."
                raise InvalidRangeError(err_msg)
            return TileCursor(
                bounds, source=source, predicate=predicate, max_zoom=self.max_zoom
            )

        return TileCursor(
            bounds=bounds if bounds is not None else self.bounds,
            zoom=zoom,
            source=source,
            predicate=predicate,
            max_zoom=self.max_zoom,
        )

    def fetch_many(self, tiles: Iterable[Tile], max_workers: int = 4) -> list[Tile]:
        """Fetch tiles in parallel.

        Parameters
        ----------
        tiles: Iterable[Tile]
            Tiles to fetch, e.g. from a cursor created with `fetch=False`.
            Only their coordinates are used, so errored tiles are tried again.
        max_workers: int, optional
            Number of worker threads.

        Returns
        -------
        list[Tile]
            Loaded or errored tiles in the order of `tiles`.

        """
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(lambda t: self.get(t.z, t.x, t.y), tiles))

        n_errored = sum(t.is_errored for t in results)
        logger.debug("Fetched %d tiles, %d failed.", len(results), n_errored)
        return results

    def close(self) -> None:
        """Close the source of the layer."""
        self._source.close()

    def __enter__(self) -> "TileLayer":
        """Enter the runtime context."""
        return self

    def __exit__(self, *args: object) -> None:
        """Close the layer when leaving the runtime context."""
        self.close()

    def __repr__(self) -> str:
        """Return string representation of this class."""
        return (
            f"TileLayer(name={self.name!r}, zoom=[{self.min_zoom}, {self.max_zoom}], "
            f"cached={self._cache is not None})"
        )
