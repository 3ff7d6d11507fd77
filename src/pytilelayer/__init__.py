"""pytilelayer's init module defining outward facing objects."""

from pytilelayer._errors import (
    FetchError,
    FetchErrorKind,
    InvalidRangeError,
    InvalidZoomError,
    OutOfRangeError,
    TileLayerError,
    TileStateError,
)
from pytilelayer.bounds import Bounds, intersecting
from pytilelayer.cache import MemoryTileCache, TileCache
from pytilelayer.cursor import TileCursor
from pytilelayer.layer import LayerDefinition, TileLayer
from pytilelayer.pyramid import (
    CornerOfOrigin,
    TileRange,
    bounds_to_range,
    range_to_bounds,
)
from pytilelayer.source import (
    CachingSource,
    DirectorySource,
    HttpSource,
    RetryingSource,
    TileSource,
)
from pytilelayer.tile import Tile, TileState

__all__ = [
    "Bounds",
    "CachingSource",
    "CornerOfOrigin",
    "DirectorySource",
    "FetchError",
    "FetchErrorKind",
    "HttpSource",
    "InvalidRangeError",
    "InvalidZoomError",
    "LayerDefinition",
    "MemoryTileCache",
    "OutOfRangeError",
    "RetryingSource",
    "Tile",
    "TileCache",
    "TileCursor",
    "TileLayer",
    "TileLayerError",
    "TileRange",
    "TileSource",
    "TileState",
    "TileStateError",
    "bounds_to_range",
    "intersecting",
    "range_to_bounds",
]
