from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from pytilelayer.bounds import Bounds
    from pytilelayer.tile import Tile

Extent: TypeAlias = tuple[float, float, float, float]
TileKey: TypeAlias = tuple[int, int, int]
BoundsPredicate: TypeAlias = Callable[["Bounds"], bool]
TileGenerator: TypeAlias = Iterator["Tile"]
