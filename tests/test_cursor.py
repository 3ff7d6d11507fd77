import pytest
import shapely

from pytilelayer._const import MAX_ZOOM
from pytilelayer._errors import (
    FetchErrorKind,
    InvalidRangeError,
    InvalidZoomError,
    OutOfRangeError,
)
from pytilelayer.bounds import Bounds, intersecting
from pytilelayer.cursor import TileCursor
from pytilelayer.pyramid import TileRange
from pytilelayer.tile import TileState


@pytest.fixture(scope="module")
def tile_range() -> TileRange:
    return TileRange(zoom=1, min_x=0, min_y=0, max_x=1, max_y=1)


@pytest.fixture(scope="module")
def europe() -> Bounds:
    return Bounds(west=-10.5, south=35.2, east=30.7, north=60.1)


def test_row_major_order(tile_range: TileRange):
    # ascending y, then ascending x within a row
    keys = [tile.key for tile in TileCursor(tile_range)]
    assert keys == [(1, 0, 0), (1, 1, 0), (1, 0, 1), (1, 1, 1)]


def test_unloaded_without_source(tile_range: TileRange):
    assert all(t.state == TileState.unloaded for t in TileCursor(tile_range))


def test_determinism(europe: Bounds):
    cursor_a = TileCursor(bounds=europe, zoom=6)
    cursor_b = TileCursor(bounds=europe, zoom=6)
    keys_a = [t.key for t in cursor_a]
    assert keys_a == [t.key for t in cursor_b]
    assert len(keys_a) == cursor_a.size


def test_world_without_bounds():
    cursor = TileCursor(zoom=2)
    assert cursor.size == 16
    assert len(list(cursor)) == 16


def test_lazy_on_huge_range():
    cursor = TileCursor(zoom=MAX_ZOOM)
    assert cursor.size == 4**MAX_ZOOM
    assert next(cursor).key == (MAX_ZOOM, 0, 0)
    assert next(cursor).key == (MAX_ZOOM, 1, 0)
    assert cursor.position == 2


def test_predicate_always_false(tile_range: TileRange):
    cursor = TileCursor(tile_range, predicate=lambda _: False)
    assert cursor.size is None
    assert list(cursor) == []


def test_predicate_is_lazy(tile_range: TileRange):
    seen = []

    def predicate(bounds: Bounds) -> bool:
        seen.append(bounds)
        return bounds.west >= 0

    cursor = TileCursor(tile_range, predicate=predicate)
    assert next(cursor).key == (1, 1, 0)
    assert len(seen) == 2
    assert [t.key for t in cursor] == [(1, 1, 1)]
    assert len(seen) == 4


def test_predicate_skips_without_fetching(source_cls, tile_range: TileRange):  # noqa: ANN001
    source = source_cls()
    geom = shapely.box(-170, 10, -160, 20)
    cursor = TileCursor(tile_range, source=source, predicate=intersecting(geom))
    assert [t.key for t in cursor] == [(1, 0, 0)]
    assert source.calls == [(1, 0, 0)]


def test_fetch_error_isolation(failing_source, tile_range: TileRange):  # noqa: ANN001
    tiles = list(TileCursor(tile_range, source=failing_source))
    assert [t.key for t in tiles] == [(1, 0, 0), (1, 1, 0), (1, 0, 1), (1, 1, 1)]
    assert [t.state for t in tiles] == [
        TileState.loaded,
        TileState.errored,
        TileState.loaded,
        TileState.loaded,
    ]
    assert tiles[1].error.kind == FetchErrorKind.network
    assert tiles[2].data == b"1/0/1"
    assert len(failing_source.calls) == 4


def test_invalid_zoom_raised_on_construction():
    with pytest.raises(InvalidZoomError):
        TileCursor(zoom=-1)
    with pytest.raises(InvalidZoomError):
        TileCursor(bounds=Bounds(west=0, south=0, east=1, north=1), zoom=-1)
    with pytest.raises(InvalidZoomError):
        TileCursor(bounds=Bounds(west=0, south=0, east=1, north=1))
    with pytest.raises(InvalidZoomError):
        TileCursor(TileRange.world(5), max_zoom=4)


def test_out_of_range_raised_on_construction():
    with pytest.raises(OutOfRangeError):
        TileCursor(bounds=Bounds(west=0, south=86, east=1, north=88), zoom=3)


def test_range_and_bounds_exclusive(tile_range: TileRange):
    with pytest.raises(InvalidRangeError):
        TileCursor(tile_range, zoom=1)


def test_reset(tile_range: TileRange):
    cursor = TileCursor(tile_range)
    first = [t.key for t in cursor]
    assert list(cursor) == []
    cursor.reset()
    assert [t.key for t in cursor] == first


def test_close(tile_range: TileRange):
    with TileCursor(tile_range) as cursor:
        next(cursor)
    assert list(cursor) == []


def test_independent_cursors(source, tile_range: TileRange):  # noqa: ANN001
    cursor_a = TileCursor(tile_range, source=source)
    cursor_b = TileCursor(tile_range, source=source)
    next(cursor_a)
    next(cursor_a)
    assert next(cursor_b).key == (1, 0, 0)
    assert cursor_a.position == 2
    assert cursor_b.position == 1


def test_bounds_property(tile_range: TileRange):
    cursor = TileCursor(tile_range)
    assert cursor.zoom == 1
    assert cursor.bounds.west == -180
    assert cursor.bounds.east == 180
