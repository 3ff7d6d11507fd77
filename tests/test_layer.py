import threading
from pathlib import Path

import pytest
from pydantic import ValidationError

from pytilelayer._errors import FetchErrorKind, InvalidRangeError, InvalidZoomError
from pytilelayer.bounds import Bounds
from pytilelayer.cache import MemoryTileCache
from pytilelayer.layer import LayerDefinition, TileLayer
from pytilelayer.pyramid import CornerOfOrigin, TileRange
from pytilelayer.source import DirectorySource, HttpSource, RetryingSource
from pytilelayer.tile import Tile, TileState


def test_get_cached(source):  # noqa: ANN001
    layer = TileLayer(source, cache=True)
    first = layer.get(3, 2, 1)
    second = layer.get(3, 2, 1)
    assert first.is_loaded
    assert second.is_loaded
    assert first.data == second.data == b"3/2/1"
    assert source.calls == [(3, 2, 1)]
    assert isinstance(layer.cache, MemoryTileCache)


def test_get_uncached(source):  # noqa: ANN001
    layer = TileLayer(source)
    layer.get(3, 2, 1)
    layer.get(3, 2, 1)
    assert len(source.calls) == 2
    assert layer.cache is None


def test_failures_not_cached(source_cls):  # noqa: ANN001
    source = source_cls(failures={(3, 2, 1): [FetchErrorKind.network]})
    layer = TileLayer(source, cache=True)
    assert layer.get(3, 2, 1).state == TileState.errored
    assert layer.get(3, 2, 1).state == TileState.loaded
    assert len(source.calls) == 2


def test_concurrent_get_single_flight(source_cls):  # noqa: ANN001
    gate = threading.Event()
    source = source_cls(gate=gate)
    layer = TileLayer(source, cache=True)
    results = []

    def worker() -> None:
        results.append(layer.get(4, 3, 2))

    threads = [threading.Thread(target=worker) for _ in range(6)]
    threads[0].start()
    assert source.started.wait(timeout=5)
    for thread in threads[1:]:
        thread.start()
    gate.set()
    for thread in threads:
        thread.join(timeout=5)

    assert len(source.calls) == 1
    assert [t.data for t in results] == [b"4/3/2"] * 6


def test_get_validation(source):  # noqa: ANN001
    layer = TileLayer(source, min_zoom=2, max_zoom=5)
    with pytest.raises(InvalidZoomError):
        layer.get(6, 0, 0)
    with pytest.raises(InvalidZoomError):
        layer.get(1, 0, 0)
    with pytest.raises(InvalidRangeError):
        layer.get(2, 4, 0)
    assert source.calls == []


def test_invalid_limits(source):  # noqa: ANN001
    with pytest.raises(InvalidZoomError):
        TileLayer(source, min_zoom=5, max_zoom=3)


def test_tiles_through_cache(source):  # noqa: ANN001
    layer = TileLayer(source, cache=True)
    first = [t.data for t in layer.tiles(1)]
    second = [t.data for t in layer.tiles(1)]
    assert first == second == [b"1/0/0", b"1/1/0", b"1/0/1", b"1/1/1"]
    assert len(source.calls) == 4


def test_tiles_bounds_and_range(source):  # noqa: ANN001
    layer = TileLayer(source)
    cursor = layer.tiles(2, Bounds(west=10, south=10, east=20, north=20))
    assert [t.key for t in cursor] == [(2, 2, 1)]

    tile_range = TileRange(zoom=2, min_x=0, min_y=0, max_x=1, max_y=0)
    assert [t.key for t in layer.tiles(2, tile_range)] == [(2, 0, 0), (2, 1, 0)]
    with pytest.raises(InvalidRangeError):
        layer.tiles(3, tile_range)


def test_tiles_layer_bounds(source):  # noqa: ANN001
    layer = TileLayer(source, bounds=Bounds(west=-10, south=-10, east=-5, north=-5))
    assert [t.key for t in layer.tiles(1)] == [(1, 0, 1)]


def test_tiles_predicate(source):  # noqa: ANN001
    layer = TileLayer(source)
    assert list(layer.tiles(1, predicate=lambda _: False)) == []
    assert source.calls == []


def test_tiles_invalid_zoom(source):  # noqa: ANN001
    layer = TileLayer(source, max_zoom=10)
    with pytest.raises(InvalidZoomError):
        layer.tiles(-1)
    with pytest.raises(InvalidZoomError):
        layer.tiles(11)


def test_fetch_many(source):  # noqa: ANN001
    layer = TileLayer(source, cache=True)
    cursor = layer.tiles(2, fetch=False)
    assert all(t.state == TileState.unloaded for t in layer.tiles(2, fetch=False))
    tiles = layer.fetch_many(cursor, max_workers=4)
    assert [t.key for t in tiles] == [t.key for t in layer.tiles(2, fetch=False)]
    assert all(t.is_loaded for t in tiles)
    assert len(source.calls) == 16

    retried = layer.fetch_many([Tile(z=2, x=1, y=1)])
    assert retried[0].data == b"2/1/1"
    assert len(source.calls) == 16


def test_close(source):  # noqa: ANN001
    with TileLayer(source, cache=True) as layer:
        layer.get(0, 0, 0)
    assert source.closed


def test_osm():
    layer = TileLayer.osm()
    assert layer.name == "OSM"
    assert layer.max_zoom == 19
    assert isinstance(layer.cache, MemoryTileCache)
    assert layer.source.url_for(Tile(z=2, x=1, y=3)) == (
        "https://tile.openstreetmap.org/2/1/3.png"
    )


@pytest.fixture
def tile_dir(tmp_path: Path) -> Path:
    tile_path = tmp_path / "tiles" / "1" / "1" / "0.png"
    tile_path.parent.mkdir(parents=True)
    tile_path.write_bytes(b"png")
    return tmp_path / "tiles"


def test_definition_file(tmp_path: Path, tile_dir: Path):
    layer_def = LayerDefinition(
        name="local", directory=tile_dir, max_zoom=4, bounds=(1, 1, 10, 10)
    )
    json_path = tmp_path / "layer.json"
    layer_def.to_file(json_path)
    assert LayerDefinition.from_file(json_path) == layer_def

    layer = TileLayer.from_file(json_path)
    assert isinstance(layer.source, DirectorySource)
    assert layer.max_zoom == 4
    assert layer.get(1, 1, 0).data == b"png"
    assert layer.get(1, 0, 0).error.kind == FetchErrorKind.not_found
    assert [t.key for t in layer.tiles(1)] == [(1, 1, 0)]


def test_definition_http():
    layer_def = LayerDefinition(
        name="remote",
        url=["https://a.t.org", "https://b.t.org"],
        corner_of_origin="bottomLeft",
        retries=2,
        cache=False,
    )
    layer = TileLayer.from_definition(layer_def)
    assert isinstance(layer.source, RetryingSource)
    assert layer.source.attempts == 3
    assert isinstance(layer.source.source, HttpSource)
    assert layer.source.source.corner_of_origin == CornerOfOrigin.bottom_left
    assert layer.cache is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "none"},
        {"name": "both", "url": "https://t.org", "directory": "/tmp"},
        {"name": "zoom", "url": "https://t.org", "min_zoom": 5, "max_zoom": 2},
        {"name": "deep", "url": "https://t.org", "max_zoom": 30},
    ],
)
def test_definition_invalid(kwargs: dict):
    with pytest.raises(ValidationError):
        LayerDefinition(**kwargs)
