from enum import Enum
from typing import Any


class TileLayerError(Exception):
    """Base class of all errors raised by pytilelayer."""

    msg: str = ""

    def __str__(self) -> str:
        """Return string representation of this class."""
        return self.msg


class InvalidZoomError(TileLayerError):
    """Class to handle zoom levels outside the supported range."""

    def __init__(self, zoom: Any, min_zoom: int = 0, max_zoom: int | None = None) -> None:  # noqa: ANN401
        """Initialise an InvalidZoomError.

        Parameters
        ----------
        zoom: Any
            Requested zoom level.
        min_zoom: int, optional
            Lowest supported zoom level.
        max_zoom: int | None, optional
            Highest supported zoom level.

        """
        self.zoom = zoom
        self.msg = (
            f"The given zoom level ('{zoom}') is not within the "
            f"supported range [{min_zoom}, {max_zoom}]."
        )


class InvalidRangeError(TileLayerError):
    """Class to handle empty, inverted or off-grid tile ranges."""

    def __init__(self, reason: str) -> None:
        """Initialise an InvalidRangeError.

        Parameters
        ----------
        reason: str
            Description of what is wrong with the range.

        """
        self.msg = f"Invalid tile range: {reason}"


class OutOfRangeError(TileLayerError):
    """Class to handle bounds outside the valid projection domain."""

    def __init__(self, bounds: Any, reason: str | None = None) -> None:  # noqa: ANN401
        """Initialise an OutOfRangeError.

        Parameters
        ----------
        bounds: Any
            Offending bounds.
        reason: str | None, optional
            Additional explanation.

        """
        self.bounds = bounds
        self.msg = (
            f"The given bounds ('{bounds}') are not within the "
            "valid domain of the Web Mercator projection."
        )
        if reason:
            self.msg += f" {reason}"


class TileStateError(TileLayerError):
    """Class to handle illegal tile state transitions."""

    def __init__(self, tile: Any, target: str) -> None:  # noqa: ANN401
        """Initialise a TileStateError.

        Parameters
        ----------
        tile: Any
            Tile which should change its state.
        target: str
            Requested target state.

        """
        self.msg = f"{tile} can not transition to state '{target}'."


class FetchErrorKind(Enum):
    """Failure classes of a single tile fetch."""

    network = "network"
    not_found = "not-found"
    decode = "decode"


class FetchError(TileLayerError):
    """Class to handle failed tile fetches."""

    def __init__(
        self,
        kind: FetchErrorKind,
        coords: tuple[int, int, int],
        reason: str | None = None,
    ) -> None:
        """Initialise a FetchError.

        Parameters
        ----------
        kind: FetchErrorKind
            Failure class.
        coords: tuple[int, int, int]
            Tile coordinates (z, x, y) of the failed fetch.
        reason: str | None, optional
            Additional explanation, e.g. the HTTP status or the OS error.

        """
        self.kind = FetchErrorKind(kind)
        self.coords = tuple(coords)
        z, x, y = self.coords
        self.reason = reason
        self.msg = f"Fetching tile {z}/{x}/{y} failed ({self.kind.value})"
        if reason:
            self.msg += f": {reason}"
