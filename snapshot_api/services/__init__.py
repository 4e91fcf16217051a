"""Service utilities exposed by the ``snapshot_api.services`` package."""

from .context import RequestContext
from .errors import (
    ContentTypeError,
    DecodeError,
    EncodeError,
    GeometryError,
    TileFetchError,
    TileImageryError,
    TransportError,
    UpstreamStatusError,
)
from .geometry import GeoPoint, SizedTileRectangle, TileCoordinate, TileIndex, TileRectangle
from .imagery import fetch_image, fetch_image_from_point
from .sources import TileSource

__all__ = [
    "ContentTypeError",
    "DecodeError",
    "EncodeError",
    "GeoPoint",
    "GeometryError",
    "RequestContext",
    "SizedTileRectangle",
    "TileCoordinate",
    "TileFetchError",
    "TileImageryError",
    "TileIndex",
    "TileRectangle",
    "TileSource",
    "TransportError",
    "UpstreamStatusError",
    "fetch_image",
    "fetch_image_from_point",
]
