"""Slippy-map geometry: geographic points, tile-space coordinates and the
rectangles used to decide which tiles make up a snapshot."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

TILE_SIZE = 256
MAX_ZOOM = 19
LATITUDE_LIMIT = 85.05112878
EARTH_CIRCUMFERENCE_M = 40075016.686
# Extra pixels kept on every side of the requested image so rounding in the
# centre projection never pushes the crop window off the canvas.
OVERSCAN_PX = 8


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float


@dataclass(frozen=True)
class TileIndex:
    """Column, row and zoom of a single 256x256 tile."""

    x: int
    y: int
    z: int


@dataclass(frozen=True)
class TileCoordinate:
    """Continuous tile-space position at a fixed zoom level."""

    x: float
    y: float
    z: int

    def outer(self) -> TileIndex:
        return TileIndex(math.floor(self.x), math.floor(self.y), self.z)


@dataclass(frozen=True)
class TileRectangle:
    top_left: TileCoordinate
    bottom_right: TileCoordinate

    def __post_init__(self) -> None:
        if self.top_left.z != self.bottom_right.z:
            raise ValueError(
                f"Tile rectangle corners must share a zoom level "
                f"(got {self.top_left.z} and {self.bottom_right.z})."
            )
        if self.top_left.x > self.bottom_right.x or self.top_left.y > self.bottom_right.y:
            raise ValueError(
                "Tile rectangle top-left corner must not lie right of or below the bottom-right corner."
            )

    @property
    def zoom(self) -> int:
        return self.top_left.z

    def outer_top_left(self) -> TileIndex:
        return self.top_left.outer()

    def tile_span(self) -> Tuple[int, int, int, int]:
        """Inclusive ``(x0, x1, y0, y1)`` range of tile indices covering the rectangle."""

        return (
            math.floor(self.top_left.x),
            math.ceil(self.bottom_right.x),
            math.floor(self.top_left.y),
            math.ceil(self.bottom_right.y),
        )


@dataclass(frozen=True)
class SizedTileRectangle:
    """A tile rectangle together with the point and pixel size it was built for."""

    tile_box: TileRectangle
    center: GeoPoint
    inner_size_px: Tuple[int, int]

    @property
    def zoom(self) -> int:
        return self.tile_box.zoom

    def outer_top_left(self) -> TileIndex:
        return self.tile_box.outer_top_left()


def lat_long_to_tile_coords(point: GeoPoint, zoom: int) -> TileCoordinate:
    """Project ``point`` into Web-Mercator tile space at ``zoom``."""

    scale = float(2**zoom)
    lat = _clamp(point.lat, -LATITUDE_LIMIT, LATITUDE_LIMIT)
    sin_lat = math.sin(math.radians(lat))
    y_fraction = 0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)
    x_fraction = (point.lon + 180.0) / 360.0
    return TileCoordinate(x=x_fraction * scale, y=y_fraction * scale, z=zoom)


def ground_resolution(lat: float, zoom: int) -> float:
    """Metres covered by one pixel at ``lat`` and ``zoom``."""

    lat = _clamp(lat, -LATITUDE_LIMIT, LATITUDE_LIMIT)
    return EARTH_CIRCUMFERENCE_M * math.cos(math.radians(lat)) / (TILE_SIZE * 2**zoom)


def choose_zoom(center: GeoPoint, radius_km: float, image_pixels: int) -> int:
    """Largest zoom at which ``image_pixels`` still span the full diameter."""

    diameter_m = 2.0 * radius_km * 1000.0
    lat = _clamp(center.lat, -LATITUDE_LIMIT, LATITUDE_LIMIT)
    metres_at_zoom_zero = image_pixels * ground_resolution(lat, 0)
    ratio = metres_at_zoom_zero / diameter_m
    if ratio <= 0 or not math.isfinite(ratio):
        return 0
    zoom = math.floor(math.log2(ratio))
    return int(max(0, min(MAX_ZOOM, zoom)))


def lat_long_and_image_size_to_bounding_box(
    center: GeoPoint, radius_km: float, image_pixels: int
) -> SizedTileRectangle:
    """Build the tile rectangle needed to crop an ``image_pixels`` square around ``center``."""

    _validate_point(center)
    if radius_km <= 0 or not math.isfinite(radius_km):
        raise ValueError("Radius must be a positive number of kilometres.")
    if image_pixels <= 0:
        raise ValueError("Image size must be a positive number of pixels.")

    zoom = choose_zoom(center, radius_km, image_pixels)
    middle = lat_long_to_tile_coords(center, zoom)
    half_span = (image_pixels / 2 + OVERSCAN_PX) / TILE_SIZE
    world_max = float(2**zoom - 1)

    top_left = TileCoordinate(
        x=_clamp(middle.x - half_span, 0.0, world_max),
        y=_clamp(middle.y - half_span, 0.0, world_max),
        z=zoom,
    )
    bottom_right = TileCoordinate(
        x=_clamp(middle.x + half_span, 0.0, world_max),
        y=_clamp(middle.y + half_span, 0.0, world_max),
        z=zoom,
    )
    return SizedTileRectangle(
        tile_box=TileRectangle(top_left=top_left, bottom_right=bottom_right),
        center=center,
        inner_size_px=(image_pixels, image_pixels),
    )


def _validate_point(point: GeoPoint) -> None:
    if not (-90.0 <= point.lat <= 90.0):
        raise ValueError("Latitude must be within -90 and 90 degrees.")
    if not (-180.0 <= point.lon <= 180.0):
        raise ValueError("Longitude must be within -180 and 180 degrees.")


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(min(value, maximum), minimum)
