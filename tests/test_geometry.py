import math

import pytest

from snapshot_api.services.geometry import (
    MAX_ZOOM,
    OVERSCAN_PX,
    TILE_SIZE,
    GeoPoint,
    TileCoordinate,
    TileIndex,
    TileRectangle,
    choose_zoom,
    lat_long_and_image_size_to_bounding_box,
    lat_long_to_tile_coords,
)

PERTH = GeoPoint(-31.9514, 115.8617)


def test_origin_projects_to_grid_centre():
    coords = lat_long_to_tile_coords(GeoPoint(0.0, 0.0), 1)
    assert coords == TileCoordinate(1.0, 1.0, 1)


def test_perth_lands_on_known_tile():
    coords = lat_long_to_tile_coords(PERTH, 12)
    assert coords.outer() == TileIndex(3366, 2431, 12)


def test_latitude_is_clamped_to_mercator_limit():
    north_pole = lat_long_to_tile_coords(GeoPoint(90.0, 0.0), 4)
    assert math.isfinite(north_pole.y)
    assert north_pole.y == pytest.approx(0.0, abs=1e-6)


def test_rectangle_rejects_mixed_zoom_levels():
    with pytest.raises(ValueError):
        TileRectangle(TileCoordinate(1.0, 1.0, 3), TileCoordinate(2.0, 2.0, 4))


def test_rectangle_rejects_inverted_corners():
    with pytest.raises(ValueError):
        TileRectangle(TileCoordinate(3.0, 1.0, 3), TileCoordinate(2.0, 2.0, 3))


def test_tile_span_is_inclusive_and_floor_ceil_rounded():
    box = TileRectangle(TileCoordinate(10.3, 20.4, 6), TileCoordinate(11.6, 21.5, 6))
    assert box.tile_span() == (10, 12, 20, 22)
    assert box.outer_top_left() == TileIndex(10, 20, 6)


def test_choose_zoom_keeps_whole_diameter_in_frame():
    zoom = choose_zoom(PERTH, 1.0, 1024)
    assert zoom == 16

    metres_per_pixel = 40075016.686 * math.cos(math.radians(PERTH.lat)) / (256 * 2**zoom)
    assert 1024 * metres_per_pixel >= 2000.0
    assert 1024 * metres_per_pixel / 2 < 2000.0


def test_choose_zoom_is_clamped():
    assert choose_zoom(PERTH, 0.0001, 4096) == MAX_ZOOM
    assert choose_zoom(PERTH, 50000.0, 256) == 0


def test_bounding_box_contains_requested_image_with_overscan():
    sized = lat_long_and_image_size_to_bounding_box(PERTH, 1.0, 1024)
    center = lat_long_to_tile_coords(PERTH, sized.zoom)
    half_span = (1024 / 2 + OVERSCAN_PX) / TILE_SIZE

    assert sized.inner_size_px == (1024, 1024)
    assert sized.center == PERTH
    assert sized.tile_box.top_left.x == pytest.approx(center.x - half_span)
    assert sized.tile_box.bottom_right.y == pytest.approx(center.y + half_span)


@pytest.mark.parametrize(
    "center, radius_km, size",
    [
        (GeoPoint(91.0, 0.0), 1.0, 512),
        (GeoPoint(0.0, 181.0), 1.0, 512),
        (PERTH, 0.0, 512),
        (PERTH, 1.0, 0),
    ],
)
def test_bounding_box_rejects_invalid_input(center, radius_km, size):
    with pytest.raises(ValueError):
        lat_long_and_image_size_to_bounding_box(center, radius_km, size)


def test_bounding_box_stays_on_world_grid():
    sized = lat_long_and_image_size_to_bounding_box(GeoPoint(0.0, 179.9999), 1.0, 512)
    limit = 2**sized.zoom - 1
    x0, x1, _, _ = sized.tile_box.tile_span()
    assert x0 >= 0
    assert x1 <= limit
