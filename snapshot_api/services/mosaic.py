"""Stitch fetched tiles into one canvas and crop it around the requested point."""

from __future__ import annotations

import io
import logging
import math
import time
from typing import Mapping

from PIL import Image

from .context import RequestContext
from .errors import DecodeError, EncodeError, GeometryError
from .geometry import TILE_SIZE, SizedTileRectangle, TileIndex, lat_long_to_tile_coords

logger = logging.getLogger(__name__)


def build_canvas(tile_box: SizedTileRectangle, tiles: Mapping[TileIndex, bytes]) -> Image.Image:
    """Composite ``tiles`` onto a transparent RGBA canvas.

    The canvas covers exactly the rectangle's inclusive tile span. A batch whose
    keys differ from that grid is rejected instead of silently resizing the
    canvas, since the crop window is computed from the rectangle.
    """

    x0, x1, y0, y1 = tile_box.tile_box.tile_span()
    zoom = tile_box.zoom
    expected = {TileIndex(x, y, zoom) for x in range(x0, x1 + 1) for y in range(y0, y1 + 1)}
    received = set(tiles)
    if received != expected:
        missing = sorted((i.x, i.y, i.z) for i in expected - received)
        unexpected = sorted((i.x, i.y, i.z) for i in received - expected)
        raise GeometryError(
            "Tile batch does not match the requested tile grid",
            missing=missing[:5],
            unexpected=unexpected[:5],
        )

    columns = len({index.x for index in received})
    rows = len({index.y for index in received})
    canvas = Image.new("RGBA", (columns * TILE_SIZE, rows * TILE_SIZE), (0, 0, 0, 0))

    outer = tile_box.outer_top_left()
    for index in sorted(received, key=lambda i: (i.x, i.y)):
        tile_image = _decode_tile(index, tiles[index])
        offset = ((index.x - outer.x) * TILE_SIZE, (index.y - outer.y) * TILE_SIZE)
        canvas.paste(tile_image, offset)

    return canvas


def crop_window(tile_box: SizedTileRectangle, canvas_size: tuple[int, int]) -> tuple[int, int, int, int]:
    """Return the ``(left, top, right, bottom)`` box centred on the rectangle's point."""

    width, height = tile_box.inner_size_px
    canvas_width, canvas_height = canvas_size
    outer = tile_box.outer_top_left()
    center = lat_long_to_tile_coords(tile_box.center, tile_box.zoom)

    center_x_px = math.floor((center.x - outer.x) * TILE_SIZE)
    center_y_px = math.floor((center.y - outer.y) * TILE_SIZE)
    left = center_x_px - width // 2
    top = center_y_px - height // 2

    logger.debug(
        "Canvas %dx%d, centre %d,%d, offset %d,%d, size %dx%d",
        canvas_width,
        canvas_height,
        center_x_px,
        center_y_px,
        left,
        top,
        width,
        height,
    )

    if left < 0 or top < 0 or left + width > canvas_width or top + height > canvas_height:
        raise GeometryError(
            "Crop window falls outside the assembled canvas",
            center_px=(center_x_px, center_y_px),
            origin=(left, top),
            size=(width, height),
            canvas=(canvas_width, canvas_height),
        )
    return left, top, left + width, top + height


def assemble(
    tile_box: SizedTileRectangle,
    tiles: Mapping[TileIndex, bytes],
    context: RequestContext | None = None,
) -> bytes:
    """Build the mosaic, crop it to the requested size and encode it as PNG."""

    start = time.perf_counter()
    canvas = build_canvas(tile_box, tiles)
    box = crop_window(tile_box, canvas.size)
    cropped = canvas.crop(box)

    buffer = io.BytesIO()
    try:
        cropped.save(buffer, format="PNG")
    except (OSError, ValueError) as exc:
        raise EncodeError(str(exc)) from exc

    if context is not None:
        context.timings["processing_time"] = time.perf_counter() - start
        logger.debug(
            "[%s] assembled %d tiles into %dx%d snapshot",
            context.request_id,
            len(tiles),
            cropped.width,
            cropped.height,
            extra=context.log_extra(),
        )
    return buffer.getvalue()


def _decode_tile(index: TileIndex, payload: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(payload))
        image.load()
    except Exception as exc:  # Pillow raises a range of errors for corrupt payloads
        raise DecodeError(index, str(exc) or type(exc).__name__) from exc

    if image.size != (TILE_SIZE, TILE_SIZE):
        raise DecodeError(
            index, f"expected {TILE_SIZE}x{TILE_SIZE} pixels, got {image.width}x{image.height}"
        )
    return image.convert("RGBA")
