from __future__ import annotations

import asyncio
import logging
import os

import httpx

from .context import RequestContext
from .geometry import GeoPoint, SizedTileRectangle, lat_long_and_image_size_to_bounding_box
from .mosaic import assemble
from .sources import TileSource
from .tiles import fetch_batch

logger = logging.getLogger(__name__)

MAX_IMAGE_PIXELS = 4096
TILE_BATCH_TIMEOUT_ENV = "TILE_BATCH_TIMEOUT"


def _batch_timeout_seconds() -> float | None:
    raw_value = os.getenv(TILE_BATCH_TIMEOUT_ENV, "").strip()
    if not raw_value:
        return None
    try:
        timeout = float(raw_value)
    except ValueError:
        return None
    if timeout <= 0:
        return None
    return timeout


async def fetch_image_from_point(
    center: GeoPoint,
    radius_km: float,
    image_size: int,
    source: TileSource,
    *,
    context: RequestContext | None = None,
    client: httpx.AsyncClient | None = None,
) -> bytes:
    """Return a PNG of ``image_size`` x ``image_size`` pixels centred on ``center``.

    The zoom level is chosen so that the image still shows the whole
    ``radius_km`` circle around the point.
    """

    if image_size <= 0 or image_size > MAX_IMAGE_PIXELS:
        raise ValueError(f"Image size must be between 1 and {MAX_IMAGE_PIXELS} pixels.")

    tile_box = lat_long_and_image_size_to_bounding_box(center, radius_km, image_size)
    return await fetch_image(source, tile_box, context=context, client=client)


async def fetch_image(
    source: TileSource,
    tile_box: SizedTileRectangle,
    *,
    context: RequestContext | None = None,
    client: httpx.AsyncClient | None = None,
) -> bytes:
    """Fetch the tiles covering ``tile_box`` and crop them down to its requested size."""

    if context is None:
        context = RequestContext(source=source.value)

    timeout = _batch_timeout_seconds()
    with context.span("fetch_batch"):
        tiles = await asyncio.wait_for(
            fetch_batch(source, tile_box.tile_box, context, client=client),
            timeout=timeout,
        )

    with context.span("assemble"):
        image_bytes = assemble(tile_box, tiles, context)

    logger.info(
        "[%s] snapshot at %.5f,%.5f zoom %d (%dx%d) built from %d tiles",
        context.request_id,
        tile_box.center.lat,
        tile_box.center.lon,
        tile_box.zoom,
        tile_box.inner_size_px[0],
        tile_box.inner_size_px[1],
        len(tiles),
        extra=context.log_extra(),
    )
    return image_bytes
