from __future__ import annotations

import asyncio
import logging
import os
from typing import Dict, List

import httpx

from .context import RequestContext
from .errors import ContentTypeError, TileFetchError, TransportError, UpstreamStatusError
from .geometry import TileIndex, TileRectangle
from .sources import TileSource, tile_url

logger = logging.getLogger(__name__)

TILE_IMAGE_FORMAT = "image/png"
MAX_CONCURRENT_FETCHES = 10

TILE_USER_AGENT_ENV = "TILE_USER_AGENT"
DEFAULT_USER_AGENT = "snapshot-api/0.1"
TILE_REQUEST_TIMEOUT_ENV = "TILE_REQUEST_TIMEOUT"
DEFAULT_REQUEST_TIMEOUT = 30.0

TileBatch = Dict[TileIndex, bytes]


def user_agent() -> str:
    value = os.getenv(TILE_USER_AGENT_ENV, "").strip()
    return value or DEFAULT_USER_AGENT


def request_timeout() -> httpx.Timeout:
    raw_value = os.getenv(TILE_REQUEST_TIMEOUT_ENV, "").strip()
    seconds = DEFAULT_REQUEST_TIMEOUT
    if raw_value:
        try:
            seconds = float(raw_value)
        except ValueError:
            seconds = DEFAULT_REQUEST_TIMEOUT
    if seconds <= 0:
        seconds = DEFAULT_REQUEST_TIMEOUT
    return httpx.Timeout(seconds)


async def fetch_tile(
    client: httpx.AsyncClient,
    source: TileSource,
    index: TileIndex,
    context: RequestContext,
) -> bytes:
    """Download one tile and check that the source answered with a PNG."""

    url = tile_url(source, index)
    logger.debug("[%s] fetching tile %s", context.request_id, url, extra=context.log_extra())

    try:
        response = await client.get(url, headers={"User-Agent": user_agent()})
    except httpx.RequestError as exc:
        raise TransportError(url, str(exc) or type(exc).__name__) from exc

    if response.status_code != 200:
        raise UpstreamStatusError(url, response.status_code)

    content_type = response.headers.get("Content-Type")
    if content_type != TILE_IMAGE_FORMAT:
        raise ContentTypeError(url, content_type)

    return response.content


def enumerate_tile_indices(tile_box: TileRectangle) -> List[TileIndex]:
    """Every tile index in the rectangle's inclusive span, column by column."""

    x0, x1, y0, y1 = tile_box.tile_span()
    zoom = tile_box.zoom
    return [TileIndex(x, y, zoom) for x in range(x0, x1 + 1) for y in range(y0, y1 + 1)]


async def fetch_batch(
    source: TileSource,
    tile_box: TileRectangle,
    context: RequestContext,
    *,
    client: httpx.AsyncClient | None = None,
) -> TileBatch:
    """Fetch every tile covering ``tile_box``, at most ten at a time.

    All requests are allowed to finish before the results are inspected. If any
    tile failed, the first failure in enumeration order is raised and nothing is
    returned, so callers either get the complete grid or an error.
    """

    indices = enumerate_tile_indices(tile_box)
    if client is None:
        async with httpx.AsyncClient(timeout=request_timeout()) as owned_client:
            results = await _fetch_all(owned_client, source, indices, context)
    else:
        results = await _fetch_all(client, source, indices, context)

    tiles: TileBatch = {}
    for index in indices:
        outcome = results[index]
        if isinstance(outcome, TileFetchError):
            logger.warning(
                "[%s] tile batch failed on z%s/%s/%s: %s",
                context.request_id,
                index.z,
                index.x,
                index.y,
                outcome,
                extra=context.log_extra(),
            )
            raise outcome
        tiles[index] = outcome

    logger.info(
        "[%s] fetched %d tiles from %s at zoom %d",
        context.request_id,
        len(tiles),
        source.value,
        tile_box.zoom,
        extra=context.log_extra(),
    )
    return tiles


async def _fetch_all(
    client: httpx.AsyncClient,
    source: TileSource,
    indices: List[TileIndex],
    context: RequestContext,
) -> Dict[TileIndex, bytes | TileFetchError]:
    queue: asyncio.Queue[TileIndex] = asyncio.Queue()
    for index in indices:
        queue.put_nowait(index)

    results: Dict[TileIndex, bytes | TileFetchError] = {}

    async def worker() -> None:
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                results[index] = await fetch_tile(client, source, index, context)
            except TileFetchError as exc:
                results[index] = exc

    worker_count = min(MAX_CONCURRENT_FETCHES, len(indices))
    outcomes = await asyncio.gather(
        *(worker() for _ in range(worker_count)), return_exceptions=True
    )
    # Workers only stop early on unexpected errors; surface them once all have finished.
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return results

