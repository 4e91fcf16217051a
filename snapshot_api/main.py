from __future__ import annotations

import asyncio
import logging
from typing import List

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from .services.context import RequestContext
from .services.errors import (
    ContentTypeError,
    DecodeError,
    GeometryError,
    TileImageryError,
    TransportError,
    UpstreamStatusError,
)
from .services.geometry import GeoPoint
from .services.imagery import MAX_IMAGE_PIXELS, fetch_image_from_point
from .services.sources import SOURCE_METADATA, TileSource, url_pattern

app = FastAPI(title="Map Snapshot API", version="0.1.0")

DEFAULT_RADIUS_KM = 1.0
DEFAULT_IMAGE_SIZE = 1024
DEFAULT_TILE_SOURCE = TileSource.OSM

logger = logging.getLogger(__name__)


class SourceOption(BaseModel):
    key: str
    label: str
    description: str
    url_template: str


SOURCE_OPTIONS = [
    SourceOption(
        key=key.value,
        label=metadata["label"],
        description=metadata["description"],
        url_template=url_pattern(key),
    )
    for key, metadata in SOURCE_METADATA.items()
]


def _status_for_error(exc: TileImageryError) -> int:
    if isinstance(exc, GeometryError):
        return 422
    if isinstance(exc, (TransportError, UpstreamStatusError, ContentTypeError, DecodeError)):
        return 502
    return 500


@app.get("/image")
async def get_image(
    lat: float = Query(..., description="Latitude of the snapshot centre in degrees"),
    lon: float = Query(..., description="Longitude of the snapshot centre in degrees"),
    radius_km: float = Query(DEFAULT_RADIUS_KM, gt=0),
    size: int = Query(DEFAULT_IMAGE_SIZE, gt=0, le=MAX_IMAGE_PIXELS),
    source: TileSource = Query(DEFAULT_TILE_SOURCE),
):
    context = RequestContext(source=source.value)
    try:
        image_bytes = await fetch_image_from_point(
            GeoPoint(lat=lat, lon=lon),
            radius_km,
            size,
            source,
            context=context,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except asyncio.TimeoutError as exc:
        logger.warning("[%s] tile batch timed out", context.request_id, extra=context.log_extra())
        raise HTTPException(status_code=504, detail="Timed out fetching map tiles") from exc
    except TileImageryError as exc:
        status_code = _status_for_error(exc)
        if status_code == 500:
            logger.exception("[%s] snapshot failed: %s", context.request_id, exc)
        else:
            logger.warning(
                "[%s] snapshot failed: %s", context.request_id, exc, extra=context.log_extra()
            )
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc

    return Response(
        content=image_bytes,
        media_type="image/png",
        headers={"X-Request-ID": context.request_id},
    )


@app.get("/sources", response_model=List[SourceOption])
def get_sources() -> List[SourceOption]:
    return SOURCE_OPTIONS

