from __future__ import annotations

from enum import Enum
from typing import Dict

from .geometry import TileIndex


class TileSource(str, Enum):
    """Identifiers for the supported slippy-map tile sources."""

    OSM = "osm"
    SWISSTOPO = "swisstopo"


TILE_URL_TEMPLATES: Dict[TileSource, str] = {
    TileSource.OSM: "https://tile.openstreetmap.org/{z}/{x}/{y}.png",
    TileSource.SWISSTOPO: (
        "https://wmts.geo.admin.ch/1.0.0/ch.swisstopo.landeskarte-farbe-10/default/current/3857/{z}/{x}/{y}.png"
    ),
}

SourceMetadata = Dict[str, str]

SOURCE_METADATA: Dict[TileSource, SourceMetadata] = {
    TileSource.OSM: {
        "label": "OpenStreetMap (global street map)",
        "description": "Standard OpenStreetMap raster tiles. Subject to the OSM tile usage policy.",
    },
    TileSource.SWISSTOPO: {
        "label": "swisstopo national map (Switzerland)",
        "description": "Colour national map of Switzerland from the federal geoportal; tiles outside Switzerland are blank.",
    },
}


def url_pattern(source: TileSource) -> str:
    return TILE_URL_TEMPLATES[source]


def tile_url(source: TileSource, index: TileIndex) -> str:
    return url_pattern(source).format(z=index.z, x=index.x, y=index.y)
