"""Failures raised while fetching tiles and assembling snapshots."""

from __future__ import annotations

from typing import Any

from .geometry import TileIndex


class TileImageryError(Exception):
    """Base class for every snapshot failure."""


class TileFetchError(TileImageryError):
    """A single tile could not be retrieved from its source."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class TransportError(TileFetchError):
    def __init__(self, url: str, detail: str) -> None:
        super().__init__(url, f"Failed to send request to {url}: {detail}")
        self.detail = detail


class UpstreamStatusError(TileFetchError):
    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(url, f"Request to {url} failed with status: {status_code}")
        self.status_code = status_code


class ContentTypeError(TileFetchError):
    def __init__(self, url: str, content_type: str | None) -> None:
        shown = content_type or "(missing)"
        super().__init__(url, f"Unexpected content type from {url}: {shown}")
        self.content_type = content_type


class DecodeError(TileImageryError):
    def __init__(self, index: TileIndex, detail: str) -> None:
        super().__init__(f"Unable to decode tile z{index.z}/{index.x}/{index.y}: {detail}")
        self.index = index
        self.detail = detail


class GeometryError(TileImageryError):
    """The crop window or the tile set does not fit the assembled canvas."""

    def __init__(self, message: str, **offsets: Any) -> None:
        if offsets:
            details = ", ".join(f"{key}={value}" for key, value in offsets.items())
            message = f"{message} ({details})"
        super().__init__(message)
        self.offsets = offsets


class EncodeError(TileImageryError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Unable to encode snapshot as PNG: {detail}")
        self.detail = detail
