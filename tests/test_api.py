import io

from fastapi.testclient import TestClient
from PIL import Image

import snapshot_api.main as main
from snapshot_api.services.errors import GeometryError, TransportError, UpstreamStatusError


def _png_bytes(size: int = 32) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (size, size), color=(10, 20, 30, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def _patch_fetch(monkeypatch, outcome):
    calls: list[dict] = []

    async def fake_fetch(center, radius_km, image_size, source, *, context=None, client=None):
        calls.append(
            {"center": center, "radius_km": radius_km, "size": image_size, "source": source}
        )
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(main, "fetch_image_from_point", fake_fetch)
    return calls


def test_image_endpoint_returns_png(monkeypatch):
    calls = _patch_fetch(monkeypatch, _png_bytes())
    client = TestClient(main.app)

    response = client.get(
        "/image", params={"lat": -31.9514, "lon": 115.8617, "radius_km": 1.0, "size": 1024}
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["x-request-id"]
    assert response.content == _png_bytes()
    assert calls[0]["size"] == 1024
    assert calls[0]["source"] == main.TileSource.OSM


def test_image_endpoint_maps_upstream_failures_to_bad_gateway(monkeypatch):
    url = "https://tile.openstreetmap.org/16/1/2.png"
    _patch_fetch(monkeypatch, UpstreamStatusError(url, 404))
    client = TestClient(main.app)

    response = client.get("/image", params={"lat": 0, "lon": 0})

    assert response.status_code == 502
    assert url in response.json()["detail"]


def test_image_endpoint_maps_transport_failures_to_bad_gateway(monkeypatch):
    _patch_fetch(monkeypatch, TransportError("https://tile.example/0/0/0.png", "timed out"))
    client = TestClient(main.app)

    response = client.get("/image", params={"lat": 0, "lon": 0})

    assert response.status_code == 502


def test_image_endpoint_maps_geometry_errors(monkeypatch):
    _patch_fetch(monkeypatch, GeometryError("Crop window falls outside the assembled canvas", origin=(-3, 4)))
    client = TestClient(main.app)

    response = client.get("/image", params={"lat": 0, "lon": -179.9999})

    assert response.status_code == 422
    assert "origin=(-3, 4)" in response.json()["detail"]


def test_image_endpoint_maps_invalid_input(monkeypatch):
    _patch_fetch(monkeypatch, ValueError("Latitude must be within -90 and 90 degrees."))
    client = TestClient(main.app)

    response = client.get("/image", params={"lat": 95, "lon": 0})

    assert response.status_code == 400


def test_image_endpoint_validates_query(monkeypatch):
    _patch_fetch(monkeypatch, _png_bytes())
    client = TestClient(main.app)

    assert client.get("/image", params={"lat": 0, "lon": 0, "size": 0}).status_code == 422
    assert client.get("/image", params={"lat": 0, "lon": 0, "source": "bing"}).status_code == 422


def test_sources_endpoint_lists_templates():
    client = TestClient(main.app)

    response = client.get("/sources")

    assert response.status_code == 200
    payload = {entry["key"]: entry for entry in response.json()}
    assert set(payload) == {"osm", "swisstopo"}
    for entry in payload.values():
        template = entry["url_template"]
        assert "{z}" in template and "{x}" in template and "{y}" in template
