import base64
import io

import httpx
import pytest
from PIL import Image, ImageChops

from ofertaflash.assets import AssetLoader
from ofertaflash.geometry import Box
from ofertaflash.rasterizer import Rasterizer
from ofertaflash.tree import BodyMode, Layer, Picture, RenderTree


def png_bytes(color=(255, 0, 0, 255), size=(8, 6)):
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def transport():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        if request.url.path == "/ok.png":
            return httpx.Response(200, content=png_bytes())
        if request.url.path == "/broken.png":
            return httpx.Response(200, content=b"not an image")
        return httpx.Response(404)

    mock = httpx.MockTransport(handler)
    mock.requests = requests
    return mock


@pytest.mark.asyncio
async def test_fetch_all_skips_failures(transport):
    loader = AssetLoader(transport=transport)
    images = await loader.fetch_all([
        "https://img.test/ok.png", "https://img.test/missing.png", "https://img.test/broken.png",
    ])
    assert list(images) == ["https://img.test/ok.png"]
    assert images["https://img.test/ok.png"].size == (8, 6)
    assert images["https://img.test/ok.png"].mode == "RGBA"


@pytest.mark.asyncio
async def test_results_are_cached(transport):
    loader = AssetLoader(transport=transport)
    await loader.fetch_all(["https://img.test/ok.png"])
    await loader.fetch_all(["https://img.test/ok.png", "https://img.test/ok.png"])
    assert transport.requests == ["https://img.test/ok.png"]

    loader.clear()
    await loader.fetch_all(["https://img.test/ok.png"])
    assert len(transport.requests) == 2


@pytest.mark.asyncio
async def test_data_uri_and_file_sources(tmp_path):
    data_uri = "data:image/png;base64," + base64.b64encode(png_bytes(size=(3, 3))).decode("ascii")
    path = tmp_path / "logo.png"
    path.write_bytes(png_bytes(size=(5, 5)))

    images = await AssetLoader(assets_root=str(tmp_path)).fetch_all([data_uri, str(path), str(tmp_path / "nope.png")])

    assert images[data_uri].size == (3, 3)
    assert images[str(path)].size == (5, 5)
    assert str(tmp_path / "nope.png") not in images


@pytest.mark.asyncio
async def test_no_sources():
    assert await AssetLoader().fetch_all([]) == {}


@pytest.mark.asyncio
async def test_local_files_need_an_assets_root(tmp_path):
    secret = tmp_path / "secret.png"
    secret.write_bytes(png_bytes())
    assert await AssetLoader().fetch_all([str(secret)]) == {}


@pytest.mark.asyncio
async def test_paths_outside_the_assets_root_are_refused(tmp_path):
    root = tmp_path / "assets"
    root.mkdir()
    (root / "logo.png").write_bytes(png_bytes(size=(4, 4)))
    secret = tmp_path / "secret.png"
    secret.write_bytes(png_bytes())

    loader = AssetLoader(assets_root=str(root))
    images = await loader.fetch_all([str(secret), "../secret.png", "logo.png"])

    assert list(images) == ["logo.png"]


@pytest.mark.asyncio
async def test_refused_source_is_drawn_as_placeholder(tmp_path):
    secret = tmp_path / "secret.png"
    secret.write_bytes(png_bytes(color=(0, 0, 255, 255), size=(50, 50)))
    tree = RenderTree("feed", 50, 50, BodyMode.EMPTY, [
        Layer("body", [Picture(str(secret), Box(0, 0, 50, 50), fit="cover")]),
    ])

    images = await AssetLoader(assets_root=str(tmp_path / "assets")).fetch_all(tree.asset_sources())
    drawn = Rasterizer(assets=images).rasterize(tree, (50, 50))
    placeholder = Rasterizer(assets={}).rasterize(tree, (50, 50))

    assert images == {}
    assert ImageChops.difference(drawn, placeholder).getbbox() is None
    assert drawn.getpixel((25, 25)) != (0, 0, 255, 255)


@pytest.mark.asyncio
async def test_private_hosts_are_refused(transport):
    loader = AssetLoader(transport=transport)
    images = await loader.fetch_all([
        "http://127.0.0.1/ok.png", "http://localhost/ok.png", "http://10.0.0.5/ok.png",
        "http://169.254.169.254/ok.png", "http://[::1]/ok.png",
    ])
    assert images == {}
    assert transport.requests == []


@pytest.mark.asyncio
async def test_allowed_hosts(transport):
    loader = AssetLoader(transport=transport, allowed_hosts=["cdn.test"])
    images = await loader.fetch_all(["https://cdn.test/ok.png", "https://img.test/ok.png"])
    assert list(images) == ["https://cdn.test/ok.png"]
    assert transport.requests == ["https://cdn.test/ok.png"]


@pytest.mark.asyncio
async def test_redirects_are_checked_every_hop():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        if request.url.path == "/to-internal.png":
            return httpx.Response(302, headers={"Location": "http://127.0.0.1/ok.png"})
        if request.url.path == "/moved.png":
            return httpx.Response(301, headers={"Location": "https://img.test/ok.png"})
        return httpx.Response(200, content=png_bytes())

    loader = AssetLoader(transport=httpx.MockTransport(handler))
    images = await loader.fetch_all(["https://img.test/to-internal.png", "https://img.test/moved.png"])

    assert list(images) == ["https://img.test/moved.png"]
    assert "http://127.0.0.1/ok.png" not in requests


@pytest.mark.asyncio
async def test_cache_keeps_most_recent_images(transport):
    loader = AssetLoader(transport=transport, cache_size=2)
    await loader.fetch_all(["https://img.test/ok.png?a"])
    await loader.fetch_all(["https://img.test/ok.png?b"])
    await loader.fetch_all(["https://img.test/ok.png?a"])
    await loader.fetch_all(["https://img.test/ok.png?c"])

    assert list(loader._cache) == ["https://img.test/ok.png?a", "https://img.test/ok.png?c"]
    assert len(transport.requests) == 3
