"""
Asset loading for product images, logos and header/background images.

Sources may be http(s) URLs, data URIs or local file paths. A source that
cannot be loaded is logged and left out of the result; the rasterizer draws
a placeholder in its place.

Sources come from request payloads, so they are restricted:
- local paths must resolve inside `assets_root` (no root, no local files);
- URLs must use a public host, or one of `allowed_hosts` when that list is
  set. Redirects are followed by hand so every hop is checked.
"""

import asyncio
import base64
import io
import ipaddress
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

import httpx
from PIL import Image

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15.0
MAX_REDIRECTS = 3
CACHE_SIZE = 64


class AssetRefused(ValueError):
    """The source is outside what the loader is allowed to read."""


def _is_private_host(host: str) -> bool:
    host = host.strip("[]").lower()
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return (
        address.is_private or address.is_loopback or address.is_link_local
        or address.is_reserved or address.is_multicast or address.is_unspecified
    )


class AssetLoader:
    """Fetches and decodes images, keeping the most recent ones in an LRU cache."""

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        assets_root: Optional[str] = None,
        allowed_hosts: Optional[Sequence[str]] = None,
        allow_private_hosts: bool = False,
        cache_size: int = CACHE_SIZE,
    ):
        self.timeout = timeout
        self.transport = transport
        self.assets_root = Path(assets_root).resolve() if assets_root else None
        self.allowed_hosts = {host.lower() for host in allowed_hosts} if allowed_hosts else None
        self.allow_private_hosts = allow_private_hosts
        self.cache_size = cache_size
        self._cache: "OrderedDict[str, Image.Image]" = OrderedDict()

    def check_url(self, url: httpx.URL) -> None:
        """
        Raises:
            AssetRefused: if the URL's host may not be fetched
        """
        host = url.host.lower()
        if self.allowed_hosts is not None:
            if host not in self.allowed_hosts:
                raise AssetRefused(f"Host {host!r} is not in the allowed hosts")
            return
        if not self.allow_private_hosts and _is_private_host(host):
            raise AssetRefused(f"Host {host!r} is not public")

    def local_path(self, src: str) -> Path:
        """
        Resolve a local source inside the assets root.

        Raises:
            AssetRefused: if there is no root or the path escapes it
        """
        if self.assets_root is None:
            raise AssetRefused("Local file sources are disabled")
        path = (self.assets_root / src).resolve()
        if not path.is_relative_to(self.assets_root):
            raise AssetRefused(f"{src!r} is outside the assets directory")
        return path

    async def _fetch(self, src: str, client: httpx.AsyncClient) -> bytes:
        url = httpx.URL(src)
        for _ in range(MAX_REDIRECTS + 1):
            self.check_url(url)
            response = await client.get(url)
            if not response.is_redirect:
                response.raise_for_status()
                return response.content
            url = response.next_request.url
        raise AssetRefused(f"Too many redirects for {src[:70]!r}")

    async def _read_bytes(self, src: str, client: httpx.AsyncClient) -> bytes:
        if src.startswith(("http://", "https://")):
            return await self._fetch(src, client)
        if src.startswith("data:"):
            _, encoded = src.split(",", 1)
            return base64.b64decode(encoded)
        return await asyncio.to_thread(self.local_path(src).read_bytes)

    def _remember(self, src: str, image: Image.Image) -> None:
        self._cache[src] = image
        self._cache.move_to_end(src)
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

    async def load(self, src: str, client: httpx.AsyncClient) -> Optional[Image.Image]:
        """Load one image, or None if it is refused or cannot be fetched or decoded."""
        cached = self._cache.get(src)
        if cached is not None:
            self._cache.move_to_end(src)
            return cached
        try:
            data = await self._read_bytes(src, client)
            image = Image.open(io.BytesIO(data))
            image.load()
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as e:
            logger.warning(f"Failed to load image from '{src[:70]}': {type(e).__name__}: {e}")
            return None
        image = image.convert("RGBA")
        self._remember(src, image)
        return image

    async def fetch_all(self, sources: Iterable[str]) -> Dict[str, Image.Image]:
        """
        Load every source concurrently.

        Returns:
            Mapping of source to decoded RGBA image, without failed sources
        """
        sources = list(dict.fromkeys(sources))
        if not sources:
            return {}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            images = await asyncio.gather(*(self.load(src, client) for src in sources))
        return {src: image for src, image in zip(sources, images) if image is not None}

    def clear(self) -> None:
        self._cache.clear()
