"""
ExportPipeline - capture → rescale → encode.

Handles:
1. Single image export at a format's exact pixel size
2. Batched multi-slide export into one ZIP archive
3. "Save all": one image per format, uploaded and recorded

Batch and save-all mutate the session while they run. They hold the
session's exclusive() section and always restore the pre-export state.
"""

import asyncio
import io
import logging
import re
import time
import unicodedata
import zipfile
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from PIL import Image

from .assets import AssetLoader
from .autofit import AutoFitEngine
from .models import Product, Theme
from .presets import SOCIAL_MEDIA_FORMAT_IDS, Format, FormatNotFound, get_format
from .rasterizer import Rasterizer, encode_png
from .renderer import CompositionRenderer
from .session import CompositionSession, ExportInProgress
from .storage import CompositionStore, UploadedAsset, UploadFailure

logger = logging.getLogger(__name__)

__all__ = [
    "ExportPipeline", "ExportResult", "SaveAllReport", "CancellationToken",
    "ExportError", "CaptureFailure", "ExportCancelled", "ExportInProgress", "slugify",
]


class ExportError(Exception):
    """Base class for export failures."""


class CaptureFailure(ExportError):
    """Rendering or encoding a frame failed; retrying may succeed."""


class ExportCancelled(ExportError):
    """The export was cancelled; the session has been restored."""


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ExportCancelled("Export cancelled")


def slugify(text: str, fallback: str = "produto") -> str:
    """
    Filename-safe slug.

    Examples:
        >>> slugify("Café Tradicional 500g")
        'cafe-tradicional-500g'
    """
    normalized = unicodedata.normalize("NFKD", text or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text).strip("-")
    return slug or fallback


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ExportResult:
    filename: str
    content: bytes
    media_type: str
    format_ids: List[str] = field(default_factory=list)
    entries: List[str] = field(default_factory=list)


@dataclass
class SavedArtifact:
    format_id: str
    composition_id: str
    image_url: str


@dataclass
class ArtifactFailure:
    format_id: str
    error: str


@dataclass
class SaveAllReport:
    saved: List[SavedArtifact] = field(default_factory=list)
    failures: List[ArtifactFailure] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return f"{len(self.saved)} succeeded, {len(self.failures)} failed"


class ExportPipeline:
    """
    Produces exact-pixel PNGs from a composition session.

    Example:
        pipeline = ExportPipeline()
        result = await pipeline.export_one(session, "a4")
    """

    def __init__(
        self,
        renderer: Optional[CompositionRenderer] = None,
        autofit: Optional[AutoFitEngine] = None,
        assets: Optional[AssetLoader] = None,
        settle_ms: int = 50,
        upload_retries: int = 1,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.renderer = renderer or CompositionRenderer()
        self.autofit = autofit or AutoFitEngine(self.renderer.measurer)
        self.assets = assets or AssetLoader()
        self.settle_ms = settle_ms
        self.upload_retries = upload_retries
        self.clock = clock or _now_ms

    async def _settle(self) -> None:
        await asyncio.sleep(self.settle_ms / 1000)

    def _rasterize(self, tree, fmt: Format, images) -> bytes:
        rasterizer = Rasterizer(self.renderer.measurer, images)
        image: Image.Image = rasterizer.rasterize(tree, fmt.size)
        return encode_png(image)

    async def capture(self, theme: Theme, products: Sequence[Product], format_id: str) -> bytes:
        """
        Render, fit, fetch assets and rasterize at the format's pixel size.

        Raises:
            FormatNotFound: if the format id is not registered
            CaptureFailure: if rendering or encoding failed or produced nothing
        """
        fmt = get_format(format_id)
        try:
            tree = self.renderer.render(theme, products, fmt.id)
            report = self.autofit.run(tree)
            images = await self.assets.fetch_all(tree.asset_sources())
            data = await asyncio.to_thread(self._rasterize, tree, fmt, images)
        except Exception as e:
            logger.error(f"Capture of {fmt.id} failed: {e}")
            raise CaptureFailure(f"Capture of {fmt.name} failed: {e}") from e
        if not data:
            raise CaptureFailure(f"Capture of {fmt.name} produced no data")
        logger.info(
            f"Captured {fmt.id} at {fmt.width}x{fmt.height} ({len(data)} bytes, "
            f"auto-fit {'ok' if report.converged else f'{len(report.failures)} overflow(s)'})"
        )
        return data

    async def export_one(self, session: CompositionSession, target_format: Optional[str] = None) -> ExportResult:
        """
        Export the current composition as a single PNG.

        Raises:
            ExportInProgress: if the session is already exporting
            CaptureFailure: if the capture failed
        """
        async with session.exclusive():
            snapshot = session.snapshot()
            fmt = get_format(target_format or snapshot.theme.format_id)
            data = await self.capture(snapshot.theme, snapshot.products, fmt.id)
        filename = f"oferta-{slugify(fmt.name, 'cartaz')}-{self.clock()}.png"
        return ExportResult(filename=filename, content=data, media_type="image/png", format_ids=[fmt.id])

    async def export_batch(
        self,
        session: CompositionSession,
        formats: Optional[Sequence[str]] = None,
        products: Optional[Sequence[Product]] = None,
        prefix: str = "ofertas",
        cancel: Optional[CancellationToken] = None,
    ) -> ExportResult:
        """
        Export one slide per product (and per format) into a ZIP archive.

        Each step switches the session to a single product and a format,
        waits the settle delay, snapshots and captures. The session is
        restored afterwards, whether the batch completed or not.

        Raises:
            ExportInProgress: if the session is already exporting
            CaptureFailure: aborts the whole batch
            ExportCancelled: if the token was cancelled
        """
        async with session.exclusive():
            original = session.snapshot()
            batch_products = list(products) if products is not None else original.products
            format_ids = [get_format(fid).id for fid in (formats or [original.theme.format_id])]
            multi_format = len(format_ids) > 1
            entries: List[str] = []
            buffer = io.BytesIO()
            try:
                with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
                    for index, product in enumerate(batch_products, start=1):
                        for format_id in format_ids:
                            if cancel is not None:
                                cancel.raise_if_cancelled()
                            session.update(products=[product])
                            session.set_format(format_id)
                            await self._settle()
                            snapshot = session.snapshot()
                            data = await self.capture(snapshot.theme, snapshot.products, format_id)
                            name = f"slide-{index:02d}-{slugify(product.name)}"
                            if multi_format:
                                name = f"{name}-{format_id}"
                            archive.writestr(f"{name}.png", data)
                            entries.append(f"{name}.png")
                            logger.info(f"Batch step {index}/{len(batch_products)} ({format_id}) done")
            finally:
                session.restore(original)

        return ExportResult(
            filename=f"{prefix}-{self.clock()}.zip",
            content=buffer.getvalue(),
            media_type="application/zip",
            format_ids=format_ids,
            entries=entries,
        )

    async def _upload(self, store: CompositionStore, data: bytes, filename: str) -> UploadedAsset:
        attempts = max(1, self.upload_retries + 1)
        for attempt in range(1, attempts + 1):
            try:
                return await store.upload(data, filename)
            except UploadFailure as e:
                if attempt == attempts:
                    raise
                logger.warning(f"Upload of {filename} failed (attempt {attempt}/{attempts}): {e}")
        raise UploadFailure(f"Upload of {filename} failed")

    async def save_all(
        self,
        session: CompositionSession,
        store: CompositionStore,
        format_ids: Optional[Sequence[str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> SaveAllReport:
        """
        Capture, upload and record one image per format.

        Defaults to the social formats plus the active one. Failures are
        collected per artifact instead of aborting the run.

        Raises:
            ExportInProgress: if the session is already exporting
            ExportCancelled: if the token was cancelled
        """
        report = SaveAllReport()
        async with session.exclusive():
            original = session.snapshot()
            if format_ids is None:
                format_ids = list(SOCIAL_MEDIA_FORMAT_IDS) + [original.theme.format_id]
            targets = list(dict.fromkeys(format_ids))
            try:
                for format_id in targets:
                    if cancel is not None:
                        cancel.raise_if_cancelled()
                    try:
                        fmt = get_format(format_id)
                        session.set_format(fmt.id)
                        await self._settle()
                        snapshot = session.snapshot()
                        data = await self.capture(snapshot.theme, snapshot.products, fmt.id)
                        timestamp = self.clock()
                        asset = await self._upload(store, data, f"oferta-{slugify(fmt.name, 'cartaz')}-{timestamp}.png")
                        composition_id = await store.persist_record(asset, fmt.name, snapshot.theme, timestamp)
                    except (CaptureFailure, UploadFailure, FormatNotFound) as e:
                        logger.error(f"Save of {format_id} failed: {e}")
                        report.failures.append(ArtifactFailure(format_id=format_id, error=str(e)))
                        continue
                    report.saved.append(SavedArtifact(fmt.id, composition_id, asset.public_url))
            finally:
                session.restore(original)

        logger.info(f"Save all: {report.summary}")
        return report
