from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles
from pathlib import Path
from typing import List, Optional
import logging

from ofertaflash import (
    CompositionRenderer, CompositionSession, ExportPipeline, AutoFitEngine, AssetLoader,
    LocalCompositionStore, GeminiContentGenerator, FormatNotFound, get_format, get_format_options,
    get_style_options, load_theme, load_products, apply_theme_preset, apply_header_template,
)
from ofertaflash.ai_content import ContentTask, parse_products_from_text
from ofertaflash.api_models import (
    ApplyPresetRequest, CompositionRequest, MigrateRequest, MigrateResponse, BatchExportRequest, SaveAllRequest,
    SaveAllResponse, SavedArtifactResponse, ArtifactFailureResponse, RenderResponse,
    RenderNodeResponse, FormatResponse, PresetsResponse, TextGenerateRequest, TextGenerateResponse,
)
from ofertaflash.config import get_settings
from ofertaflash.exporter import CaptureFailure, ExportCancelled, ExportInProgress, ExportResult
from ofertaflash.storage import CompositionNotFound, StoreError
from ofertaflash.fonts import FontResolver
from ofertaflash.text import TextMeasurer
from ofertaflash.tree import Group, Row, Text

settings = get_settings()

# Logging setup
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="OfertaFlash Composer", version="1.0.0")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
measurer = TextMeasurer(FontResolver(settings.font_dir))
renderer = CompositionRenderer(preview_width=settings.preview_width, measurer=measurer)
autofit = AutoFitEngine(measurer, settings.autofit_config())
pipeline = ExportPipeline(
    renderer=renderer,
    autofit=autofit,
    assets=AssetLoader(
        assets_root=settings.assets_dir,
        allowed_hosts=settings.allowed_hosts,
        allow_private_hosts=settings.asset_allow_private_hosts,
        cache_size=settings.asset_cache_size,
    ),
    settle_ms=settings.export_settle_ms,
    upload_retries=settings.upload_retries,
)
store = LocalCompositionStore(settings.storage_dir, settings.public_base_url, settings.user_id)
content_generator = GeminiContentGenerator(api_keys=settings.api_keys, models=[settings.gemini_model])
session = CompositionSession()

files_dir = Path(settings.storage_dir) / "files"
files_dir.mkdir(parents=True, exist_ok=True)
app.mount("/files", StaticFiles(directory=str(files_dir)), name="files")


def _load_into_session(request: CompositionRequest) -> None:
    """Replace the live session state with the request payload."""
    if session.busy:
        raise ExportInProgress("An export is already in progress for this session")
    theme = load_theme(request.theme)
    if request.format_id:
        get_format(request.format_id)
        theme = theme.model_copy(update={"format_id": request.format_id})
    session.update(theme=theme, products=load_products(request.products))


def _file_response(result: ExportResult) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="{result.filename}"'}
    return Response(content=result.content, media_type=result.media_type, headers=headers)


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, (FormatNotFound, CompositionNotFound)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ExportInProgress):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ExportCancelled):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, CaptureFailure):
        return HTTPException(status_code=500, detail=f"{e} - please try again")
    if isinstance(e, StoreError):
        logger.error(f"Composition store error: {e}")
        return HTTPException(status_code=503, detail=f"Composition store unavailable: {e}")
    return HTTPException(status_code=500, detail=str(e))


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "ofertaflash"}


@app.get("/")
async def root():
    return {
        "service": "OfertaFlash Composer",
        "version": "1.0.0",
        "description": "Multi-format promotional poster composition and export",
        "endpoints": [
            "/formats", "/presets", "/presets/apply", "/migrate", "/render", "/export", "/export/batch",
            "/compositions", "/compositions/save-all", "/ai/text", "/health",
        ],
        "config": {
            "preview_width": settings.preview_width,
            "export_settle_ms": settings.export_settle_ms,
        },
    }


@app.get("/formats", response_model=List[FormatResponse])
async def list_formats():
    return get_format_options()


@app.get("/formats/{format_id}", response_model=FormatResponse)
async def get_format_detail(format_id: str):
    try:
        fmt = get_format(format_id)
    except FormatNotFound as e:
        raise _http_error(e)
    return next(option for option in get_format_options() if option["id"] == fmt.id)


@app.get("/presets", response_model=PresetsResponse)
async def get_presets():
    return PresetsResponse(formats=get_format_options(), **get_style_options())


@app.post("/presets/apply")
async def apply_presets(request: ApplyPresetRequest):
    """Return the theme with a palette preset and/or header template applied."""
    theme = load_theme(request.theme)
    try:
        if request.theme_preset:
            theme = apply_theme_preset(theme, request.theme_preset)
        if request.header_template:
            theme = apply_header_template(theme, request.header_template)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return theme.to_record()


@app.post("/migrate", response_model=MigrateResponse)
async def migrate_records(request: MigrateRequest):
    """Upgrade persisted theme/product records to the per-format layout shape."""
    theme = load_theme(request.theme).to_record() if request.theme is not None else None
    products = (
        [product.to_record() for product in load_products(request.products)]
        if request.products is not None else None
    )
    return MigrateResponse(theme=theme, products=products)


@app.post("/render", response_model=RenderResponse)
async def render_composition(request: CompositionRequest):
    """Render a composition and describe its tree (no pixels)."""
    try:
        theme = load_theme(request.theme)
        products = load_products(request.products)
        tree = renderer.render(theme, products, request.format_id)
        report = autofit.run(tree)
    except FormatNotFound as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Render error: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Render failed: {str(e)}")

    def describe(node) -> RenderNodeResponse:
        text = None
        if isinstance(node, Text):
            text = node.text
        elif isinstance(node, Row):
            text = "".join(span.text for span in node.spans)
        return RenderNodeResponse(name=node.name, kind=type(node).__name__, text=text)

    layers = {}
    for layer in tree.layers:
        nodes = []
        stack = list(reversed(layer.nodes))
        while stack:
            node = stack.pop()
            nodes.append(describe(node))
            if isinstance(node, Group):
                stack.extend(reversed(node.children))
        layers[layer.name] = nodes

    return RenderResponse(
        format_id=tree.format_id,
        width=tree.width,
        height=tree.height,
        mode=tree.mode.value,
        layers=layers,
        asset_sources=tree.asset_sources(),
        autofit_adjusted=len(report.adjusted),
        autofit_failures=[str(failure) for failure in report.failures],
    )


@app.post("/export")
async def export_image(request: CompositionRequest):
    """Export the composition as a PNG at the format's exact pixel size."""
    try:
        _load_into_session(request)
        logger.info(f"Exporting {session.format_id} with {len(session.products)} products")
        result = await pipeline.export_one(session, request.format_id)
    except (FormatNotFound, ExportInProgress, CaptureFailure) as e:
        raise _http_error(e)
    return _file_response(result)


@app.post("/export/batch")
async def export_batch(request: BatchExportRequest):
    """Export one slide per product into a ZIP archive."""
    try:
        _load_into_session(request)
        logger.info(f"Batch export of {len(session.products)} products, formats={request.formats}")
        result = await pipeline.export_batch(session, formats=request.formats, prefix=request.prefix)
    except (FormatNotFound, ExportInProgress, ExportCancelled, CaptureFailure) as e:
        raise _http_error(e)
    return _file_response(result)


@app.post("/compositions/save-all", response_model=SaveAllResponse)
async def save_all(request: SaveAllRequest):
    """Capture, upload and record one image per format."""
    try:
        _load_into_session(request)
        report = await pipeline.save_all(session, store, format_ids=request.formats)
    except (FormatNotFound, ExportInProgress, ExportCancelled) as e:
        raise _http_error(e)

    if not report.failures:
        status = "complete"
    elif report.saved:
        status = "partial"
    else:
        status = "failed"
    return SaveAllResponse(
        status=status,
        summary=report.summary,
        saved=[SavedArtifactResponse(**vars(item)) for item in report.saved],
        failures=[ArtifactFailureResponse(**vars(item)) for item in report.failures],
    )


@app.get("/compositions")
async def list_compositions(user_id: Optional[str] = None):
    try:
        compositions = await store.list_by_user(user_id)
    except StoreError as e:
        raise _http_error(e)
    return [composition.to_record() for composition in compositions]


@app.delete("/compositions/{composition_id}")
async def delete_composition(composition_id: str):
    try:
        await store.delete(composition_id)
    except (CompositionNotFound, StoreError) as e:
        raise _http_error(e)
    return {"status": "deleted", "id": composition_id}


@app.post("/compositions/{composition_id}/restore")
async def restore_composition(composition_id: str):
    """Return the (migrated) theme a saved composition was exported with."""
    try:
        composition = await store.get(composition_id)
    except (CompositionNotFound, StoreError) as e:
        raise _http_error(e)
    theme = load_theme(composition.theme.to_record())
    return {"id": composition.id, "formatName": composition.format_name, "theme": theme.to_record()}


@app.post("/ai/text", response_model=TextGenerateResponse)
async def generate_text(request: TextGenerateRequest):
    try:
        task = ContentTask(request.task)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown task: {request.task}")

    if task == ContentTask.PARSE_PRODUCTS:
        products = await parse_products_from_text(content_generator, request.text or "")
        return TextGenerateResponse(task=task.value, products=[p.to_record() for p in products])

    text = await content_generator.generate_text(task, {"topic": request.topic or "ofertas da semana"})
    return TextGenerateResponse(task=task.value, text=text)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
