"""
API models for FastAPI endpoints.

Theme and product payloads are accepted as raw persisted records (camelCase
JSON) and run through the migration guard, so older saved data can be sent
as-is.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CompositionRequest(BaseModel):
    """Theme and products to compose."""
    theme: Dict[str, Any] = Field(default_factory=dict)
    products: List[Any] = Field(default_factory=list)
    format_id: Optional[str] = None  # story, feed, a4, poster, tv


class MigrateRequest(BaseModel):
    theme: Optional[Dict[str, Any]] = None
    products: Optional[List[Any]] = None


class MigrateResponse(BaseModel):
    theme: Optional[Dict[str, Any]] = None
    products: Optional[List[Dict[str, Any]]] = None


class BatchExportRequest(CompositionRequest):
    formats: Optional[List[str]] = None
    prefix: str = "ofertas"


class SaveAllRequest(CompositionRequest):
    formats: Optional[List[str]] = None


class SavedArtifactResponse(BaseModel):
    format_id: str
    composition_id: str
    image_url: str


class ArtifactFailureResponse(BaseModel):
    format_id: str
    error: str


class SaveAllResponse(BaseModel):
    status: str  # complete, partial, failed
    summary: str
    saved: List[SavedArtifactResponse]
    failures: List[ArtifactFailureResponse]


class RenderNodeResponse(BaseModel):
    name: str
    kind: str
    text: Optional[str] = None


class RenderResponse(BaseModel):
    """Structure of a rendered composition (no pixels)."""
    format_id: str
    width: float
    height: float
    mode: str
    layers: Dict[str, List[RenderNodeResponse]]
    asset_sources: List[str]
    autofit_adjusted: int
    autofit_failures: List[str]


class FormatResponse(BaseModel):
    id: str
    name: str
    dimensions: str
    aspect_ratio: str
    label: str
    icon: str


class PresetsResponse(BaseModel):
    """Response with available visual presets."""
    formats: List[dict]
    themes: List[dict]
    header_templates: List[dict]
    fonts: List[dict]
    frames: List[dict]
    header_arts: List[dict]


class TextGenerateRequest(BaseModel):
    task: str = "marketing_copy"  # marketing_copy, parse_products
    topic: Optional[str] = None
    text: Optional[str] = None


class TextGenerateResponse(BaseModel):
    task: str
    text: Optional[str] = None
    products: Optional[List[Dict[str, Any]]] = None


class ApplyPresetRequest(BaseModel):
    """Apply a palette preset and/or a header template to a theme."""
    theme: Dict[str, Any] = Field(default_factory=dict)
    theme_preset: Optional[str] = None
    header_template: Optional[str] = None
