"""
Service configuration, read from the environment and an optional .env file.

Every variable is prefixed with OFERTAFLASH_, e.g. OFERTAFLASH_PREVIEW_WIDTH.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .autofit import (
    FONT_FLOOR, FONT_STEP, FOOTER_WIDTH_MARGIN, MIN_BLOCK_SCALE,
    PRICE_WIDTH_MARGIN, TITLE_WIDTH_MARGIN, AutoFitConfig,
)
from .renderer import DEFAULT_PREVIEW_WIDTH


class Settings(BaseSettings):
    # Rendering
    preview_width: int = DEFAULT_PREVIEW_WIDTH
    font_dir: Optional[str] = None
    export_settle_ms: int = 50

    # Auto-fit
    autofit_font_step: float = FONT_STEP
    autofit_font_floor: float = FONT_FLOOR
    autofit_footer_width_margin: float = FOOTER_WIDTH_MARGIN
    autofit_price_width_margin: float = PRICE_WIDTH_MARGIN
    autofit_title_width_margin: float = TITLE_WIDTH_MARGIN
    autofit_min_block_scale: float = MIN_BLOCK_SCALE
    autofit_strict: bool = False

    # Storage
    storage_dir: str = "/tmp/ofertaflash"
    public_base_url: str = "/files"
    user_id: str = "local"
    upload_retries: int = 1

    # Assets
    assets_dir: Optional[str] = None  # Local image sources must live here
    asset_allowed_hosts: Optional[str] = None  # Comma-separated; empty allows any public host
    asset_allow_private_hosts: bool = False
    asset_cache_size: int = 64

    # AI
    gemini_api_keys: Optional[str] = None  # Comma-separated API keys
    gemini_model: str = "gemini-2.0-flash"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="OFERTAFLASH_", extra="ignore")

    @property
    def api_keys(self) -> List[str]:
        return [key.strip() for key in (self.gemini_api_keys or "").split(",") if key.strip()]

    @property
    def allowed_hosts(self) -> List[str]:
        return [host.strip() for host in (self.asset_allowed_hosts or "").split(",") if host.strip()]

    def autofit_config(self) -> AutoFitConfig:
        return AutoFitConfig(
            font_step=self.autofit_font_step,
            font_floor=self.autofit_font_floor,
            footer_width_margin=self.autofit_footer_width_margin,
            price_width_margin=self.autofit_price_width_margin,
            title_width_margin=self.autofit_title_width_margin,
            min_block_scale=self.autofit_min_block_scale,
            strict=self.autofit_strict,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
