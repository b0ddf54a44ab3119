from ofertaflash.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.preview_width == 540
    assert settings.api_keys == []
    assert settings.assets_dir is None
    assert settings.allowed_hosts == []
    assert settings.asset_cache_size == 64
    config = settings.autofit_config()
    assert config.font_step == 0.05
    assert config.price_width_margin == 0.95


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("OFERTAFLASH_PREVIEW_WIDTH", "500")
    monkeypatch.setenv("OFERTAFLASH_GEMINI_API_KEYS", "key-a, key-b,")
    monkeypatch.setenv("OFERTAFLASH_AUTOFIT_STRICT", "true")

    settings = Settings(_env_file=None)

    assert settings.preview_width == 500
    assert settings.api_keys == ["key-a", "key-b"]
    assert settings.autofit_config().strict


def test_asset_allowed_hosts(monkeypatch):
    monkeypatch.setenv("OFERTAFLASH_ASSET_ALLOWED_HOSTS", "cdn.loja.com.br, images.test")
    assert Settings(_env_file=None).allowed_hosts == ["cdn.loja.com.br", "images.test"]
