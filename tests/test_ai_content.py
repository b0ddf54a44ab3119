import pytest

from ofertaflash.ai_content import (
    ContentGenerator, ContentTask, GeminiContentGenerator, build_prompt, parse_products_from_text,
)
from ofertaflash.presets import known_format_ids


class CannedGenerator(ContentGenerator):
    def __init__(self, reply):
        self.reply = reply

    @property
    def name(self) -> str:
        return "canned"

    def is_available(self) -> bool:
        return True

    async def generate_text(self, task, payload):
        return self.reply

    async def generate_image(self, prompt):
        return None


def test_prompts_mention_their_input():
    assert "hortifruti" in build_prompt(ContentTask.MARKETING_COPY, {"topic": "hortifruti"})
    assert "Feijão 1kg" in build_prompt(ContentTask.PARSE_PRODUCTS, {"text": "Feijão 1kg 8,90"})


@pytest.mark.asyncio
async def test_gemini_without_keys_uses_fallbacks():
    generator = GeminiContentGenerator(api_keys=[])
    assert not generator.is_available()
    assert await generator.generate_text(ContentTask.MARKETING_COPY, {}) == "Super Ofertas"
    assert await generator.generate_text(ContentTask.PARSE_PRODUCTS, {}) == "[]"
    assert await generator.generate_image("frutas") is None


@pytest.mark.asyncio
async def test_gemini_failure_falls_back(monkeypatch):
    generator = GeminiContentGenerator(api_keys=["key-123456"], models=["model-a", "model-b"])

    def fail(api_key, model_name):
        raise RuntimeError(f"{model_name} unavailable")

    monkeypatch.setattr(generator, "_get_model_with_key", fail)
    assert await generator.generate_text(ContentTask.MARKETING_COPY, {"topic": "carnes"}) == "Super Ofertas"


@pytest.mark.asyncio
async def test_parse_products_from_fenced_json():
    reply = '```json\n[{"name": "Feijão 1kg", "price": "8,90", "oldPrice": "10.50", "unit": "kg"}]\n```'
    products = await parse_products_from_text(CannedGenerator(reply), "Feijão 1kg de 10,50 por 8,90")

    assert len(products) == 1
    product = products[0]
    assert product.name == "Feijão 1kg"
    assert product.price == "8.90"
    assert product.old_price == "10.50"
    assert set(product.layouts) == set(known_format_ids())
    assert product.id


@pytest.mark.asyncio
async def test_parse_products_rejects_non_json():
    assert await parse_products_from_text(CannedGenerator("Desculpe, não entendi"), "x") == []
    assert await parse_products_from_text(CannedGenerator('{"name": "x"}'), "x") == []
