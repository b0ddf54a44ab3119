"""
AI content collaborator.

Generates marketing copy, product lists and background images for the
editor. Failures never propagate to the composition: they are logged and
replaced by a per-task fallback.
"""

import base64
import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

import google.generativeai as genai

from .migration import load_product
from .models import Product

logger = logging.getLogger(__name__)

AVAILABLE_MODELS = [
    "gemini-2.0-flash",
    "gemini-2.5-flash-lite",
]


class ContentTask(str, Enum):
    MARKETING_COPY = "marketing_copy"
    PARSE_PRODUCTS = "parse_products"


FALLBACKS = {
    ContentTask.MARKETING_COPY: "Super Ofertas",
    ContentTask.PARSE_PRODUCTS: "[]",
}


def build_prompt(task: ContentTask, payload: dict) -> str:
    task = ContentTask(task)
    if task == ContentTask.MARKETING_COPY:
        return (
            "Crie um título curto e chamativo (no máximo 4 palavras) para um cartaz de ofertas "
            f"de supermercado sobre: {payload.get('topic', 'ofertas da semana')}. "
            "Responda apenas com o título, sem aspas."
        )
    return (
        "Extraia os produtos do texto abaixo e responda APENAS com um array JSON. "
        'Cada item: {"name": str, "description": str|null, "price": "0.00", '
        '"oldPrice": "0.00"|null, "unit": str}.\n\n'
        f"TEXTO:\n{payload.get('text', '')}"
    )


class ContentGenerator(ABC):
    """
    Abstract base class for content generators.

    Implementations return the fallback for the task instead of raising.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Generator name for logging."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    async def generate_text(self, task: ContentTask, payload: dict) -> str:
        pass

    @abstractmethod
    async def generate_image(self, prompt: str) -> Optional[str]:
        """Generated image as a data URI, or None."""
        pass


class GeminiContentGenerator(ContentGenerator):
    """Gemini-backed generator, trying each model with each API key in turn."""

    def __init__(self, api_keys: Optional[List[str]] = None, models: Optional[List[str]] = None):
        self.api_keys = api_keys or []
        self.models = models or AVAILABLE_MODELS.copy()
        if not self.api_keys:
            logger.warning("No API key - AI content generation disabled")

    @property
    def name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        return bool(self.api_keys)

    def _get_model_with_key(self, api_key: str, model_name: str) -> genai.GenerativeModel:
        genai.configure(api_key=api_key)
        return genai.GenerativeModel(model_name)

    def _generate(self, prompt: str, generation_config: dict):
        last_error: Optional[Exception] = None
        for api_key in self.api_keys:
            key_suffix = api_key[-6:]
            for model_name in self.models:
                try:
                    model = self._get_model_with_key(api_key, model_name)
                    return model.generate_content(prompt, generation_config=generation_config)
                except Exception as e:
                    logger.warning(f"{model_name} with key ...{key_suffix} failed: {e}")
                    last_error = e
        raise RuntimeError(f"All Gemini model/key combinations failed: {last_error}")

    async def generate_text(self, task: ContentTask, payload: dict) -> str:
        task = ContentTask(task)
        fallback = FALLBACKS[task]
        if not self.is_available():
            return fallback
        try:
            response = self._generate(build_prompt(task, payload), {"temperature": 0.7, "max_output_tokens": 2048})
            text = (response.text or "").strip()
        except Exception as e:
            logger.error(f"Text generation for {task.value} failed: {e}")
            return fallback
        return text or fallback

    async def generate_image(self, prompt: str) -> Optional[str]:
        if not self.is_available():
            return None
        try:
            response = self._generate(
                f"Gere uma imagem de fundo para um cartaz de ofertas, sem texto: {prompt}",
                {"temperature": 0.9},
            )
            for candidate in response.candidates[:1]:
                for part in candidate.content.parts:
                    inline = getattr(part, "inline_data", None)
                    if inline and inline.data:
                        data = inline.data if isinstance(inline.data, bytes) else base64.b64decode(inline.data)
                        mime = inline.mime_type or "image/png"
                        return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"
        except Exception as e:
            logger.error(f"Image generation failed: {e}")
        return None


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


async def parse_products_from_text(generator: ContentGenerator, text: str) -> List[Product]:
    """Ask the generator to extract products and migrate them into Product models."""
    raw = await generator.generate_text(ContentTask.PARSE_PRODUCTS, {"text": text})
    try:
        items = json.loads(_FENCE.sub("", raw.strip()))
    except json.JSONDecodeError as e:
        logger.warning(f"Generated product list is not JSON: {e}")
        return []
    if not isinstance(items, list):
        logger.warning(f"Generated product list is a {type(items).__name__}, expected a list")
        return []

    products = []
    for item in items:
        if not isinstance(item, dict):
            continue
        record = dict(item, id=uuid.uuid4().hex[:8])
        products.append(load_product(record))
    return products
