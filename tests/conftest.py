"""
Pytest fixtures for image_editor tests
"""
import io

import numpy as np
import pytest
from PIL import Image

from image_editor.config import Settings
from image_editor.services.image_service import ImageService
from image_editor.services.resource_manager import ResourceManager


def encode(image: Image.Image, fmt: str = "PNG", **params) -> bytes:
    stream = io.BytesIO()
    image.save(stream, format=fmt, **params)
    return stream.getvalue()


def decode_rgba(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as image:
        return np.asarray(image.convert("RGBA"))


@pytest.fixture
def config() -> Settings:
    return Settings()


@pytest.fixture
def resources(config) -> ResourceManager:
    manager = ResourceManager(config)
    yield manager
    manager.release_all()


@pytest.fixture
def image_service(config) -> ImageService:
    return ImageService(config)


@pytest.fixture
def pattern_pixels() -> np.ndarray:
    """Непрозрачное изображение 6x4 (ширина x высота) со случайными, но фиксированными цветами."""
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(4, 6, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return pixels


@pytest.fixture
def pattern_png(pattern_pixels) -> bytes:
    return encode(Image.fromarray(pattern_pixels))


@pytest.fixture
def make_png():
    """Фабрика однотонных PNG заданного размера."""
    def _make(width: int = 8, height: int = 6, color=(200, 100, 50, 255)) -> bytes:
        return encode(Image.new("RGBA", (width, height), color))
    return _make
