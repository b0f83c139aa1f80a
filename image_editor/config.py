"""Настройки редактора.

Значения можно переопределить переменными окружения с префиксом
`IMAGE_EDITOR_`, например `IMAGE_EDITOR_EXPORT_QUALITY=0.8`.
"""
from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Настройки конвейера экспорта и предпросмотра."""

    # Export
    EXPORT_QUALITY: float = 0.92  # 0..1, only for lossy formats
    FILENAME_PREFIX: str = "edited"
    DEFAULT_EXTENSION: str = "png"
    MAX_CANVAS_PIXELS: int = 16384 * 16384

    # Input
    MAX_UPLOAD_BYTES: int = 25 * 1024 * 1024  # advisory, enforced by the file picker
    APPLY_EXIF_ORIENTATION: bool = True

    # Preview
    PREVIEW_MAX_DIMENSION: int = 1024

    LOG_LEVEL: str = "INFO"

    model_config = {"env_prefix": "IMAGE_EDITOR_"}

    @property
    def pillow_quality(self) -> int:
        """Качество для Pillow (1..100) из доли 0..1."""
        return max(1, min(100, int(round(self.EXPORT_QUALITY * 100))))


settings = Settings()
