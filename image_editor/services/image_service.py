"""Приём исходного файла: проверка типа, чтение и создание выбора.

Принципы:
- SRP: класс отвечает только за приём файла и упаковку метаданных в `ImageSelection`.
- OCP: новые источники (стрим, URL) можно добавить отдельными методами.
- Файл с типом не `image/*` отклоняется сразу, до создания сессии.
"""
from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import BinaryIO, Optional, Union

from image_editor.config import Settings, settings as default_settings
from image_editor.errors import DecodeError, UnsupportedMediaType
from image_editor.models.image_model import ImageSelection
from image_editor.services.resource_manager import ResourceManager
from image_editor.utils.logging import get_logger

logger = get_logger(__name__)


class ImageService:
    def __init__(self, config: Optional[Settings] = None) -> None:
        self._settings = config or default_settings

    def create_selection(
        self,
        source: Union[bytes, bytearray, BinaryIO],
        filename: str,
        resources: ResourceManager,
        media_type: Optional[str] = None,
    ) -> ImageSelection:
        """Проверяет тип файла, декодирует его и возвращает новый выбор.

        Args:
            source: Байты файла или файловый объект, открытый на чтение.
            filename: Имя файла (используется для расширения и определения типа).
            resources: Менеджер, выдающий дескриптор декодированного изображения.
            media_type: Заявленный MIME-тип; если не указан, определяется по имени файла.

        Returns:
            `ImageSelection`; если байты не декодируются, `handle` равен None,
            а ошибка будет сообщена при экспорте.

        Raises:
            UnsupportedMediaType: если тип файла не является изображением.
        """
        media_type = self.resolve_media_type(filename, media_type)
        if not media_type.startswith("image/"):
            raise UnsupportedMediaType(media_type or None, filename)

        data = source.read() if hasattr(source, "read") else bytes(source)
        if len(data) > self._settings.MAX_UPLOAD_BYTES:
            logger.warning(
                "Selected file %s is %d bytes, above the advisory limit of %d",
                filename, len(data), self._settings.MAX_UPLOAD_BYTES,
            )

        try:
            handle = resources.acquire(data)
        except DecodeError as exc:
            logger.warning("Selected file %s could not be decoded: %s", filename, exc)
            handle = None

        selection = ImageSelection(
            data=data,
            filename=filename,
            media_type=media_type,
            extension=self.extension_for(filename),
            handle=handle,
        )
        logger.info("Selected %s (%s, %d bytes, size=%s)", filename, media_type, len(data), selection.natural_size)
        return selection

    def create_selection_from_path(self, file_path: str | Path, resources: ResourceManager) -> ImageSelection:
        """Читает файл с диска и создаёт выбор.

        Raises:
            FileNotFoundError: если путь не существует или не указывает на файл.
            UnsupportedMediaType: если файл не является изображением.
        """
        path = Path(file_path)
        if not path.exists() or not path.is_file():
            raise FileNotFoundError(f"Файл не найден: {path}")
        return self.create_selection(path.read_bytes(), path.name, resources)

    def resolve_media_type(self, filename: str, media_type: Optional[str] = None) -> str:
        """Заявленный тип (в нижнем регистре, без параметров) или тип по имени файла."""
        if media_type:
            return media_type.split(";", 1)[0].strip().lower()
        guessed, _encoding = mimetypes.guess_type(filename)
        return guessed or ""

    def extension_for(self, filename: str) -> str:
        """Расширение имени файла без точки; если его нет — расширение по умолчанию."""
        suffix = Path(filename).suffix
        return suffix[1:] if len(suffix) > 1 else self._settings.DEFAULT_EXTENSION
