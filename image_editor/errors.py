"""Иерархия ошибок редактора.

Принципы:
- SRP: модуль только объявляет типы ошибок, без логики обработки.
- Каждая ошибка экспорта несёт строковый тег `kind`, по которому контроллер
  формирует результат с пометкой неудачи.
"""
from __future__ import annotations


class EditorError(Exception):
    """Базовая ошибка редактора изображений."""


class UnsupportedMediaType(EditorError):
    """Выбранный файл не является изображением (media type не `image/*`)."""

    def __init__(self, media_type: str | None, filename: str = "") -> None:
        self.media_type = media_type
        self.filename = filename
        super().__init__(f"Файл не является изображением: {filename or '<без имени>'} ({media_type or 'неизвестный тип'})")


class ExportError(EditorError):
    """Базовая ошибка конвейера экспорта."""

    kind: str = "export_error"


class DecodeError(ExportError):
    """Байты не удалось декодировать в растр (или формат не поддерживается)."""

    kind = "decode_error"


class EncodeError(ExportError):
    """Результат растеризации не удалось сериализовать."""

    kind = "encode_error"


class RenderTargetUnavailable(ExportError):
    """Не удалось создать целевой растр (холст)."""

    kind = "render_target_unavailable"


class SelectionReleasedError(ExportError):
    """Дескриптор изображения уже освобождён: выбор был заменён или сессия закрыта."""

    kind = "selection_released"
