"""Модель выбранного изображения.

Принципы:
- SRP: только структура данных выбора и его жизненный цикл, без декодирования и обработки.
- Выбор владеет дескриптором декодированных пикселей; освобождение идемпотентно.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from image_editor.services.resource_manager import ImageHandle


@dataclass(eq=False)
class ImageSelection:
    """Текущий исходный файл и его метаданные.

    Fields:
        data: Исходные байты файла.
        filename: Имя файла, как его передал сборщик файлов.
        media_type: Заявленный MIME-тип, например "image/jpeg".
        extension: Расширение имени файла без точки ("png", если его нет).
        handle: Дескриптор декодированного изображения; None, если байты не декодируются
            (ошибка тогда проявится при экспорте).
        released: True после замены выбора или закрытия сессии.
    """
    data: bytes
    filename: str
    media_type: str
    extension: str
    handle: Optional[ImageHandle] = None
    released: bool = False

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def natural_size(self) -> Optional[Tuple[int, int]]:
        """Естественные размеры (ширина, высота) или None, если изображение не декодировано."""
        if self.handle is None:
            return None
        return self.handle.size

    @property
    def is_live(self) -> bool:
        return not self.released

    def release(self) -> None:
        """Освобождает дескриптор. Повторный вызов ничего не делает."""
        if self.released:
            return
        self.released = True
        if self.handle is not None:
            self.handle.release()
