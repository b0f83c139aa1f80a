"""Управление жизненным циклом декодированных изображений и временных буферов.

Принципы:
- SRP: менеджер только выдаёт и освобождает ресурсы; что с ними делать, решают сервисы.
- У каждого ресурса один владелец и гарантированная точка освобождения:
  `scoped()`/`buffer()` освобождают на любом пути выхода, `release_all()` при закрытии
  освобождает всё, кроме ресурсов активных областей: их закроет сама область.
- `release` идемпотентен: повторный вызов не закрывает изображение второй раз.
"""
from __future__ import annotations

import asyncio
import io
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Callable, Iterator, List, Optional, Set, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from image_editor.config import Settings, settings as default_settings
from image_editor.errors import DecodeError, SelectionReleasedError
from image_editor.utils.logging import get_logger

logger = get_logger(__name__)


class ImageHandle:
    """Дескриптор декодированного изображения (RGBA) с явным освобождением."""

    def __init__(self, image: Image.Image, on_release: Optional[Callable[[ImageHandle], None]] = None) -> None:
        self._image: Optional[Image.Image] = image
        self._size: Tuple[int, int] = image.size
        self._on_release = on_release

    @property
    def image(self) -> Image.Image:
        """Пиксели изображения.

        Raises:
            SelectionReleasedError: если дескриптор уже освобождён.
        """
        if self._image is None:
            raise SelectionReleasedError("Изображение уже освобождено: выбор был заменён или сессия закрыта")
        return self._image

    @property
    def size(self) -> Tuple[int, int]:
        """Естественные размеры; доступны и после освобождения."""
        return self._size

    @property
    def width(self) -> int:
        return self._size[0]

    @property
    def height(self) -> int:
        return self._size[1]

    @property
    def released(self) -> bool:
        return self._image is None

    def release(self) -> bool:
        """Закрывает изображение. Возвращает True, только если освобождение произошло в этом вызове."""
        image, self._image = self._image, None
        if image is None:
            return False
        image.close()
        if self._on_release:
            self._on_release(self)
        return True


class ResourceManager:
    """Выдаёт дескрипторы изображений и буферы, отслеживает живые ресурсы."""

    def __init__(self, config: Optional[Settings] = None) -> None:
        self._settings = config or default_settings
        self._handles: Set[ImageHandle] = set()
        self._pinned: Set[ImageHandle] = set()
        self._buffers: List[io.BytesIO] = []

    @property
    def live_handles(self) -> int:
        return len(self._handles)

    @property
    def live_buffers(self) -> int:
        return len(self._buffers)

    def acquire(self, source_bytes: bytes) -> ImageHandle:
        """Декодирует байты и возвращает отслеживаемый дескриптор.

        Raises:
            DecodeError: если байты не являются изображением или формат не поддерживается.
        """
        image = self._decode(source_bytes)
        handle = ImageHandle(image, on_release=self._forget)
        self._handles.add(handle)
        logger.debug("Acquired image handle %dx%d (%d live)", image.width, image.height, len(self._handles))
        return handle

    def release(self, handle: Optional[ImageHandle]) -> None:
        """Освобождает дескриптор; безопасно вызывать повторно и с None."""
        if handle is None:
            return
        if handle.release():
            logger.debug("Released image handle (%d live)", len(self._handles))

    @contextmanager
    def scoped(self, source_bytes: bytes) -> Iterator[ImageHandle]:
        """Дескриптор, освобождаемый при выходе из блока, в том числе по исключению.

        Пока блок активен, `release_all()` дескриптор не трогает.
        """
        handle = self.acquire(source_bytes)
        with self._pinned_handle(handle):
            yield handle

    @asynccontextmanager
    async def scoped_async(self, source_bytes: bytes) -> AsyncIterator[ImageHandle]:
        """Как `scoped()`, но декодирование выполняется в рабочем потоке.

        Если ожидание отменено во время декодирования, дескриптор остаётся
        в учёте менеджера и освобождается `release_all()`.
        """
        handle = await asyncio.to_thread(self.acquire, source_bytes)
        with self._pinned_handle(handle):
            yield handle

    @contextmanager
    def buffer(self) -> Iterator[io.BytesIO]:
        """Временный выходной поток, закрываемый при выходе из блока."""
        stream = io.BytesIO()
        self._buffers.append(stream)
        try:
            yield stream
        finally:
            self._buffers.remove(stream)
            stream.close()

    def release_all(self) -> None:
        """Освобождает все живые дескрипторы (закрытие владельца).

        Дескрипторы и буферы активных областей освобождаются при выходе из области,
        поэтому работающий с ними экспорт не теряет пиксели посреди операции.
        """
        for handle in list(self._handles):
            if handle not in self._pinned:
                self.release(handle)
        if self._pinned or self._buffers:
            logger.debug(
                "%d scoped handles and %d buffers stay open until their scopes exit",
                len(self._pinned), len(self._buffers),
            )

    # ---- Helpers ----
    @contextmanager
    def _pinned_handle(self, handle: ImageHandle) -> Iterator[None]:
        self._pinned.add(handle)
        try:
            yield
        finally:
            self._pinned.discard(handle)
            self.release(handle)

    def _forget(self, handle: ImageHandle) -> None:
        self._handles.discard(handle)

    def _decode(self, source_bytes: bytes) -> Image.Image:
        if not source_bytes:
            raise DecodeError("Пустые данные: изображение не выбрано")
        try:
            with Image.open(io.BytesIO(source_bytes)) as opened:
                opened.load()
                if self._settings.APPLY_EXIF_ORIENTATION:
                    oriented = ImageOps.exif_transpose(opened)
                    if oriented is not None:
                        opened = oriented
                image = opened.convert("RGBA")
        except UnidentifiedImageError as exc:
            raise DecodeError("Файл не распознан как изображение") from exc
        except Image.DecompressionBombError as exc:
            raise DecodeError(f"Изображение слишком велико для декодирования: {exc}") from exc
        except (OSError, EOFError, SyntaxError, ValueError) as exc:
            raise DecodeError(f"Не удалось декодировать изображение: {exc}") from exc
        return image
