"""Конвейер экспорта: декодирование -> геометрия -> растеризация -> кодирование.

Принципы:
- SRP: сервис только выполняет экспорт; ошибки превращает в результат контроллер.
- Этапы строго последовательны; долгие этапы выполняются в рабочем потоке
  (`asyncio.to_thread`), поэтому цикл событий продолжает принимать изменения параметров.
- Все временные ресурсы этого вызова освобождаются на любом пути выхода.
- Если выбор заменили во время экспорта, результат отбрасывается с `SelectionReleasedError`.
"""
from __future__ import annotations

import asyncio
import io
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from PIL import Image

from image_editor.config import Settings, settings as default_settings
from image_editor.errors import EncodeError, ExportError, SelectionReleasedError
from image_editor.models.image_model import ImageSelection
from image_editor.models.session_model import EditSession
from image_editor.services.filter_service import FilterService
from image_editor.services.geometry_service import GeometryService
from image_editor.services.raster_service import RasterService
from image_editor.services.resource_manager import ResourceManager
from image_editor.utils.logging import get_logger

logger = get_logger(__name__)

LOSSY_FORMATS = frozenset({"JPEG", "WEBP"})
# formats that cannot store an alpha channel
OPAQUE_FORMATS = frozenset({"JPEG"})
_MIME_ALIASES: Dict[str, str] = {
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/x-png": "PNG",
}


@dataclass(frozen=True)
class ExportedImage:
    """Готовый результат экспорта.

    Fields:
        data: Закодированные байты, всегда полные и непустые.
        suggested_filename: "edited-<timestamp>.<расширение исходного файла>".
        media_type: MIME-тип результата (совпадает с исходным).
        width: Ширина холста, px.
        height: Высота холста, px.
    """
    data: bytes
    suggested_filename: str
    media_type: str
    width: int
    height: int


@dataclass(frozen=True)
class ExportOutcome:
    """Результат экспорта с пометкой: либо `image`, либо `error`, но не оба."""
    image: Optional[ExportedImage] = None
    error: Optional[ExportError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.image is not None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None

    @classmethod
    def succeeded(cls, image: ExportedImage) -> ExportOutcome:
        return cls(image=image)

    @classmethod
    def failed(cls, error: ExportError) -> ExportOutcome:
        return cls(error=error)


def pillow_format_for(media_type: str) -> Optional[str]:
    """Формат Pillow, умеющий записывать данный MIME-тип, или None."""
    Image.init()
    media_type = media_type.lower()
    fmt = _MIME_ALIASES.get(media_type)
    if fmt is None:
        fmt = next((name for name, mime in Image.MIME.items() if mime == media_type and name in Image.SAVE), None)
    if fmt is None or fmt not in Image.SAVE:
        return None
    return fmt


class ExportService:
    def __init__(
        self,
        resources: ResourceManager,
        filter_service: Optional[FilterService] = None,
        geometry_service: Optional[GeometryService] = None,
        raster_service: Optional[RasterService] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = config or default_settings
        self._resources = resources
        self._filters = filter_service or FilterService()
        self._geometry = geometry_service or GeometryService()
        self._raster = raster_service or RasterService(self._filters, self._settings)
        self._clock = clock

    async def export_image(self, session: EditSession) -> ExportedImage:
        """Экспортирует текущий выбор с текущими параметрами.

        Raises:
            DecodeError: байты выбора не декодируются.
            RenderTargetUnavailable: холст не может быть создан.
            EncodeError: результат не удалось закодировать в исходный формат.
            SelectionReleasedError: выбор заменили или закрыли во время экспорта.
        """
        selection = session.selection
        self._ensure_live(selection)
        # snapshot: later parameter changes do not affect this export
        filters = session.parameters.filters
        orientation = session.parameters.orientation
        logger.info("Exporting %s (%s)", selection.filename, selection.media_type)

        async with self._resources.scoped_async(selection.data) as handle:
            self._ensure_live(selection)
            geometry = self._geometry.resolve_geometry(handle.width, handle.height, orientation)
            chain = self._filters.compose_filter_chain(filters)
            logger.debug("Canvas %dx%d, filters: %s", geometry.canvas_width, geometry.canvas_height, chain.to_css())
            raster = await asyncio.to_thread(self._raster.rasterize, handle.image, geometry, chain)

        try:
            self._ensure_live(selection)
            with self._resources.buffer() as stream:
                await asyncio.to_thread(self._encode, raster, selection.media_type, stream)
                data = stream.getvalue()
        finally:
            raster.close()
        if not data:
            raise EncodeError("Кодирование не дало данных")
        self._ensure_live(selection)

        exported = ExportedImage(
            data=data,
            suggested_filename=self.suggest_filename(selection),
            media_type=selection.media_type,
            width=geometry.canvas_width,
            height=geometry.canvas_height,
        )
        logger.info(
            "Exported %s as %s (%dx%d, %d bytes)",
            selection.filename, exported.suggested_filename, exported.width, exported.height, len(data),
        )
        return exported

    def suggest_filename(self, selection: ImageSelection) -> str:
        timestamp = int(self._clock() * 1000)
        return f"{self._settings.FILENAME_PREFIX}-{timestamp}.{selection.extension}"

    # ---- Helpers ----
    def _ensure_live(self, selection: ImageSelection) -> None:
        if not selection.is_live:
            raise SelectionReleasedError(f"Выбор {selection.filename} заменён или закрыт, экспорт отменён")

    def _encode(self, raster: Image.Image, media_type: str, stream: io.BytesIO) -> None:
        fmt = pillow_format_for(media_type)
        if fmt is None:
            raise EncodeError(f"Формат {media_type} не поддерживается для записи")

        image = raster
        if fmt in OPAQUE_FORMATS:
            # transparent pixels become black, as on an HTML canvas
            background = Image.new("RGBA", raster.size, (0, 0, 0, 255))
            background.alpha_composite(raster)
            image = background.convert("RGB")

        params = {}
        if fmt in LOSSY_FORMATS:
            params["quality"] = self._settings.pillow_quality
        try:
            image.save(stream, format=fmt, **params)
        except (OSError, ValueError, KeyError) as exc:
            raise EncodeError(f"Не удалось закодировать изображение в {media_type}: {exc}") from exc
