"""Контроллер редактора: оркестрация выбора, параметров, предпросмотра и экспорта.

SOLID:
- SRP: класс управляет связями между внешним UI и сервисами (без логики обработки изображений).
- DIP: зависит от сервисов как от ролей; конкретные реализации создаются в `__post_init__`.
Clean Code:
- Обработчики компактны; тяжёлая логика вынесена в сервисы.
- Ошибки экспорта не покидают контроллер: они возвращаются как `ExportOutcome`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Optional, Union

from PIL import Image

from image_editor.config import Settings, settings as default_settings
from image_editor.errors import ExportError
from image_editor.models.parameters import FilterParameters, Orientation, OrientationOp
from image_editor.models.session_model import EditSession
from image_editor.services.export_service import ExportOutcome, ExportService
from image_editor.services.filter_service import FilterService
from image_editor.services.geometry_service import GeometryService
from image_editor.services.image_service import ImageService
from image_editor.services.preview_service import PreviewService, RenderDescriptor
from image_editor.services.raster_service import RasterService
from image_editor.services.resource_manager import ResourceManager
from image_editor.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class EditorController:
    """Связывает внешний UI с прикладной логикой.

    Ответственности:
    - Приём файла через `ImageService`; одновременно жива ровно одна сессия.
    - Изменение параметров и синхронный пересчёт предпросмотра (`on_preview`).
    - Экспорт через `ExportService`, не более одного одновременно на сессию.
    - Освобождение ресурсов при замене выбора и при закрытии.
    """
    config: Settings = field(default_factory=lambda: default_settings)
    on_preview: Optional[Callable[[RenderDescriptor], None]] = None

    _session: Optional[EditSession] = field(default=None, init=False)

    def __post_init__(self) -> None:
        self._resources = ResourceManager(self.config)
        self._image_service = ImageService(self.config)
        filter_service = FilterService()
        geometry_service = GeometryService()
        raster_service = RasterService(filter_service, self.config)
        self._preview_service = PreviewService(filter_service, geometry_service, raster_service, self.config)
        self._export_service = ExportService(
            self._resources, filter_service, geometry_service, raster_service, self.config,
        )

    def __enter__(self) -> EditorController:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def session(self) -> Optional[EditSession]:
        return self._session

    @property
    def resources(self) -> ResourceManager:
        return self._resources

    @property
    def is_exporting(self) -> bool:
        return self._session is not None and self._session.export_lock.locked()

    # ---- Selection ----
    def select_file(
        self,
        source: Union[bytes, bytearray, BinaryIO],
        filename: str,
        media_type: Optional[str] = None,
    ) -> EditSession:
        """Создаёт новую сессию для выбранного файла, заменяя текущую.

        Параметры новой сессии сбрасываются к значениям по умолчанию, а прежний
        выбор освобождается.

        Raises:
            UnsupportedMediaType: если файл не является изображением; текущая сессия не меняется.
        """
        selection = self._image_service.create_selection(source, filename, self._resources, media_type)
        previous = self._session
        self._session = EditSession(selection=selection)
        self._session.parameters.on_change = self._handle_parameters_changed
        if previous is not None:
            previous.close()
            logger.debug("Released previous selection %s", previous.selection.filename)
        self._publish_preview()
        return self._session

    # ---- Parameters ----
    def set_filter(self, name: str, value: float) -> Optional[FilterParameters]:
        if self._session is None:
            return None
        return self._session.parameters.set_filter(name, value)

    def set_orientation(self, op: OrientationOp) -> Optional[Orientation]:
        if self._session is None:
            return None
        return self._session.parameters.set_orientation(op)

    def reset(self) -> None:
        """Сбрасывает фильтры и ориентацию текущей сессии."""
        if self._session is not None:
            self._session.parameters.reset()

    # ---- Preview ----
    def preview(self) -> Optional[RenderDescriptor]:
        if self._session is None:
            return None
        return self._preview_service.render_preview(self._session)

    def preview_image(self, max_dimension: Optional[int] = None) -> Optional[Image.Image]:
        if self._session is None:
            return None
        return self._preview_service.render_preview_image(self._session, max_dimension)

    # ---- Export ----
    async def export(self) -> Optional[ExportOutcome]:
        """Экспортирует текущую сессию.

        Returns:
            `ExportOutcome` с изображением или ошибкой; None, если файл не выбран.
            Сессия остаётся пригодной после любой ошибки.
        """
        session = self._session
        if session is None:
            return None
        async with session.export_lock:
            try:
                exported = await self._export_service.export_image(session)
            except ExportError as exc:
                logger.warning("Export of %s failed (%s): %s", session.selection.filename, exc.kind, exc)
                return ExportOutcome.failed(exc)
        return ExportOutcome.succeeded(exported)

    # ---- Teardown ----
    def close(self) -> None:
        """Закрывает сессию и освобождает все ресурсы (идемпотентно)."""
        if self._session is not None:
            self._session.close()
            self._session = None
        self._resources.release_all()

    # ---- Helpers ----
    def _handle_parameters_changed(self, _filters: FilterParameters, _orientation: Orientation) -> None:
        self._publish_preview()

    def _publish_preview(self) -> None:
        if self.on_preview is None or self._session is None:
            return
        self.on_preview(self._preview_service.render_preview(self._session))
