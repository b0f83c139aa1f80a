"""Предпросмотр: описание фильтров и преобразования для слоя отображения.

Принципы:
- SRP: `render_preview` не касается пикселей; это дёшево делать на каждое изменение параметров.
- Цепочка фильтров и порядок преобразования те же, что при экспорте, поэтому
  предпросмотр и результат выглядят одинаково.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image

from image_editor.config import Settings, settings as default_settings
from image_editor.models.parameters import Orientation
from image_editor.models.session_model import EditSession
from image_editor.services.filter_service import FilterChain, FilterService
from image_editor.services.geometry_service import CanvasGeometry, GeometryService
from image_editor.services.raster_service import RasterService


@dataclass(frozen=True)
class RenderDescriptor:
    """Что показать: цепочка фильтров и преобразование текущей сессии.

    Fields:
        filter_chain: Цепочка фильтров в фиксированном порядке.
        orientation: Ориентация (поворот хранится без приведения).
        css_filter: Значение CSS `filter`.
        css_transform: Значение CSS `transform`.
        geometry: Размер холста и матрица; None, если размеры источника неизвестны.
    """
    filter_chain: FilterChain
    orientation: Orientation
    css_filter: str
    css_transform: str
    geometry: Optional[CanvasGeometry] = None

    @property
    def canvas_size(self) -> Optional[Tuple[int, int]]:
        return self.geometry.canvas_size if self.geometry is not None else None


class PreviewService:
    def __init__(
        self,
        filter_service: Optional[FilterService] = None,
        geometry_service: Optional[GeometryService] = None,
        raster_service: Optional[RasterService] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self._settings = config or default_settings
        self._filters = filter_service or FilterService()
        self._geometry = geometry_service or GeometryService()
        self._raster = raster_service or RasterService(self._filters, self._settings)

    def render_preview(self, session: EditSession) -> RenderDescriptor:
        """Описание предпросмотра для текущих параметров сессии."""
        params = session.parameters
        chain = self._filters.compose_filter_chain(params.filters)
        orientation = params.orientation
        natural_size = session.selection.natural_size
        geometry = None
        if natural_size is not None:
            geometry = self._geometry.resolve_geometry(natural_size[0], natural_size[1], orientation)
        return RenderDescriptor(
            filter_chain=chain,
            orientation=orientation,
            css_filter=chain.to_css(),
            css_transform=orientation.to_css(),
            geometry=geometry,
        )

    def render_preview_image(self, session: EditSession, max_dimension: Optional[int] = None) -> Optional[Image.Image]:
        """Уменьшенное изображение предпросмотра для слоёв отображения, которым нужны пиксели.

        Радиус размытия масштабируется вместе с изображением. Возвращает None,
        если исходное изображение не декодировано.
        """
        handle = session.selection.handle
        if handle is None:
            return None
        limit = max_dimension or self._settings.PREVIEW_MAX_DIMENSION
        thumbnail = handle.image.copy()
        thumbnail.thumbnail((limit, limit), Image.Resampling.LANCZOS)
        scale = thumbnail.width / handle.width

        params = session.parameters
        chain = self._filters.compose_filter_chain(params.filters)
        geometry = self._geometry.resolve_geometry(thumbnail.width, thumbnail.height, params.orientation)
        return self._raster.rasterize(thumbnail, geometry, chain, blur_scale=scale)
