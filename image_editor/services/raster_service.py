"""Растеризация: перенос источника на холст с преобразованием и цепочкой фильтров.

Принципы:
- SRP: сервис только рисует; размеры и матрицу даёт `GeometryService`, операции — `FilterService`.
- Повороты на четверть оборота и отражения выполняются точной перестановкой пикселей,
  произвольные углы — обратным аффинным преобразованием с бикубической интерполяцией.
"""
from __future__ import annotations

from typing import Dict, Optional, Tuple

from PIL import Image

from image_editor.config import Settings, settings as default_settings
from image_editor.errors import RenderTargetUnavailable
from image_editor.services.filter_service import FilterChain, FilterService
from image_editor.services.geometry_service import CanvasGeometry

# линейная часть матрицы (источник -> холст, ось y вниз) -> перестановка Pillow
_TRANSPOSE_BY_LINEAR: Dict[Tuple[int, int, int, int], Optional[Image.Transpose]] = {
    (1, 0, 0, 1): None,
    (-1, 0, 0, 1): Image.Transpose.FLIP_LEFT_RIGHT,
    (1, 0, 0, -1): Image.Transpose.FLIP_TOP_BOTTOM,
    (-1, 0, 0, -1): Image.Transpose.ROTATE_180,
    (0, -1, 1, 0): Image.Transpose.ROTATE_270,  # 90° clockwise
    (0, 1, -1, 0): Image.Transpose.ROTATE_90,  # 90° counter-clockwise
    (0, 1, 1, 0): Image.Transpose.TRANSPOSE,
    (0, -1, -1, 0): Image.Transpose.TRANSVERSE,
}


class RasterService:
    def __init__(self, filter_service: Optional[FilterService] = None, config: Optional[Settings] = None) -> None:
        self._filters = filter_service or FilterService()
        self._settings = config or default_settings

    def allocate_canvas(self, geometry: CanvasGeometry) -> Image.Image:
        """Создаёт прозрачный RGBA-холст нужного размера.

        Raises:
            RenderTargetUnavailable: если холст слишком велик или не может быть создан.
        """
        width, height = geometry.canvas_size
        if width * height > self._settings.MAX_CANVAS_PIXELS:
            raise RenderTargetUnavailable(
                f"Холст {width}x{height} превышает допустимые {self._settings.MAX_CANVAS_PIXELS} пикселей"
            )
        try:
            return Image.new("RGBA", (width, height), (0, 0, 0, 0))
        except (MemoryError, ValueError) as exc:
            raise RenderTargetUnavailable(f"Не удалось создать холст {width}x{height}: {exc}") from exc

    def rasterize(
        self,
        source: Image.Image,
        geometry: CanvasGeometry,
        chain: FilterChain,
        blur_scale: float = 1.0,
    ) -> Image.Image:
        """Рисует источник на новом холсте и применяет цепочку фильтров.

        Args:
            source: Декодированное изображение в естественных размерах.
            geometry: Результат `GeometryService.resolve_geometry` для размеров `source`.
            chain: Цепочка фильтров (та же, что и в предпросмотре).
            blur_scale: Множитель радиуса размытия.

        Returns:
            RGBA-изображение размером `geometry.canvas_size`.
        """
        canvas = self.allocate_canvas(geometry)
        try:
            placed = self._transform(source, geometry)
            canvas.alpha_composite(placed)
        except MemoryError as exc:
            raise RenderTargetUnavailable(f"Недостаточно памяти для растеризации: {exc}") from exc
        return self._filters.apply_filter_chain(canvas, chain, blur_scale=blur_scale)

    # ---- Helpers ----
    def _transform(self, source: Image.Image, geometry: CanvasGeometry) -> Image.Image:
        rgba = source if source.mode == "RGBA" else source.convert("RGBA")
        if geometry.is_axis_aligned:
            linear = geometry.matrix[:2, :2]
            key = (int(linear[0, 0]), int(linear[0, 1]), int(linear[1, 0]), int(linear[1, 1]))
            method = _TRANSPOSE_BY_LINEAR[key]
            return rgba.copy() if method is None else rgba.transpose(method)
        return rgba.transform(
            geometry.canvas_size,
            Image.Transform.AFFINE,
            geometry.inverse_affine(),
            resample=Image.Resampling.BICUBIC,
            fillcolor=(0, 0, 0, 0),
        )
