"""Геометрия экспорта: размер холста и аффинное преобразование.

Принципы:
- SRP: только вычисления, без доступа к пикселям.
- Порядок преобразования фиксирован: перенос в центр холста -> отражения -> поворот ->
  источник рисуется с центром в начале координат. Перестановка отражения и поворота
  меняет результат для комбинированных состояний.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from image_editor.models.parameters import Orientation


@dataclass(frozen=True)
class CanvasGeometry:
    """Размер холста и матрица 3x3, переводящая координаты источника в координаты холста.

    Fields:
        canvas_width: Ширина холста, px.
        canvas_height: Высота холста, px.
        matrix: Однородная матрица (источник -> холст), координаты в пикселях, ось y вниз.
        source_width: Исходная ширина (без перестановки).
        source_height: Исходная высота (без перестановки).
    """
    canvas_width: int
    canvas_height: int
    matrix: np.ndarray
    source_width: int
    source_height: int

    @property
    def canvas_size(self) -> Tuple[int, int]:
        return self.canvas_width, self.canvas_height

    @property
    def is_axis_aligned(self) -> bool:
        """True, если преобразование переводит пиксели в пиксели без интерполяции."""
        linear = self.matrix[:2, :2]
        return bool(np.all(np.isin(linear, (-1.0, 0.0, 1.0))))

    def map_point(self, x: float, y: float) -> Tuple[float, float]:
        """Координаты точки источника на холсте."""
        px, py, _ = self.matrix @ np.array([x, y, 1.0])
        return float(px), float(py)

    def inverse_affine(self) -> Tuple[float, float, float, float, float, float]:
        """Коэффициенты (a, b, c, d, e, f) для `Image.transform(..., AFFINE)`: холст -> источник."""
        inverse = np.linalg.inv(self.matrix)
        a, b, c = inverse[0]
        d, e, f = inverse[1]
        return float(a), float(b), float(c), float(d), float(e), float(f)


class GeometryService:
    def resolve_geometry(self, source_width: int, source_height: int, orientation: Orientation) -> CanvasGeometry:
        """Вычисляет размер холста и матрицу преобразования.

        Поворот приводится по модулю 360; если остаток по модулю 180 равен 90,
        ширина и высота холста меняются местами. Сохранённое значение поворота
        при этом не изменяется.
        """
        if source_width <= 0 or source_height <= 0:
            raise ValueError(f"Некорректный размер источника: {source_width}x{source_height}")

        if orientation.is_quarter_turn:
            canvas_width, canvas_height = source_height, source_width
        else:
            canvas_width, canvas_height = source_width, source_height

        matrix = (
            self._translate(canvas_width / 2.0, canvas_height / 2.0)
            @ self._scale(-1.0 if orientation.flip_horizontal else 1.0, -1.0 if orientation.flip_vertical else 1.0)
            @ self._rotate(orientation.rotation_degrees)
            @ self._translate(-source_width / 2.0, -source_height / 2.0)
        )
        return CanvasGeometry(
            canvas_width=canvas_width,
            canvas_height=canvas_height,
            matrix=matrix,
            source_width=source_width,
            source_height=source_height,
        )

    # ---- Helpers ----
    def _translate(self, tx: float, ty: float) -> np.ndarray:
        return np.array([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]])

    def _scale(self, sx: float, sy: float) -> np.ndarray:
        return np.array([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]])

    def _rotate(self, degrees: float) -> np.ndarray:
        cos, sin = self._cos_sin(degrees)
        return np.array([[cos, -sin, 0.0], [sin, cos, 0.0], [0.0, 0.0, 1.0]])

    def _cos_sin(self, degrees: float) -> Tuple[float, float]:
        # quarter turns are exact, so four of them give back the identity
        if float(degrees).is_integer() and int(degrees) % 90 == 0:
            return {0: (1.0, 0.0), 90: (0.0, 1.0), 180: (-1.0, 0.0), 270: (0.0, -1.0)}[int(degrees) % 360]
        rad = math.radians(degrees)
        return math.cos(rad), math.sin(rad)
