"""Модель параметров редактирования: фильтры и ориентация.

Принципы:
- SRP: только значения параметров и их ограничения, без обработки пикселей.
- Неизменяемые значения (`frozen=True`): каждая мутация модели заменяет
  структуру целиком, поэтому ссылки на прежнее состояние остаются корректными.
- Некорректный числовой ввод не отклоняется, а приводится к допустимому диапазону.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Callable, Dict, Optional

ROTATE_STEP = 90


@dataclass(frozen=True)
class ParameterRange:
    """Допустимый диапазон параметра фильтра.

    Fields:
        minimum: Нижняя граница (включительно).
        maximum: Верхняя граница (включительно).
        default: Значение по умолчанию, оно же нейтральное.
        unit: Единица измерения: "%", "deg" или "px".
    """
    minimum: float
    maximum: float
    default: float
    unit: str

    def clamp(self, value: float) -> float:
        """Приводит значение к диапазону; NaN заменяется значением по умолчанию."""
        value = float(value)
        if math.isnan(value):
            return self.default
        return min(self.maximum, max(self.minimum, value))


FILTER_RANGES: Dict[str, ParameterRange] = {
    "brightness": ParameterRange(40, 160, 100, "%"),
    "contrast": ParameterRange(40, 160, 100, "%"),
    "saturation": ParameterRange(0, 200, 100, "%"),
    "hue": ParameterRange(-180, 180, 0, "deg"),
    "blur": ParameterRange(0, 12, 0, "px"),
    "sepia": ParameterRange(0, 100, 0, "%"),
}


@dataclass(frozen=True)
class FilterParameters:
    """Интенсивности цветовых фильтров. Значения по умолчанию дают нейтральную цепочку."""
    brightness: float = 100
    contrast: float = 100
    saturation: float = 100
    hue: float = 0
    blur: float = 0
    sepia: float = 0

    def with_value(self, field: str, value: float) -> FilterParameters:
        """Возвращает копию, где поле `field` заменено приведённым к диапазону значением.

        Raises:
            ValueError: если поле не является параметром фильтра.
        """
        try:
            value_range = FILTER_RANGES[field]
        except KeyError as exc:
            raise ValueError(f"Неизвестный параметр фильтра: {field}") from exc
        return replace(self, **{field: value_range.clamp(value)})

    def is_neutral(self) -> bool:
        return all(getattr(self, f.name) == FILTER_RANGES[f.name].default for f in fields(self))


@dataclass(frozen=True)
class Orientation:
    """Поворот и отражения всего кадра.

    Fields:
        rotation_degrees: Накопленный поворот в градусах; хранится без приведения
            по модулю 360, чтобы шаги +90/-90 складывались.
        flip_horizontal: Отражение по горизонтали.
        flip_vertical: Отражение по вертикали.
    """
    rotation_degrees: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @property
    def reduced_rotation(self) -> int:
        """Поворот, приведённый к диапазону [0, 360)."""
        return self.rotation_degrees % 360

    @property
    def is_quarter_turn(self) -> bool:
        """True, если поворот нечётно кратен 90° (ширина и высота холста меняются местами)."""
        return self.reduced_rotation % 180 == 90

    def is_identity(self) -> bool:
        return self.reduced_rotation == 0 and not self.flip_horizontal and not self.flip_vertical

    def to_css(self) -> str:
        """CSS-трансформация в том же порядке, что и при экспорте: отражения, затем поворот."""
        parts = []
        if self.flip_horizontal:
            parts.append("scaleX(-1)")
        if self.flip_vertical:
            parts.append("scaleY(-1)")
        parts.append(f"rotate({self.rotation_degrees}deg)")
        return " ".join(parts)


class OrientationOp(Enum):
    ROTATE_LEFT = "rotate_left"
    ROTATE_RIGHT = "rotate_right"
    FLIP_HORIZONTAL = "flip_horizontal"
    FLIP_VERTICAL = "flip_vertical"


DEFAULT_FILTERS = FilterParameters()
DEFAULT_ORIENTATION = Orientation()


class ParameterModel:
    """Текущие значения фильтров и ориентации одной сессии редактирования.

    После каждой мутации синхронно вызывается `on_change(filters, orientation)`,
    чтобы предпросмотр всегда соответствовал последним значениям.
    """

    def __init__(self) -> None:
        self._filters: FilterParameters = DEFAULT_FILTERS
        self._orientation: Orientation = DEFAULT_ORIENTATION
        self.on_change: Optional[Callable[[FilterParameters, Orientation], None]] = None

    @property
    def filters(self) -> FilterParameters:
        return self._filters

    @property
    def orientation(self) -> Orientation:
        return self._orientation

    def set_filter(self, field: str, value: float) -> FilterParameters:
        """Устанавливает один параметр фильтра, приводя значение к его диапазону."""
        self._filters = self._filters.with_value(field, value)
        self._notify()
        return self._filters

    def set_orientation(self, op: OrientationOp) -> Orientation:
        """Применяет операцию ориентации инкрементально: поворот прибавляется к текущему."""
        current = self._orientation
        if op is OrientationOp.ROTATE_LEFT:
            updated = replace(current, rotation_degrees=current.rotation_degrees - ROTATE_STEP)
        elif op is OrientationOp.ROTATE_RIGHT:
            updated = replace(current, rotation_degrees=current.rotation_degrees + ROTATE_STEP)
        elif op is OrientationOp.FLIP_HORIZONTAL:
            updated = replace(current, flip_horizontal=not current.flip_horizontal)
        elif op is OrientationOp.FLIP_VERTICAL:
            updated = replace(current, flip_vertical=not current.flip_vertical)
        else:
            raise ValueError(f"Неизвестная операция ориентации: {op!r}")
        self._orientation = updated
        self._notify()
        return updated

    def reset(self) -> None:
        """Восстанавливает значения фильтров и ориентации по умолчанию."""
        self._filters = DEFAULT_FILTERS
        self._orientation = DEFAULT_ORIENTATION
        self._notify()

    def _notify(self) -> None:
        if self.on_change:
            self.on_change(self._filters, self._orientation)
