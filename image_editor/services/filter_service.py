"""Цепочка фильтров: построение описания и применение к пикселям.

Принципы:
- SRP: сервис отвечает только за цветовые фильтры и размытие; геометрия — отдельно.
- Детерминированность: порядок операций фиксирован и одинаков для предпросмотра и экспорта.
- Формулы совпадают с определениями CSS Filter Effects, поэтому экспорт визуально
  совпадает с CSS-предпросмотром.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np
from PIL import Image, ImageFilter

from image_editor.models.parameters import FILTER_RANGES, FilterParameters

# (поле параметров, имя операции) в порядке применения
CHAIN_ORDER: Tuple[Tuple[str, str], ...] = (
    ("brightness", "brightness"),
    ("contrast", "contrast"),
    ("saturation", "saturate"),
    ("hue", "hue-rotate"),
    ("blur", "blur"),
    ("sepia", "sepia"),
)


@dataclass(frozen=True)
class FilterOperation:
    """Одна операция цепочки: имя, величина и единица ("%", "deg", "px")."""
    name: str
    magnitude: float
    unit: str

    def to_css(self) -> str:
        return f"{self.name}({_format_number(self.magnitude)}{self.unit})"


@dataclass(frozen=True)
class FilterChain:
    """Упорядоченный список операций. Пустая цепочка — нейтральная."""
    operations: Tuple[FilterOperation, ...] = ()

    def __iter__(self) -> Iterator[FilterOperation]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(op.name for op in self.operations)

    def to_css(self) -> str:
        """Строка CSS `filter`; для пустой цепочки — "none"."""
        if not self.operations:
            return "none"
        return " ".join(op.to_css() for op in self.operations)


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


# ---------- Матрицы Filter Effects ----------
def saturate_matrix(amount: float) -> np.ndarray:
    """Матрица saturate; amount = 1.0 — без изменений, 0.0 — оттенки серого."""
    s = amount
    return np.array([
        [0.213 + 0.787 * s, 0.715 - 0.715 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 + 0.285 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 - 0.715 * s, 0.072 + 0.928 * s],
    ], dtype=np.float32)


def hue_rotate_matrix(degrees: float) -> np.ndarray:
    """Матрица hue-rotate для угла в градусах."""
    rad = math.radians(degrees)
    c, s = math.cos(rad), math.sin(rad)
    return np.array([
        [0.213 + c * 0.787 - s * 0.213, 0.715 - c * 0.715 - s * 0.715, 0.072 - c * 0.072 + s * 0.928],
        [0.213 - c * 0.213 + s * 0.143, 0.715 + c * 0.285 + s * 0.140, 0.072 - c * 0.072 - s * 0.283],
        [0.213 - c * 0.213 - s * 0.787, 0.715 - c * 0.715 + s * 0.715, 0.072 + c * 0.928 + s * 0.072],
    ], dtype=np.float32)


def sepia_matrix(amount: float) -> np.ndarray:
    """Матрица sepia; amount = 0.0 — без изменений, 1.0 — полная сепия."""
    k = 1.0 - min(1.0, max(0.0, amount))
    return np.array([
        [0.393 + 0.607 * k, 0.769 - 0.769 * k, 0.189 - 0.189 * k],
        [0.349 - 0.349 * k, 0.686 + 0.314 * k, 0.168 - 0.168 * k],
        [0.272 - 0.272 * k, 0.534 - 0.534 * k, 0.131 + 0.869 * k],
    ], dtype=np.float32)


class FilterService:
    def compose_filter_chain(self, params: FilterParameters) -> FilterChain:
        """Строит цепочку в фиксированном порядке, пропуская нейтральные операции.

        Порядок: brightness, contrast, saturate, hue-rotate, blur, sepia.
        """
        operations = []
        for field, name in CHAIN_ORDER:
            value_range = FILTER_RANGES[field]
            magnitude = getattr(params, field)
            if magnitude == value_range.default:
                continue
            operations.append(FilterOperation(name=name, magnitude=magnitude, unit=value_range.unit))
        return FilterChain(tuple(operations))

    def apply_filter_chain(self, image: Image.Image, chain: FilterChain, blur_scale: float = 1.0) -> Image.Image:
        """Применяет цепочку к каждому пикселю по порядку и возвращает новое RGBA-изображение.

        Args:
            image: Исходное изображение (будет приведено к RGBA).
            chain: Цепочка из `compose_filter_chain`.
            blur_scale: Множитель радиуса размытия (для уменьшенного предпросмотра).

        Returns:
            Новое изображение; исходное не изменяется.
        """
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        if not chain:
            return rgba.copy()

        arr = np.asarray(rgba, dtype=np.float32) / 255.0
        rgb = arr[..., :3].copy()
        alpha = arr[..., 3:4].copy()
        for op in chain:
            if op.name == "blur":
                rgb, alpha = self._blur(rgb, alpha, op.magnitude * blur_scale)
            else:
                rgb = self._apply_color_op(rgb, op)
        return Image.fromarray(self._to_uint8(np.concatenate([rgb, alpha], axis=2)))

    # ---------- Вспомогательные функции ----------
    def _apply_color_op(self, rgb: np.ndarray, op: FilterOperation) -> np.ndarray:
        """Цветовая операция над массивом float32 [0..1] формы (H, W, 3)."""
        if op.name == "brightness":
            out = rgb * (op.magnitude / 100.0)
        elif op.name == "contrast":
            out = (rgb - 0.5) * (op.magnitude / 100.0) + 0.5
        elif op.name == "saturate":
            out = rgb @ saturate_matrix(op.magnitude / 100.0).T
        elif op.name == "hue-rotate":
            out = rgb @ hue_rotate_matrix(op.magnitude).T
        elif op.name == "sepia":
            out = rgb @ sepia_matrix(op.magnitude / 100.0).T
        else:
            raise ValueError(f"Неизвестная операция фильтра: {op.name}")
        return np.clip(out, 0.0, 1.0).astype(np.float32)

    def _blur(self, rgb: np.ndarray, alpha: np.ndarray, radius: float) -> Tuple[np.ndarray, np.ndarray]:
        """Гауссово размытие (radius — стандартное отклонение, px) с предумноженной альфой.

        За границами изображения пиксели считаются прозрачными, как у CSS `blur()`:
        края растворяются, а не продолжаются крайними пикселями.
        """
        if radius <= 0:
            return rgb, alpha
        height, width = alpha.shape[:2]
        pad = int(math.ceil(3.0 * radius))
        premultiplied = np.concatenate([rgb * alpha, alpha], axis=2)
        premultiplied = np.pad(premultiplied, ((pad, pad), (pad, pad), (0, 0)))
        blurred = Image.fromarray(self._to_uint8(premultiplied)).filter(ImageFilter.GaussianBlur(radius))
        arr = np.asarray(blurred, dtype=np.float32)[pad:pad + height, pad:pad + width] / 255.0
        out_alpha = arr[..., 3:4]
        # избегаем деления на ноль в полностью прозрачных пикселях
        with np.errstate(divide="ignore", invalid="ignore"):
            out_rgb = np.where(out_alpha > 0, arr[..., :3] / out_alpha, 0.0)
        return np.clip(out_rgb, 0.0, 1.0).astype(np.float32), out_alpha

    def _to_uint8(self, arr: np.ndarray) -> np.ndarray:
        return np.clip(np.rint(arr * 255.0), 0, 255).astype(np.uint8)
