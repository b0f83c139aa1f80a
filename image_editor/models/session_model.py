"""Сессия редактирования: выбранное изображение и его параметры.

Принципы:
- SRP: сессия только связывает выбор и модель параметров; обработка — в сервисах.
- Сессия создаётся вместе с новым выбором и отбрасывается вместе с ним.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from image_editor.models.image_model import ImageSelection
from image_editor.models.parameters import ParameterModel


@dataclass(eq=False)
class EditSession:
    """Кортеж (выбор, фильтры, ориентация) с блокировкой экспорта.

    Fields:
        selection: Текущий выбор; сессия владеет им исключительно.
        parameters: Модель параметров, создаётся со значениями по умолчанию.
        export_lock: Не более одного экспорта одновременно на сессию.
    """
    selection: ImageSelection
    parameters: ParameterModel = field(default_factory=ParameterModel)
    export_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def is_live(self) -> bool:
        return self.selection.is_live

    def close(self) -> None:
        """Закрывает сессию и освобождает выбор (идемпотентно)."""
        self.selection.release()
