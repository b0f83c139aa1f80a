"""Журналирование пакета.

Все модули пишут в потомков логгера `image_editor`; обработчик и уровень
настраиваются один раз при первом обращении.
"""
from __future__ import annotations

import logging
from typing import Optional

from image_editor.config import settings

PACKAGE_LOGGER = "image_editor"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure() -> logging.Logger:
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
    package_logger.setLevel(settings.LOG_LEVEL.upper())
    return package_logger


_PACKAGE: Optional[logging.Logger] = None


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Возвращает логгер пакета или его потомка.

    Args:
        name: Имя модуля (обычно `__name__`); без имени возвращается логгер пакета.
    """
    global _PACKAGE
    if _PACKAGE is None:
        _PACKAGE = _configure()
    if not name or name == PACKAGE_LOGGER:
        return _PACKAGE
    return _PACKAGE.getChild(name.removeprefix(PACKAGE_LOGGER + "."))
