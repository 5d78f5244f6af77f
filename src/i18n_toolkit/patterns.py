"""
Patterns - определяет, относится ли текст к исходному языку.

Паттерн задаёт пользователь (regex), по умолчанию - кириллица.
Совпадение ищется в любом месте строки (re.search), а не по всей строке.
Невалидный паттерн не роняет прогон: используется паттерн по умолчанию.
"""

import logging
import re
from functools import lru_cache
from typing import Optional, Pattern

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_PATTERN = "[а-яёА-ЯЁ]"

_CYRILLIC = re.compile(r"[а-яА-ЯёЁ]")
_LATIN = re.compile(r"[a-zA-Z]")


@lru_cache(maxsize=64)
def compile_source_pattern(pattern: Optional[str]) -> Pattern:
    """
    Компилирует паттерн исходного языка.

    При ошибке компиляции молча (debug) возвращает паттерн по умолчанию.
    """
    if not pattern:
        return re.compile(DEFAULT_SOURCE_PATTERN)
    try:
        return re.compile(pattern)
    except re.error as exc:
        logger.debug("Невалидный source pattern %r (%s), используется %s",
                     pattern, exc, DEFAULT_SOURCE_PATTERN)
        return re.compile(DEFAULT_SOURCE_PATTERN)


def is_valid_pattern(pattern: str) -> bool:
    try:
        re.compile(pattern)
    except re.error:
        return False
    return True


def matches(text: str, pattern: Optional[str] = None) -> bool:
    """Проверяет, содержит ли текст фрагмент исходного языка."""
    if not isinstance(text, str) or not text.strip():
        return False
    return compile_source_pattern(pattern).search(text) is not None


def detect_language(text: str) -> str:
    """
    Определяет язык строки (ru/en/mixed/unknown).
    Без LLM - по наличию кириллицы/латиницы.
    """
    has_cyrillic = bool(_CYRILLIC.search(text))
    has_latin = bool(_LATIN.search(text))

    if has_cyrillic and has_latin:
        return "mixed"
    elif has_cyrillic:
        return "ru"
    elif has_latin:
        return "en"
    return "unknown"
