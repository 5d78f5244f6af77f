"""
Keys - транслитерация и генерация ключей перевода.

Ключ строится из первых слов текста, транслитерированных в латиницу:
    "Привет мир"  ->  "extracted.privet_mir"

Уникальность обеспечивает KeyRegistry - контекст одного прогона
извлечения (множество выданных ключей + черновик key -> text).
Один и тот же текст всегда получает один и тот же ключ, другой текст
никогда не получает уже занятый ключ: коллизии разрешаются суффиксом _N.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Set

from .patterns import DEFAULT_SOURCE_PATTERN, compile_source_pattern

TRANSLIT_MAP: Dict[str, str] = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e",
    "ё": "yo", "ж": "zh", "з": "z", "и": "i", "й": "y", "к": "k",
    "л": "l", "м": "m", "н": "n", "о": "o", "п": "p", "р": "r",
    "с": "s", "т": "t", "у": "u", "ф": "f", "х": "h", "ц": "ts",
    "ч": "ch", "ш": "sh", "щ": "sch", "ъ": "", "ы": "y", "ь": "",
    "э": "e", "ю": "yu", "я": "ya",
}

FALLBACK_KEY = "text"
MAX_KEY_WORDS = 4
MAX_KEY_LENGTH = 50

# Всё, кроме исходного алфавита, ASCII букв/цифр и пробелов
_STRIP_RE = re.compile(r"[^а-яёА-ЯЁa-zA-Z0-9\s]")


def transliterate(text: str) -> str:
    """Транслитерирует русский текст в латиницу (с приведением к нижнему регистру)."""
    return "".join(TRANSLIT_MAP.get(char, char) for char in text.lower())


def _strip_for_key(text: str, source_pattern: Optional[str]) -> str:
    if not source_pattern or source_pattern == DEFAULT_SOURCE_PATTERN:
        return _STRIP_RE.sub("", text)
    # остаются буквы/цифры ASCII и буквы, которые сами совпадают с паттерном
    pattern = compile_source_pattern(source_pattern)
    return "".join(
        char for char in text
        if char.isspace() or (char.isalnum() and (char.isascii() or pattern.search(char)))
    )


def make_base_key(text: str, source_pattern: Optional[str] = None) -> str:
    """Строит базовую часть ключа: до 4 слов через '_', не длиннее 50 символов."""
    cleaned = _strip_for_key(text, source_pattern).strip().lower()
    words = [w for w in transliterate(cleaned).split() if w][:MAX_KEY_WORDS]
    return "_".join(words)[:MAX_KEY_LENGTH] or FALLBACK_KEY


@dataclass
class KeyRegistry:
    """
    Контекст генерации ключей на один прогон извлечения.

    used_keys: все выданные (и уже существующие на диске) полные ключи.
    draft: черновик переводов, полный ключ -> исходный текст.
    source_pattern: паттерн исходного языка; его буквы остаются в ключе
    (кириллица транслитерируется, другие алфавиты сохраняются как есть).

    Создаётся один раз на прогон и передаётся через все файлы,
    т.к. уникальность ключей глобальна в пределах прогона.
    """
    used_keys: Set[str] = field(default_factory=set)
    draft: Dict[str, str] = field(default_factory=dict)
    source_pattern: Optional[str] = None

    @classmethod
    def seeded(cls, category: str, existing: Mapping,
               source_pattern: Optional[str] = None) -> "KeyRegistry":
        """Создаёт реестр, засеянный ключами категории из файла переводов."""
        registry = cls(source_pattern=source_pattern)
        for short_key, value in (existing or {}).items():
            full_key = f"{category}.{short_key}"
            registry.used_keys.add(full_key)
            if isinstance(value, str):
                registry.draft[full_key] = value
        return registry

    def new_entries(self, category: str, existing: Mapping) -> Dict[str, str]:
        """Короткие ключи черновика категории, которых ещё нет на диске."""
        prefix = f"{category}."
        return {
            full_key[len(prefix):]: text
            for full_key, text in self.draft.items()
            if full_key.startswith(prefix) and full_key[len(prefix):] not in (existing or {})
        }


def generate_key(text: str, category: str, registry: KeyRegistry) -> str:
    """
    Генерирует уникальный ключ для текста.

    Args:
        text: Исходный текст (для шаблонов - нормализованный с {{name}})
        category: Префикс категории (например, "extracted")
        registry: Контекст прогона

    Returns:
        Полный ключ вида "<category>.<base_key>[_N]"
    """
    base_key = make_base_key(text, registry.source_pattern)
    full_key = f"{category}.{base_key}"

    counter = 1
    while full_key in registry.used_keys and registry.draft.get(full_key) != text:
        full_key = f"{category}.{base_key}_{counter}"
        counter += 1

    registry.used_keys.add(full_key)
    registry.draft[full_key] = text
    return full_key
