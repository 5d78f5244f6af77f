"""
i18n_toolkit - автоматизация интернационализации JS/TS/JSX проектов.

Модули:
- parser: разбор исходников (tree-sitter) и обход с цепочкой предков
- patterns: определение строк исходного языка
- exclusions: правила, по которым литерал не извлекается
- keys: транслитерация и генерация уникальных ключей
- interpolation: шаблоны с подстановками -> текст с {{name}}
- rewriter: замена литералов на вызовы t()
- validator: проверка ключей существующих вызовов t()
- scanner: прогон извлечения (report/extract/validate)
- catalog: файлы переводов, sync/sort/stats
- translator: машинный перевод с повторами и ограничением частоты
- cache: кеш переводов
- config: конфигурация проекта
- manager: CLI
"""

from .errors import (
    ConfigurationError,
    I18nToolkitError,
    ParseError,
    RewriteError,
    TranslationError,
    WriteError,
)
from .keys import KeyRegistry, generate_key, transliterate
from .scanner import ExtractOptions, ExtractResult, FoundString, extract

__version__ = "1.0.0"

__all__ = [
    "ConfigurationError",
    "ExtractOptions",
    "ExtractResult",
    "FoundString",
    "I18nToolkitError",
    "KeyRegistry",
    "ParseError",
    "RewriteError",
    "TranslationError",
    "WriteError",
    "extract",
    "generate_key",
    "transliterate",
]
