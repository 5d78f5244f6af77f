"""
Errors - таксономия ошибок i18n-toolkit.

ParseError и WriteError не прерывают прогон: файл пропускается,
ошибка попадает в отчёт. Прерывают прогон только ошибки верхнего
уровня (I18nToolkitError из точки входа).
"""

from typing import Optional


class I18nToolkitError(Exception):
    """Базовая ошибка инструмента (прерывает прогон целиком)."""


class ParseError(I18nToolkitError):
    """Файл не удалось разобрать даже с восстановлением после ошибок."""

    def __init__(self, file: str, message: str):
        super().__init__(f"{file}: {message}")
        self.file = file
        self.message = message


class ConfigurationError(I18nToolkitError):
    """Некорректная конфигурация (например, невалидный regex)."""


class WriteError(I18nToolkitError):
    """Не удалось записать исходник или файл переводов."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class RewriteError(I18nToolkitError):
    """Переписанный исходник перестал разбираться без ошибок."""

    def __init__(self, file: str, message: str = "rewritten source has syntax errors"):
        super().__init__(f"{file}: {message}")
        self.file = file


class TranslationError(I18nToolkitError):
    """Ошибка обращения к backend'у перевода."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
