"""
Config - конфигурация i18n-toolkit.

Порядок поиска в корне проекта (первый найденный):
    .i18n-toolkitrc.yaml, .i18n-toolkitrc.yml, .i18n-toolkitrc.json,
    .i18n-toolkitrc, i18n-toolkit.config.json,
    package.json -> секция "i18n-toolkit"

Все файлы читаются через yaml.safe_load (JSON - подмножество YAML).
Ключи принимаются в camelCase (localesPath) и snake_case (locales_path).
"""

import logging
import re
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .cache import DEFAULT_CACHE_PATH
from .errors import ConfigurationError
from .exclusions import DEFAULT_SKIP_CALLEES, DEFAULT_SKIP_JSX_ATTRIBUTES, DEFAULT_TRANSLATION_FUNCTION
from .patterns import DEFAULT_SOURCE_PATTERN, is_valid_pattern
from .scanner import (
    DEFAULT_CATEGORY,
    DEFAULT_IGNORE,
    DEFAULT_INCLUDE,
    DEFAULT_LOCALES_PATH,
    DEFAULT_SOURCE_LANGUAGE,
    ExtractOptions,
)

logger = logging.getLogger(__name__)

CONFIG_FILES = [
    ".i18n-toolkitrc.yaml",
    ".i18n-toolkitrc.yml",
    ".i18n-toolkitrc.json",
    ".i18n-toolkitrc",
    "i18n-toolkit.config.json",
]
PACKAGE_JSON_SECTION = "i18n-toolkit"
DEFAULT_TEMPLATE_FILE = ".i18n-toolkitrc.yaml"

_LANGUAGE_RE = re.compile(r"^[a-z]{2,3}(-[A-Z]{2})?$")
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass
class ToolkitConfig:
    locales_path: str = DEFAULT_LOCALES_PATH
    source_language: str = DEFAULT_SOURCE_LANGUAGE
    target_languages: List[str] = field(default_factory=lambda: ["en", "kk"])
    include: str = DEFAULT_INCLUDE
    ignore: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    category: str = DEFAULT_CATEGORY
    batch_size: int = 50
    concurrency: int = 5
    source_pattern: str = DEFAULT_SOURCE_PATTERN
    cache_translations: bool = True
    cache_path: str = DEFAULT_CACHE_PATH
    translation_function: str = DEFAULT_TRANSLATION_FUNCTION
    skip_callees: List[str] = field(default_factory=lambda: sorted(DEFAULT_SKIP_CALLEES))
    skip_jsx_attributes: List[str] = field(default_factory=lambda: sorted(DEFAULT_SKIP_JSX_ATTRIBUTES))
    source: Optional[str] = None

    @property
    def languages(self) -> List[str]:
        """Исходный язык первым, затем целевые."""
        return [self.source_language] + [
            lang for lang in self.target_languages if lang != self.source_language
        ]

    def to_extract_options(self, root: Path, **overrides) -> ExtractOptions:
        options = ExtractOptions(
            include=self.include,
            ignore=list(self.ignore),
            locales_path=self.locales_path,
            category=self.category,
            source_pattern=self.source_pattern,
            source_language=self.source_language,
            translation_function=self.translation_function,
            skip_callees=frozenset(self.skip_callees),
            skip_jsx_attributes=frozenset(self.skip_jsx_attributes),
            root=str(root),
        )
        for name, value in overrides.items():
            if value is not None:
                setattr(options, name, value)
        return options


def normalize_key(key: str) -> str:
    """localesPath -> locales_path"""
    return _CAMEL_RE.sub("_", key).lower().replace("-", "_")


def _from_mapping(data: Dict[str, Any], source: Optional[str] = None) -> ToolkitConfig:
    known = {f.name for f in fields(ToolkitConfig)}
    values = {}
    for key, value in (data or {}).items():
        name = normalize_key(str(key))
        if name in known and name != "source":
            values[name] = value
        else:
            logger.debug("Неизвестный параметр конфигурации: %s", key)
    config = ToolkitConfig(**values)
    config.source = source
    return config


def _read_file(path: Path) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Не удалось разобрать %s: %s", path.name, exc)
        return None
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("%s: ожидался объект, получено %s", path.name, type(data).__name__)
        return None
    return data


def load_config(root: Path = Path(".")) -> ToolkitConfig:
    """
    Ищет и загружает конфигурацию.

    Returns:
        ToolkitConfig (значения по умолчанию, если конфиг не найден)
    """
    root = Path(root)
    for name in CONFIG_FILES:
        path = root / name
        if not path.exists():
            continue
        data = _read_file(path)
        if data is not None:
            logger.info("Конфигурация загружена из %s", path)
            return _from_mapping(data, str(path))

    package_json = root / "package.json"
    if package_json.exists():
        data = _read_file(package_json)
        section = (data or {}).get(PACKAGE_JSON_SECTION)
        if isinstance(section, dict):
            logger.info("Конфигурация загружена из package.json")
            return _from_mapping(section, str(package_json))

    logger.debug("Конфиг в %s не найден, используются значения по умолчанию", root)
    return ToolkitConfig()


def merge_cli_options(config: ToolkitConfig, **cli_options) -> ToolkitConfig:
    """Значения CLI переопределяют конфиг, только если заданы (не None)."""
    merged = ToolkitConfig(**asdict(config))
    for name, value in cli_options.items():
        if value is not None and hasattr(merged, name):
            setattr(merged, name, value)
    return merged


def validate_config(config: ToolkitConfig) -> List[str]:
    """Возвращает список ошибок конфигурации (пустой - всё в порядке)."""
    errors = []

    if not _LANGUAGE_RE.match(config.source_language or ""):
        errors.append(f'Некорректный source_language: "{config.source_language}". '
                      f'Ожидается формат "en" или "en-US"')
    for lang in config.target_languages or []:
        if not _LANGUAGE_RE.match(str(lang)):
            errors.append(f'Некорректный целевой язык: "{lang}". '
                          f'Ожидается формат "en" или "en-US"')

    if not isinstance(config.batch_size, int) or not 1 <= config.batch_size <= 100:
        errors.append(f"Некорректный batch_size: {config.batch_size}. Допустимо 1..100")
    if not isinstance(config.concurrency, int) or not 1 <= config.concurrency <= 20:
        errors.append(f"Некорректный concurrency: {config.concurrency}. Допустимо 1..20")

    if config.source_pattern and not is_valid_pattern(config.source_pattern):
        errors.append(f'Некорректный source_pattern: "{config.source_pattern}". '
                      f'Ожидается регулярное выражение')

    return errors


def ensure_valid(config: ToolkitConfig) -> ToolkitConfig:
    """
    Raises:
        ConfigurationError: если validate_config нашёл ошибки
    """
    errors = validate_config(config)
    if errors:
        raise ConfigurationError("; ".join(errors))
    return config


def create_config_template(root: Path = Path("."),
                           filename: str = DEFAULT_TEMPLATE_FILE) -> Path:
    """Создаёт шаблон конфигурации (YAML) и возвращает путь к нему."""
    path = Path(root) / filename
    template = {
        "localesPath": DEFAULT_LOCALES_PATH,
        "sourceLanguage": DEFAULT_SOURCE_LANGUAGE,
        "targetLanguages": ["en", "kk"],
        "include": DEFAULT_INCLUDE,
        "category": DEFAULT_CATEGORY,
        "batchSize": 50,
        "concurrency": 5,
        "sourcePattern": DEFAULT_SOURCE_PATTERN,
        "cacheTranslations": True,
    }
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(template, f, allow_unicode=True, sort_keys=False)
    logger.info("Создан шаблон конфигурации %s", path)
    return path
