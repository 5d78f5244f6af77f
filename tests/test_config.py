import json

from i18n_toolkit.config import (
    ToolkitConfig,
    create_config_template,
    load_config,
    merge_cli_options,
    normalize_key,
    validate_config,
)


def test_defaults_without_config(tmp_path):
    config = load_config(tmp_path)
    assert config.locales_path == "public/locales"
    assert config.source_language == "ru"
    assert config.target_languages == ["en", "kk"]
    assert config.source is None


def test_yaml_config_with_camel_case_keys(tmp_path):
    (tmp_path / ".i18n-toolkitrc.yaml").write_text(
        "localesPath: locales\ntargetLanguages: [en]\nbatchSize: 10\n", encoding="utf-8")
    config = load_config(tmp_path)
    assert config.locales_path == "locales"
    assert config.target_languages == ["en"]
    assert config.batch_size == 10
    assert config.category == "extracted"


def test_package_json_section(tmp_path):
    (tmp_path / "package.json").write_text(json.dumps({
        "name": "app",
        "i18n-toolkit": {"category": "auto", "source_pattern": "[a-z]"},
    }), encoding="utf-8")
    config = load_config(tmp_path)
    assert config.category == "auto"
    assert config.source_pattern == "[a-z]"


def test_dedicated_file_wins_over_package_json(tmp_path):
    (tmp_path / "package.json").write_text(json.dumps({"i18n-toolkit": {"category": "pkg"}}),
                                           encoding="utf-8")
    (tmp_path / ".i18n-toolkitrc.json").write_text(json.dumps({"category": "rc"}),
                                                   encoding="utf-8")
    assert load_config(tmp_path).category == "rc"


def test_merge_cli_options_ignores_none():
    config = ToolkitConfig(category="base")
    merged = merge_cli_options(config, category=None, locales_path="l10n")
    assert merged.category == "base"
    assert merged.locales_path == "l10n"
    assert config.locales_path == "public/locales"


def test_validate_config():
    assert validate_config(ToolkitConfig()) == []
    errors = validate_config(ToolkitConfig(
        source_language="Russian", target_languages=["en-US", "EN"],
        batch_size=0, concurrency=50, source_pattern="[",
    ))
    assert len(errors) == 5


def test_template_roundtrip(tmp_path):
    path = create_config_template(tmp_path)
    assert path.name == ".i18n-toolkitrc.yaml"
    config = load_config(tmp_path)
    assert config.source == str(path)
    assert config.target_languages == ["en", "kk"]


def test_normalize_key():
    assert normalize_key("localesPath") == "locales_path"
    assert normalize_key("skipJsxAttributes") == "skip_jsx_attributes"
    assert normalize_key("batch_size") == "batch_size"


def test_to_extract_options(tmp_path):
    options = ToolkitConfig(category="ui").to_extract_options(tmp_path, mode="extract", file=None)
    assert options.category == "ui"
    assert options.mode == "extract"
    assert options.root == str(tmp_path)
