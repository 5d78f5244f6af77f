import json

import pytest

from i18n_toolkit.catalog import (
    LocaleCatalog,
    Severity,
    count_filled,
    count_keys,
    deep_merge,
    flatten_keys,
    get_empty_strings,
    get_nested_value,
    is_sorted,
    remove_unused_keys,
    set_nested_value,
    sort_keys,
)
from i18n_toolkit.errors import I18nToolkitError, WriteError


def _write(catalog, lang, data):
    path = catalog.path(lang)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


def test_deep_merge_keeps_existing_leaves():
    merged = deep_merge({"a": {"x": "1"}}, {"a": {"x": "2", "y": "3"}, "b": "4"})
    assert merged == {"a": {"x": "1", "y": "3"}, "b": "4"}


def test_nested_helpers():
    data = {}
    set_nested_value(data, "a.b.c", "значение")
    assert data == {"a": {"b": {"c": "значение"}}}
    assert get_nested_value(data, "a.b.c") == "значение"
    assert get_nested_value(data, "a.b") is None
    assert get_nested_value(data, "a.x.y") is None
    assert flatten_keys({"a": {"b": "1"}, "c": "2"}) == {"a.b": "1", "c": "2"}
    assert count_keys({"a": {"b": "1", "c": ""}, "d": "2"}) == 3
    assert count_filled({"a": {"b": "1", "c": " "}, "d": "2"}) == 2


def test_sort_keys_recursively():
    data = {"b": {"z": "1", "a": "2"}, "a": "3"}
    assert not is_sorted(data)
    result = sort_keys(data)
    assert list(result) == ["a", "b"]
    assert list(result["b"]) == ["a", "z"]
    assert is_sorted(result)


def test_get_empty_strings():
    target = {"a": {"x": "", "y": "done"}, "b": ""}
    source = {"a": {"x": "Икс", "y": "Игрек"}, "b": ""}
    empty = get_empty_strings(target, source)
    assert [(e.key, e.source_value) for e in empty] == [("a.x", "Икс")]


def test_sync_fills_structure(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"common": {"ok": "ОК", "cancel": "Отмена"}})
    _write(catalog, "en", {"common": {"ok": "OK"}, "extra": {"only_en": "Only"}})

    result = catalog.sync(["ru", "en", "kk"])

    assert result["total_keys"] == 3
    assert catalog.load("ru") == {
        "common": {"cancel": "Отмена", "ok": "ОК"},
        "extra": {"only_en": "Only"},
    }
    assert catalog.load("en") == {
        "common": {"cancel": "", "ok": "OK"},
        "extra": {"only_en": "Only"},
    }
    assert catalog.load("kk") == {
        "common": {"cancel": "", "ok": ""},
        "extra": {"only_en": ""},
    }
    assert [(s.code, s.filled, s.percent) for s in result["languages"]] == [
        ("ru", 3, 100), ("en", 2, 67), ("kk", 0, 0),
    ]


def test_sort_check_does_not_write(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"b": "1", "a": "2"})
    _write(catalog, "en", {"a": "1", "b": "2"})

    result = catalog.sort(check=True)
    assert result.sorted_files == ["ru"]
    assert result.already_sorted == ["en"]
    assert list(catalog.load("ru")) == ["b", "a"]

    catalog.sort()
    assert list(catalog.load("ru")) == ["a", "b"]


def test_stats_with_namespaces(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"common": {"a": "А", "b": "Б"}})
    _write(catalog, "en", {"common": {"a": "A", "b": ""}})

    stats = catalog.get_stats()
    assert stats["total_keys"] == 2
    en = next(s for s in stats["languages"] if s.code == "en")
    assert (en.filled, en.total, en.percent) == (1, 2, 50)
    assert en.namespaces == {"common": {"total": 2, "filled": 1}}


def test_save_writes_utf8_with_trailing_newline(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    path = catalog.save("ru", {"a": "Привет"})
    assert path.read_text(encoding="utf-8") == '{\n  "a": "Привет"\n}\n'


def test_merge_category_counts_new_keys(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"extracted": {"old": "Старое"}})
    added = catalog.merge_category("ru", "extracted", {"old": "Старое", "new": "Новое"})
    assert added == 1
    assert catalog.load("ru") == {"extracted": {"old": "Старое", "new": "Новое"}}


def test_load_invalid_json_returns_empty(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    catalog.path("ru").parent.mkdir(parents=True)
    catalog.path("ru").write_text("{broken", encoding="utf-8")
    assert catalog.load("ru") == {}


def _write_raw(catalog, lang, text):
    path = catalog.path(lang)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


BROKEN = '{"common": {"ok": "ОК"},}'


def test_load_for_update_refuses_broken_file(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    assert catalog.load_for_update("ru") == {}

    _write_raw(catalog, "ru", BROKEN)
    with pytest.raises(WriteError):
        catalog.load_for_update("ru")

    _write_raw(catalog, "en", '["не объект"]')
    with pytest.raises(WriteError):
        catalog.load_for_update("en")


def test_merge_category_keeps_broken_file(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    path = _write_raw(catalog, "ru", BROKEN)
    with pytest.raises(WriteError):
        catalog.merge_category("ru", "extracted", {"new": "Новое"})
    assert path.read_text(encoding="utf-8") == BROKEN


def test_sync_writes_nothing_when_one_file_is_broken(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"common": {"ok": "ОК"}})
    en_path = _write_raw(catalog, "en", BROKEN)

    with pytest.raises(WriteError):
        catalog.sync(["ru", "en", "kk"])
    assert en_path.read_text(encoding="utf-8") == BROKEN
    assert not catalog.exists("kk")


def test_sort_skips_broken_file(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"b": "1", "a": "2"})
    en_path = _write_raw(catalog, "en", BROKEN)

    result = catalog.sort()
    assert result.sorted_files == ["ru"]
    assert len(result.errors) == 1 and "en" in result.errors[0]
    assert en_path.read_text(encoding="utf-8") == BROKEN
    assert list(catalog.load("ru")) == ["a", "b"]


def test_diff(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"common": {"ok": "ОК", "cancel": "Отмена", "save": "Сохранить"}})
    _write(catalog, "en", {"common": {"ok": "OK", "cancel": ""}, "legacy": "Old"})
    _write(catalog, "kk", {"common": {"ok": "Жарайды", "cancel": "Болдырмау",
                                      "save": "Сақтау"}})

    en, kk = catalog.diff("ru")
    assert (en.target, en.only_in_source, en.empty_in_target, en.only_in_target) == \
        ("en", ["common.save"], ["common.cancel"], ["legacy"])
    assert (en.translated, en.total_source, en.total_target, en.percent) == (1, 3, 3, 33)
    assert (kk.only_in_source, kk.only_in_target, kk.percent) == ([], [], 100)

    assert [d.target for d in catalog.diff("ru", ["kk"])] == ["kk"]


def test_diff_skips_broken_target_and_requires_source(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    with pytest.raises(I18nToolkitError):
        catalog.diff("ru")

    _write(catalog, "ru", {"a": "А"})
    _write_raw(catalog, "en", BROKEN)
    assert catalog.diff("ru") == []


def _issues(report, lang=None):
    return sorted((i.type, i.key, i.severity) for i in report.issues
                  if lang is None or i.language == lang)


def test_validate_clean_catalog(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"greeting": "Привет, {{name}}"})
    _write(catalog, "en", {"greeting": "Hello, {{name}}"})

    report = catalog.validate("ru")
    assert report.issues == []
    assert report.valid


def test_validate_reports_issue_types(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {
        "greeting": "Привет, {{name}}",
        "bye": "Пока",
        "empty": "Пусто",
        "group": {"a": "А"},
        "flat": "Плоский",
        "count": 3,
        "padded": " Отступ ",
    })
    _write(catalog, "en", {
        "greeting": "Hello, {{user}}",
        "empty": "",
        "group": "A",
        "flat": {"x": "X"},
        "count": "3",
        "padded": "Padded",
        "extra": "Extra",
    })

    report = catalog.validate("ru", ["ru", "en"])
    assert _issues(report, "ru") == [
        ("inconsistent_type", "count", Severity.ERROR),
        ("trailing_whitespace", "padded", Severity.WARNING),
    ]
    assert _issues(report, "en") == [
        ("empty_value", "empty", Severity.WARNING),
        ("extra_key", "extra", Severity.WARNING),
        ("inconsistent_type", "flat", Severity.ERROR),
        ("inconsistent_type", "group", Severity.ERROR),
        ("interpolation_mismatch", "greeting", Severity.ERROR),
        ("missing_key", "bye", Severity.WARNING),
    ]
    assert not report.valid
    assert list(report.by_language()) == ["ru", "en"]


def test_validate_missing_and_invalid_files(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"a": "А"})
    _write_raw(catalog, "en", BROKEN)

    report = catalog.validate("ru", ["en", "kk"])
    assert _issues(report) == [
        ("invalid_json", None, Severity.ERROR),
        ("missing_file", None, Severity.ERROR),
    ]
    assert report.error_count == 2


def test_validate_duplicate_keys_and_strict_mode(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"a": "А"})
    _write_raw(catalog, "en", '{"a": "A", "a": "B"}')

    report = catalog.validate("ru")
    assert _issues(report) == [("duplicate_key", "a", Severity.WARNING)]
    assert report.valid

    strict = catalog.validate("ru", strict=True)
    assert strict.warning_count == 1
    assert not strict.valid


def test_remove_unused_keys_drops_empty_branches():
    data = {"common": {"ok": "ОК", "old": "Старое"}, "legacy": {"x": "Икс"}}
    cleaned, removed = remove_unused_keys(data, {"common.ok"})
    assert cleaned == {"common": {"ok": "ОК"}}
    assert removed == ["common.old", "legacy.x"]


def test_clean_removes_unused_keys(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"common": {"ok": "ОК", "old": "Старое"}})
    _write(catalog, "en", {"common": {"ok": "OK", "old": "Old"}, "legacy": "Legacy"})

    dry = catalog.clean({"common.ok"}, dry_run=True)
    assert dry.removed_keys == ["common.old", "legacy"]
    assert dry.removed_by_language == {"en": 2, "ru": 1}
    assert dry.modified_files == []
    assert catalog.load("en") == {"common": {"ok": "OK", "old": "Old"}, "legacy": "Legacy"}

    result = catalog.clean({"common.ok"})
    assert result.removed_count == 2
    assert result.used_count == 1
    assert len(result.modified_files) == 2
    assert catalog.load("en") == {"common": {"ok": "OK"}}
    assert catalog.load("ru") == {"common": {"ok": "ОК"}}


def test_clean_skips_broken_file(tmp_path):
    catalog = LocaleCatalog(tmp_path)
    _write(catalog, "ru", {"old": "Старое"})
    en_path = _write_raw(catalog, "en", BROKEN)

    result = catalog.clean(set())
    assert catalog.load("ru") == {}
    assert en_path.read_text(encoding="utf-8") == BROKEN
    assert len(result.errors) == 1
