from types import SimpleNamespace

import pytest

from i18n_toolkit.exclusions import ExclusionConfig, exclusion_reason, is_excluded
from i18n_toolkit.parser import parse, walk


@pytest.mark.parametrize("code,needle,reason", [
    ('t("Привет");', "Привет", "lookup_call"),
    ('i18n.t("Привет");', "Привет", "lookup_call"),
    ('t(cond ? "Да" : "Нет");', "Да", "lookup_call"),
    ('console.log("Отладка");', "Отладка", "skipped_call"),
    ('console.error(`Ошибка ${code}`);', "Ошибка", "skipped_call"),
    ('throw new Error("Сломалось");', "Сломалось", "skipped_call"),
    ('const e = new TypeError("Сломалось");', "Сломалось", "skipped_call"),
    ('const el = <div className="Класс" />;', "Класс", "jsx_attribute"),
    ('const el = <a href={"Ссылка"} />;', "Ссылка", "jsx_attribute"),
    ('import x from "./модуль";', "модуль", "module_specifier"),
    ('export { x } from "./модуль";', "модуль", "module_specifier"),
    ('const m = import("./модуль");', "модуль", "module_specifier"),
    ('const o = { "Ключ": 1 };', "Ключ", "object_key"),
    ('type T = "Тип";', "Тип", "type_position"),
    ('enum E { A = "Член" }', "Член", "type_position"),
    ('switch (x) { case "Метка": break; }', "Метка", "case_label"),
    ("const q = gql`Запрос`;", "Запрос", "tagged_template"),
])
def test_excluded(find_literal, code, needle, reason):
    _, node, ancestors = find_literal(code, needle)
    assert exclusion_reason(node, ancestors) == reason


@pytest.mark.parametrize("code,needle", [
    ('const x = "Привет";', "Привет"),
    ('const o = { title: "Заголовок" };', "Заголовок"),
    ('const el = <img title="Подсказка" />;', "Подсказка"),
    ('const el = <p>Текст</p>;', "Текст"),
    ('alert("Внимание");', "Внимание"),
    ('switch (x) { case 1: return "Результат"; }', "Результат"),
    ('const s = `Привет, ${name}`;', "Привет"),
])
def test_not_excluded(find_literal, code, needle):
    _, node, ancestors = find_literal(code, needle)
    assert not is_excluded(node, ancestors)


def test_custom_translation_function(find_literal):
    config = ExclusionConfig(translation_function="tr")
    _, node, ancestors = find_literal('tr("Привет");', "Привет")
    assert exclusion_reason(node, ancestors, config) == "lookup_call"

    _, node, ancestors = find_literal('t("Привет");', "Привет")
    assert not is_excluded(node, ancestors, config)


def test_custom_skip_lists(find_literal):
    config = ExclusionConfig(skip_callees=frozenset({"logger.info"}),
                             skip_jsx_attributes=frozenset({"title"}))
    _, node, ancestors = find_literal('logger.info("Запуск");', "Запуск")
    assert exclusion_reason(node, ancestors, config) == "skipped_call"

    _, node, ancestors = find_literal('const el = <img title="Подсказка" />;', "Подсказка")
    assert exclusion_reason(node, ancestors, config) == "jsx_attribute"


def test_error_region(find_literal):
    _, node, ancestors = find_literal('const x = "Привет";', "Привет")
    assert exclusion_reason(node, ancestors) is None

    error_node = SimpleNamespace(type="ERROR")
    assert exclusion_reason(node, (error_node,) + tuple(ancestors)) == "error_region"


def test_error_region_matches_recovered_tree():
    source = parse('const a = "Первый";\nconst b = ("Второй" "Третий";\n}\n', "input.ts")
    assert source.has_errors

    literals = [(n, a) for n, a in walk(source.root) if n.type == "string"]
    assert literals
    for node, ancestors in literals:
        inside = any(a.type == "ERROR" for a in ancestors)
        assert (exclusion_reason(node, ancestors) == "error_region") == inside
