from i18n_toolkit.interpolation import extract_interpolations, split_template
from i18n_toolkit.parser import parse, walk
from i18n_toolkit.rewriter import TreeRewriter


def _rewrite(find_literal, code, needle, key="k.key", auto_getters=False):
    source, node, ancestors = find_literal(code, needle)
    rewriter = TreeRewriter(source)
    rewriter.rewrite(node, ancestors, key, auto_getters=auto_getters)
    return rewriter.apply()


def test_plain_string(find_literal):
    code = 'const x = "Привет мир";\n'
    assert _rewrite(find_literal, code, "Привет", "extracted.privet_mir") == \
        'const x = t("extracted.privet_mir");\n'


def test_custom_translation_function(find_literal):
    source, node, ancestors = find_literal('const x = "Привет";', "Привет")
    rewriter = TreeRewriter(source, translation_function="tr")
    rewriter.rewrite(node, ancestors, "k.privet")
    assert rewriter.apply() == 'const x = tr("k.privet");'


def test_jsx_text_keeps_surrounding_whitespace(find_literal):
    code = "const el = <p>  Привет  </p>;"
    assert _rewrite(find_literal, code, "Привет") == 'const el = <p>  {t("k.key")}  </p>;'


def test_jsx_attribute_is_wrapped_in_expression(find_literal):
    code = 'const el = <img title="Подсказка" />;'
    assert _rewrite(find_literal, code, "Подсказка") == 'const el = <img title={t("k.key")} />;'


def test_auto_getter_for_module_level_property(find_literal):
    code = 'const LABELS = { title: "Заголовок" };'
    assert _rewrite(find_literal, code, "Заголовок", auto_getters=True) == \
        'const LABELS = { get title() { return t("k.key"); } };'


def test_no_getter_inside_function(find_literal):
    code = 'function f() { return { title: "Заголовок" }; }'
    assert _rewrite(find_literal, code, "Заголовок", auto_getters=True) == \
        'function f() { return { title: t("k.key") }; }'


def test_no_getter_inside_arrow_function(find_literal):
    code = 'const f = () => ({ title: "Заголовок" });'
    assert _rewrite(find_literal, code, "Заголовок", auto_getters=True) == \
        'const f = () => ({ title: t("k.key") });'


def test_no_getter_for_computed_key(find_literal):
    code = 'const o = { [name]: "Значение" };'
    assert _rewrite(find_literal, code, "Значение", auto_getters=True) == \
        'const o = { [name]: t("k.key") };'


def test_no_getter_without_flag(find_literal):
    code = 'const LABELS = { title: "Заголовок" };'
    assert _rewrite(find_literal, code, "Заголовок") == 'const LABELS = { title: t("k.key") };'


def test_line_numbers_are_preserved(find_literal):
    code = "const x = `Первая строка\nвторая строка`;\nconst y = 1;\n"
    result = _rewrite(find_literal, code, "Первая")
    assert result.startswith('const x = t("k.key")')
    assert result.count("\n") == code.count("\n")
    assert result.splitlines()[2] == "const y = 1;"


def test_nested_literal_inside_substitution():
    code = 'const m = `Статус: ${ok ? "Готово" : "Ошибка"}`;'
    source = parse(code)
    literals = {
        source.text(node): (node, ancestors)
        for node, ancestors in walk(source.root)
        if node.type in ("string", "template_string")
    }
    outer, outer_ancestors = next(v for k, v in literals.items() if k.startswith("`"))
    inner, inner_ancestors = literals['"Готово"']
    _, bindings = extract_interpolations(split_template(outer, source))

    rewriter = TreeRewriter(source)
    rewriter.rewrite(outer, outer_ancestors, "k.status", bindings)
    rewriter.rewrite(inner, inner_ancestors, "k.gotovo")
    assert rewriter.apply() == \
        'const m = t("k.status", { arg0: ok ? t("k.gotovo") : "Ошибка" });'


def test_unmodified_source_is_returned_as_is(find_literal):
    source, _, _ = find_literal('const x = "Привет";', "Привет")
    rewriter = TreeRewriter(source)
    assert not rewriter.modified
    assert rewriter.apply() == 'const x = "Привет";'
