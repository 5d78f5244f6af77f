import pytest

from i18n_toolkit.parser import parse, walk

LITERAL_TYPES = ("string", "template_string", "jsx_text")


def _find_literal(code: str, needle: str, file_name: str = "input.tsx"):
    source = parse(code, file_name)
    for node, ancestors in walk(source.root):
        if node.type in LITERAL_TYPES and needle in source.text(node):
            return source, node, ancestors
    raise AssertionError(f"literal containing {needle!r} not found")


@pytest.fixture
def find_literal():
    """(code, needle) -> (source, node, ancestors) первого литерала с needle."""
    return _find_literal


@pytest.fixture
def project(tmp_path):
    """Пустой проект: функция write(rel_path, text) + корень."""
    def write(rel_path: str, text: str):
        path = tmp_path / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    write.root = tmp_path
    return write
