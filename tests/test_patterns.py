import pytest

from i18n_toolkit.patterns import detect_language, is_valid_pattern, matches


@pytest.mark.parametrize("text,expected", [
    ("Привет", True),
    ("Hello, мир", True),
    ("Hello", False),
    ("", False),
    ("   \n\t", False),
    (None, False),
])
def test_default_pattern(text, expected):
    assert matches(text) is expected


def test_custom_pattern():
    assert matches("hello", "[a-z]")
    assert not matches("Привет", "[a-z]")


def test_invalid_pattern_falls_back_to_default():
    assert not is_valid_pattern("[")
    assert matches("Привет", "[")
    assert not matches("hello", "[")


def test_detect_language():
    assert detect_language("Привет") == "ru"
    assert detect_language("Hello") == "en"
    assert detect_language("Hello мир") == "mixed"
    assert detect_language("123") == "unknown"
