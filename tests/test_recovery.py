"""Tests for the lenient JSON recovery rules."""
import json

import pytest

from shift_dimensioning.recovery import (
    balance_brackets,
    extract_json_block,
    loads_lenient,
    normalize_quotes,
    quote_bare_keys,
    repair_json,
    replace_undefined,
    strip_control_characters,
    strip_trailing_commas,
)


class TestRules:
    def test_control_characters(self):
        assert strip_control_characters('{"a":\x00 1\x07}') == '{"a": 1}'

    def test_whitespace_is_kept(self):
        assert strip_control_characters('{\n\t"a": 1\r\n}') == '{\n\t"a": 1\r\n}'

    def test_single_quotes(self):
        assert normalize_quotes("{'agent': 'Ana'}") == '{"agent": "Ana"}'

    def test_apostrophe_inside_double_quotes_is_kept(self):
        text = '{"agent": "D\'Angelo"}'
        assert normalize_quotes(text) == text

    def test_double_quote_inside_single_quotes_is_escaped(self):
        assert json.loads(normalize_quotes("{'note': 'say \"hi\"'}")) == {"note": 'say "hi"'}

    def test_smart_quotes(self):
        assert normalize_quotes("{“a”: “b”}") == '{"a": "b"}'

    def test_bare_keys(self):
        assert quote_bare_keys("{agent: 1, date_x: 2}") == '{"agent": 1, "date_x": 2}'

    def test_bare_key_pattern_inside_string_is_untouched(self):
        text = '{"note": "{x: 1}"}'
        assert quote_bare_keys(text) == text

    def test_undefined(self):
        assert replace_undefined('{"a": undefined, "b": "undefined"}') == '{"a": null, "b": "undefined"}'

    def test_trailing_commas(self):
        assert strip_trailing_commas('{"a": [1, 2,], "b": 3,}') == '{"a": [1, 2], "b": 3}'

    def test_comma_inside_string_is_untouched(self):
        text = '{"a": "x,}"}'
        assert strip_trailing_commas(text) == text

    def test_balance_brackets(self):
        assert balance_brackets('{"a": [1, {"b": 2') == '{"a": [1, {"b": 2}]}'

    def test_brackets_inside_strings_are_ignored(self):
        assert balance_brackets('{"a": "[{"') == '{"a": "[{"}'


def test_repair_combines_rules() -> None:
    broken = "{periods: [{'month': 5, year: 2025,}], shifts: [], note: undefined,"
    assert json.loads(repair_json(broken)) == {
        "periods": [{"month": 5, "year": 2025}],
        "shifts": [],
        "note": None,
    }


class TestExtractJsonBlock:
    def test_fenced_block(self):
        text = 'Here you go:\n```json\n{"a": 1}\n```\nThanks'
        assert extract_json_block(text) == '{"a": 1}'

    def test_bare_object(self):
        assert extract_json_block('Result: {"a": {"b": 1}} done') == '{"a": {"b": 1}}'

    def test_truncated_object(self):
        assert extract_json_block('Result: {"a": [1, 2') == '{"a": [1, 2'

    def test_no_object(self):
        assert extract_json_block("sorry, I cannot help") is None


def test_loads_lenient() -> None:
    assert loads_lenient('{"a": 1}') == {"a": 1}
    assert loads_lenient("{a: 'x',}") == {"a": "x"}
    with pytest.raises(ValueError):
        loads_lenient('{"a": "unterminated')
