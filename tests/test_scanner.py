#!/usr/bin/env python3
"""
Tests for the bracket scanner and expression translation helpers.
"""

import sys
from pathlib import Path

import pytest

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from twine_import.dialects.expressions import (
    find_variable_names,
    harlowe_array_to_list,
    parse_literal,
    translate_expression,
)
from twine_import.dialects.scanner import (
    find_hook_end,
    find_matching,
    iter_macros,
    macro_at,
    split_top_level,
)
from twine_import.models import Dialect


# =============================================================================
# SCANNER
# =============================================================================

class TestFindMatching:
    def test_nested(self):
        text = '(if: (a: 1, 2) contains 1)'
        assert find_matching(text, 0) == len(text) - 1

    def test_ignores_brackets_in_strings(self):
        text = '(print: ")")'
        assert find_matching(text, 0) == len(text) - 1

    def test_unclosed(self):
        assert find_matching('(if: $x', 0) == -1

    def test_mismatched(self):
        assert find_matching('(a: [1)', 0) == -1

    def test_not_an_opener(self):
        assert find_matching('abc', 0) == -1


def test_find_hook_end_skips_apostrophes():
    text = "[It's Tom's [[link]] here]"
    assert find_hook_end(text, 0) == len(text) - 1


def test_find_hook_end_unclosed():
    assert find_hook_end('[never closed', 0) == -1


def test_iter_macros_yields_nested():
    macros = list(iter_macros('(set: $x to (a: 1)) text (print: $x)'))

    assert [m.name for m in macros] == ['set', 'a', 'print']
    assert macros[0].args == '$x to (a: 1)'


def test_iter_macros_skips_unclosed():
    macros = list(iter_macros('(if: $x [oops (print: 1)'))

    assert [m.name for m in macros] == ['print']


def test_macro_at():
    text = 'x(else:)[y]'

    assert macro_at(text, 0) is None
    macro = macro_at(text, 1)
    assert macro.name == 'else'
    assert macro.end == text.index('[')


def test_split_top_level_respects_quotes_and_brackets():
    assert split_top_level('a, (b, c), "d, e", [f, g]') == ['a', ' (b, c)', ' "d, e"', ' [f, g]']


def test_split_top_level_multiple_separators():
    assert split_top_level('$a to 1; $b to 2, $c to 3', ',;') == ['$a to 1', ' $b to 2', ' $c to 3']


# =============================================================================
# EXPRESSIONS
# =============================================================================

class TestTranslateExpression:
    def test_harlowe_is(self):
        assert translate_expression('$name is "Ann"', Dialect.HARLOWE) == 'name == "Ann"'

    def test_harlowe_is_not(self):
        assert translate_expression('$door is not "open"', Dialect.HARLOWE) == 'door ~= "open"'

    def test_harlowe_and_or_not(self):
        assert translate_expression('$a and not $b or $c', Dialect.HARLOWE) == 'a and not b or c'

    def test_sugarcube_words(self):
        assert translate_expression('$x gte 1 and $y lt 2', Dialect.SUGARCUBE) == 'x >= 1 and y < 2'

    def test_sugarcube_symbols(self):
        assert translate_expression('$a === 1 && $b !== 2 || !$c', Dialect.SUGARCUBE) == \
            'a == 1 and b ~= 2 or not c'

    def test_chapbook_symbols(self):
        assert translate_expression('gold >= 20 && name != "Bo"', Dialect.CHAPBOOK) == \
            'gold >= 20 and name ~= "Bo"'

    def test_strings_are_untouched(self):
        assert translate_expression('$msg is "this is $not && that"', Dialect.SUGARCUBE) == \
            'msg == "this is $not && that"'

    def test_temp_variables_lose_sigil(self):
        assert translate_expression('_i + 1', Dialect.SUGARCUBE) == 'i + 1'

    def test_harlowe_array(self):
        assert translate_expression('(a: "x", 2)', Dialect.HARLOWE) == '["x", 2]'


def test_harlowe_array_to_list_only_whole_values():
    assert harlowe_array_to_list('(array: 1, 2, 3)') == '[1, 2, 3]'
    assert harlowe_array_to_list('(a: 1) + (a: 2)') == '(a: 1) + (a: 2)'


def test_find_variable_names():
    assert find_variable_names('$gold + _bonus > $gold and "$fake"') == ['gold', 'bonus']


class TestParseLiteral:
    @pytest.mark.parametrize('value, expected', [
        ('50', ('number', 50, True)),
        ('-2.5', ('number', -2.5, True)),
        ('true', ('boolean', True, True)),
        ('false', ('boolean', False, True)),
        ('"Ann"', ('string', 'Ann', True)),
        ("'it\\'s'", ('string', "it's", True)),
        ('["a", 1, true]', ('list', ['a', 1, True], True)),
    ])
    def test_literals(self, value, expected):
        assert parse_literal(value) == expected

    def test_expression_is_not_literal(self):
        assert parse_literal('gold + 10') == ('string', 'gold + 10', False)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
