#!/usr/bin/env python3
"""
Tests for twine_import/dialects/harlowe.py

Each test converts one passage body and checks the rewritten text, the
variables found and the loss items recorded.
"""

import sys
from pathlib import Path

import pytest

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from twine_import.config import MAX_NESTING_DEPTH
from twine_import.dialects.harlowe import HarloweConverter
from twine_import.models import Category, Severity


def convert(body):
    return HarloweConverter().convert(body, 'p1')


def variables(output):
    return {v.name: v for v in output.variables_found}


def features(output):
    return {item.feature: item for item in output.loss_items}


# =============================================================================
# ASSIGNMENTS AND OUTPUT
# =============================================================================

def test_set_number():
    output = convert('(set: $gold to 50)')

    assert output.content == '{{gold = 50}}'
    gold = variables(output)['gold']
    assert gold.inferred_type == 'number'
    assert gold.initial_value == 50
    assert gold.declared


def test_set_multiple_clauses():
    output = convert('(set: $name to "Ann", $brave to true)')

    assert output.content == '{{name = "Ann"}}{{brave = true}}'
    assert variables(output)['name'].initial_value == 'Ann'
    assert variables(output)['brave'].inferred_type == 'boolean'


def test_set_with_it_keyword():
    output = convert('(set: $gold to it + 5)')

    assert output.content == '{{gold = gold + 5}}'
    # A computed value gives no initial value
    assert not variables(output)['gold'].declared


@pytest.mark.parametrize('body, content, initial', [
    ('(set: $note to "I found it")', '{{note = "I found it"}}', 'I found it'),
    ("(set: $note to 'bit by bit')", "{{note = 'bit by bit'}}", 'bit by bit'),
    ('(put: "it works" into $note)', '{{note = "it works"}}', 'it works'),
])
def test_it_inside_string_is_text(body, content, initial):
    output = convert(body)

    assert output.content == content
    assert variables(output)['note'].initial_value == initial


def test_it_outside_string_still_replaced():
    output = convert("(set: $note to it + ' and it')")

    assert output.content == "{{note = note + ' and it'}}"


def test_put_into():
    output = convert('(put: 3 into $lives)')

    assert output.content == '{{lives = 3}}'
    assert variables(output)['lives'].initial_value == 3


def test_set_array_becomes_list():
    output = convert('(set: $items to (a: "sword", "shield"))')

    assert output.content == '{{items = ["sword", "shield"]}}'
    items = variables(output)['items']
    assert items.inferred_type == 'list'
    assert items.initial_value == ['sword', 'shield']


def test_print():
    assert convert('(print: $gold * 2)').content == '{{gold * 2}}'


def test_bare_variable_reference():
    output = convert('You have $gold coins.')

    assert output.content == 'You have {{gold}} coins.'
    gold = variables(output)['gold']
    assert not gold.declared
    assert gold.inferred_type == 'string'
    assert gold.initial_value == ''


def test_first_declaration_in_passage_wins():
    output = convert('(set: $gold to 10)(set: $gold to 20)')

    assert output.content == '{{gold = 10}}{{gold = 20}}'
    assert variables(output)['gold'].initial_value == 10


def test_temporary_variables():
    output = convert('(set: _count to 3)Count: _count')

    assert output.content == '{{count = 3}}Count: {{count}}'
    item = features(output)['Temporary Variables']
    assert item.severity == Severity.INFO
    assert item.category == Category.VARIABLES


def test_unknown_underscore_word_is_prose():
    assert convert('snake_case stays').content == 'snake_case stays'


# =============================================================================
# CONDITIONALS
# =============================================================================

def test_if_else():
    output = convert('(if: $gold > 20)[Rich!](else:)[Poor.]')

    assert output.content == '{{if gold > 20 then}}Rich!{{else}}Poor.{{end}}'


def test_else_if_chain():
    output = convert('(if: $x is 1)[A](else-if: $x is 2)[B](else:)[C]')

    assert output.content == '{{if x == 1 then}}A{{elseif x == 2 then}}B{{else}}C{{end}}'


def test_chain_across_lines():
    output = convert('(if: $x)[A]\n(else:)[B]')

    assert output.content == '{{if x then}}A{{else}}B{{end}}'


def test_unless():
    assert convert('(unless: $hasKey)[Locked.]').content == '{{if not (hasKey) then}}Locked.{{end}}'


def test_is_not():
    assert convert('(if: $door is not "open")[Shut.]').content == '{{if door ~= "open" then}}Shut.{{end}}'


def test_nested_conditionals():
    output = convert('(if: $a)[(if: $b)[Both](else:)[Only a]]')

    assert output.content == '{{if a then}}{{if b then}}Both{{else}}Only a{{end}}{{end}}'


def test_conditional_body_is_converted():
    output = convert('(if: $rich)[(set: $gold to 100)You have $gold.]')

    assert output.content == '{{if rich then}}{{gold = 100}}You have {{gold}}.{{end}}'


def test_link_inside_hook_is_kept():
    output = convert('(if: $key)[[[Open the door->Hall]]]')

    assert output.content == '{{if key then}}[[Open the door->Hall]]{{end}}'


def test_unclosed_hook_still_rewrites_opener():
    output = convert('(if: $x)[never closed')

    assert output.content == '{{if x then}}never closed'
    assert output.loss_items == []


def test_nesting_limit():
    depth = MAX_NESTING_DEPTH + 1
    body = '(if: true)[' * depth + 'deep' + ']' * depth

    output = convert(body)

    assert output.content.count('{{if true then}}') == MAX_NESTING_DEPTH
    assert '(if: true)[deep]' in output.content
    item = features(output)['Nesting Too Deep']
    assert item.category == Category.STRUCTURE
    assert item.severity == Severity.WARNING


# =============================================================================
# HOOKS
# =============================================================================

def test_named_hook_is_unwrapped():
    assert convert('|secret>[Hidden text]').content == 'Hidden text'


def test_trailing_named_hook_is_unwrapped():
    assert convert('[Hidden text]<secret|').content == 'Hidden text'


def test_free_standing_hook_is_unwrapped():
    assert convert('Before [inside] after').content == 'Before inside after'


def test_links_are_not_hooks():
    assert convert('Go [[North]] now').content == 'Go [[North]] now'


# =============================================================================
# LOSS RULES
# =============================================================================

@pytest.mark.parametrize('body, feature, severity, category', [
    ('(display: "Intro")', 'Passage Inclusion', Severity.CRITICAL, Category.SCRIPTING),
    ('(macro: str-type _a, [(output: _a)])', 'Custom Macros', Severity.CRITICAL, Category.SCRIPTING),
    ('(input-box: bind $name)', 'Input Elements', Severity.WARNING, Category.UI),
    ('(link: "Open")[Opened]', 'Interactive Links', Severity.WARNING, Category.UI),
    ('(set: $m to (dm: "a", 1))', 'Harlowe Data Structures', Severity.WARNING, Category.DATA_STRUCTURE),
    ('(live: 2s)[tick]', 'Timed Content', Severity.WARNING, Category.TIMING),
    ('(either: "a", "b")', 'Random/Either', Severity.WARNING, Category.OTHER),
    ('(replace: ?door)[gone]', 'Hook Manipulation', Severity.WARNING, Category.STRUCTURE),
    ('(click: ?door)[Knock]', 'Hook Manipulation', Severity.WARNING, Category.STRUCTURE),
    ('(transition: "dissolve")[Fade]', 'Transitions', Severity.INFO, Category.UI),
])
def test_loss_rules(body, feature, severity, category):
    item = features(convert(body))[feature]

    assert item.severity == severity
    assert item.category == category
    assert item.affected_passage_ids == {'p1'}


def test_unsupported_macro_kept_literally():
    output = convert('Before (display: "Intro") after')

    assert output.content == 'Before (display: "Intro") after'


def test_unsupported_macro_hook_kept_literally():
    output = convert('(link: "Open")[The box opens.]')

    assert output.content == '(link: "Open")[The box opens.]'


def test_repeated_feature_counts_occurrences():
    output = convert('(display: "A") and (display: "B")')

    item = features(output)['Passage Inclusion']
    assert item.occurrences == 2
    assert len(output.loss_items) == 1


def test_clean_passage_has_no_loss():
    output = convert('Just prose with [[a link]].')

    assert output.loss_items == []
    assert output.content == 'Just prose with [[a link]].'


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
