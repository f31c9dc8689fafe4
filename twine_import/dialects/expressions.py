"""
Expression translation and literal type inference.

Conditions and assigned values are not parsed; they are rewritten token by
token outside of string literals. Operators map onto the destination's
Lua-style vocabulary (==, ~=, and, or, not).
"""

import re
from typing import Any, List, Tuple

from twine_import.dialects.scanner import find_matching, split_top_level
from twine_import.models import Dialect

STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'')

SIGIL_VARIABLE_RE = re.compile(r'(?<![\w$])\$([A-Za-z_][\w]*)')
TEMP_VARIABLE_RE = re.compile(r'(?<![\w$.])_([A-Za-z][\w]*)')

# Longest operators first so '===' never matches as '==' + '='
SYMBOL_OPERATOR_RE = re.compile(r'===|!==|==|!=|&&|\|\||!(?!=)')
SYMBOL_OPERATORS = {
    '===': '==',
    '!==': '~=',
    '==': '==',
    '!=': '~=',
    '&&': 'and',
    '||': 'or',
    '!': 'not ',
}

HARLOWE_WORD_RE = re.compile(r'\bis\s+not\b|\bis\b')
SUGARCUBE_WORD_RE = re.compile(r'\b(?:isnot|neq|eq|is|gte|gt|lte|lt)\b')
WORD_OPERATORS = {
    'isnot': '~=',
    'neq': '~=',
    'eq': '==',
    'is': '==',
    'gte': '>=',
    'gt': '>',
    'lte': '<=',
    'lt': '<',
}

NUMBER_RE = re.compile(r'^-?\d+(?:\.\d+)?$')
HARLOWE_ARRAY_RE = re.compile(r'^\(\s*(?:a|array)\s*:(.*)\)$', re.DOTALL)


def split_strings(expr: str) -> List[Tuple[bool, str]]:
    """Split an expression into (is_string_literal, text) segments."""
    segments = []
    pos = 0
    for match in STRING_RE.finditer(expr):
        if match.start() > pos:
            segments.append((False, expr[pos:match.start()]))
        segments.append((True, match.group(0)))
        pos = match.end()
    if pos < len(expr):
        segments.append((False, expr[pos:]))
    return segments


def _translate_code(code: str, dialect: Dialect) -> str:
    if dialect == Dialect.HARLOWE:
        code = HARLOWE_WORD_RE.sub(lambda m: '~=' if m.group(0) != 'is' else '==', code)
    elif dialect == Dialect.SUGARCUBE:
        code = SUGARCUBE_WORD_RE.sub(lambda m: WORD_OPERATORS[m.group(0)], code)

    if dialect != Dialect.HARLOWE:
        code = SYMBOL_OPERATOR_RE.sub(lambda m: SYMBOL_OPERATORS[m.group(0)], code)

    code = SIGIL_VARIABLE_RE.sub(r'\1', code)
    code = TEMP_VARIABLE_RE.sub(r'\1', code)
    return code


def translate_expression(expr: str, dialect: Dialect) -> str:
    """Rewrite a source expression into destination syntax.

    Examples:
        >>> translate_expression('$gold gte 20 and $name is "Ann"', Dialect.SUGARCUBE)
        'gold >= 20 and name == "Ann"'
        >>> translate_expression('$door is not "open"', Dialect.HARLOWE)
        'door ~= "open"'
    """
    expr = expr.strip()
    if dialect == Dialect.HARLOWE:
        expr = harlowe_array_to_list(expr)

    parts = []
    for is_string, segment in split_strings(expr):
        parts.append(segment if is_string else _translate_code(segment, dialect))
    return re.sub(r'  +', ' ', ''.join(parts)).strip()


def harlowe_array_to_list(expr: str) -> str:
    """Turn a whole-value (a: 1, 2) into [1, 2]; anything else is untouched."""
    stripped = expr.strip()
    match = HARLOWE_ARRAY_RE.match(stripped)
    if not match or find_matching(stripped, 0) != len(stripped) - 1:
        return expr
    items = [item.strip() for item in split_top_level(match.group(1)) if item.strip()]
    return '[' + ', '.join(items) + ']'


def find_variable_names(expr: str) -> List[str]:
    """Return $story and _temp variable names read by an expression, in order."""
    names = []
    for is_string, segment in split_strings(expr):
        if is_string:
            continue
        for match in SIGIL_VARIABLE_RE.finditer(segment):
            if match.group(1) not in names:
                names.append(match.group(1))
        for match in TEMP_VARIABLE_RE.finditer(segment):
            if match.group(1) not in names:
                names.append(match.group(1))
    return names


def _unquote(value: str) -> str:
    body = value[1:-1]
    return re.sub(r'\\(.)', r'\1', body)


def parse_literal(value: str) -> Tuple[str, Any, bool]:
    """Infer (type, python_value, is_literal) from a translated value.

    Non-literal expressions come back as a string holding the expression
    text, flagged with is_literal=False.
    """
    value = value.strip()

    if value in ('true', 'false'):
        return 'boolean', value == 'true', True

    if NUMBER_RE.match(value):
        number = float(value)
        return 'number', int(number) if '.' not in value else number, True

    if STRING_RE.fullmatch(value):
        return 'string', _unquote(value), True

    if value.startswith('[') and value.endswith(']'):
        items = []
        for item in split_top_level(value[1:-1]):
            item = item.strip()
            if not item:
                continue
            _, item_value, _ = parse_literal(item)
            items.append(item_value)
        return 'list', items, True

    return 'string', value, False
