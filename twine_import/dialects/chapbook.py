"""
Chapbook converter.

Chapbook passages may open with a vars section and use bracketed modifier
lines for conditional text:

    gold: 50
    hasKey (gold > 20): true
    --
    [if hasKey]
    You unlock the door.
    [else]
    The door is locked.
    [continue]
    You have {gold} coins.

Modifiers do not nest; a new [if] while one is open closes it first.
"""

import re

from twine_import.dialects.base import (
    ConversionContext,
    DialectConverter,
    destination,
    map_unprotected,
    rule,
)
from twine_import.dialects.expressions import translate_expression
from twine_import.models import Category, Dialect, Severity

VARS_SEPARATOR = '--'
VAR_LINE_RE = re.compile(r'^\s*([A-Za-z_][\w]*(?:\.[A-Za-z_]\w*)*)\s*(?:\((.+)\))?\s*:\s*(.*?)\s*$')
MODIFIER_LINE_RE = re.compile(r'^([ \t]*)\[(?!\[)([^\]\n]+)\][ \t]*$', re.MULTILINE)
LINK_INSERT_RE = re.compile(
    r'\{\s*link\s+to\s*:\s*([\'"])(.+?)\1\s*(?:,\s*label\s*:\s*([\'"])(.*?)\3\s*)?\}',
    re.IGNORECASE,
)
INSERT_RE = re.compile(r'\{\s*([A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)\s*\}')

CONTINUE_MODIFIERS = {'continue', 'continued', "cont'd", 'cont'}

UI_INSERTS = 'text input|dropdown menu|cycling link|checkbox|reveal link|restart link|back link'


class ChapbookConverter(DialectConverter):
    dialect = Dialect.CHAPBOOK

    loss_rules = [
        rule(r'^[ \t]*\[javascript\][ \t]*$.*?(?=\n[ \t]*\[(?!\[)[^\]\n]+\][ \t]*$|\Z)',
             'JavaScript Modifier', Category.SCRIPTING, Severity.CRITICAL,
             '[JavaScript] sections cannot be converted',
             flags=re.IGNORECASE | re.MULTILINE | re.DOTALL),
        rule(r'\{\s*embed\s+passage\s*:[^}]*\}', 'Embed Passage', Category.SCRIPTING, Severity.CRITICAL,
             'Chapbook {embed passage:} is not supported; merge the embedded text manually'),
        rule(r'\{\s*(?:' + UI_INSERTS + r')\b[^}]*\}', 'Interactive Inserts', Category.UI, Severity.WARNING,
             'Input and interactive link inserts are not supported'),
        rule(r'^[ \t]*\[after\s+[\d.]+\w*\][ \t]*$', 'Time-based Modifiers', Category.TIMING,
             Severity.WARNING, 'Chapbook time-based modifiers ([after Xs]) are not supported',
             flags=re.IGNORECASE | re.MULTILINE),
        rule(r'\brandom\.\w+', 'Random Values', Category.OTHER, Severity.WARNING,
             'Chapbook random.* values are not supported by the destination', shelve=False),
    ]

    def passes(self):
        return [
            self.rewrite_vars_section,
            self.rewrite_link_inserts,
            self.rewrite_modifiers,
            self.rewrite_inserts,
        ]

    # -- vars section ---------------------------------------------------------

    def rewrite_vars_section(self, text: str, context: ConversionContext) -> str:
        lines = text.split('\n')
        try:
            separator = [line.strip() for line in lines].index(VARS_SEPARATOR)
        except ValueError:
            return text

        header = [line for line in lines[:separator] if line.strip()]
        if not header or not all(VAR_LINE_RE.match(line) for line in header):
            return text

        assignments = [self._convert_var(VAR_LINE_RE.match(line), context) for line in header]
        return '\n'.join(assignments + lines[separator + 1:])

    def _convert_var(self, match, context: ConversionContext) -> str:
        name, condition, value = match.groups()

        if name.startswith('_'):
            context.add_loss('Temporary Variables', Category.VARIABLES, Severity.INFO,
                             'Underscore variables become story variables; their scope is not preserved',
                             original=match.group(0).strip())
        if value.startswith('{'):
            context.add_loss('Data Structures', Category.DATA_STRUCTURE, Severity.WARNING,
                             'Object literals in the vars section are not directly supported',
                             original=match.group(0).strip())

        translated = translate_expression(context.restore(value), Dialect.CHAPBOOK)
        context.assign(name, translated)
        assignment = destination(f'{name} = {translated}')

        if condition:
            test = translate_expression(condition, Dialect.CHAPBOOK)
            return destination(f'if {test} then') + assignment + destination('end')
        return assignment

    # -- links ----------------------------------------------------------------

    def rewrite_link_inserts(self, text: str, context: ConversionContext) -> str:
        """{link to: 'Cellar', label: 'Go down'} becomes [[Go down->Cellar]]."""
        def replace(match):
            target, label = match.group(2), match.group(4)
            return f'[[{label}->{target}]]' if label else f'[[{target}]]'

        return map_unprotected(text, lambda segment: LINK_INSERT_RE.sub(replace, segment))

    # -- modifiers ------------------------------------------------------------

    def rewrite_modifiers(self, text: str, context: ConversionContext) -> str:
        state = {'open': False}

        def replace(match):
            indent, modifier = match.group(1), match.group(2).strip()
            words = modifier.split(None, 1)
            if not words:
                return match.group(0)
            keyword = words[0].lower()
            rest = words[1] if len(words) > 1 else ''

            if keyword in ('if', 'unless') and rest:
                test = translate_expression(rest, Dialect.CHAPBOOK)
                if keyword == 'unless':
                    test = f'not ({test})'
                closing = destination('end') if state['open'] else ''
                state['open'] = True
                return indent + closing + destination(f'if {test} then')

            if not state['open']:
                return match.group(0)

            if keyword == 'elseif' and rest:
                return indent + destination(f'elseif {translate_expression(rest, Dialect.CHAPBOOK)} then')

            if keyword == 'else':
                if not rest:
                    return indent + destination('else')
                branch = rest.split(None, 1)
                if branch[0].lower() == 'if' and len(branch) > 1:
                    return indent + destination(
                        f'elseif {translate_expression(branch[1], Dialect.CHAPBOOK)} then')

            if modifier.lower() in CONTINUE_MODIFIERS:
                state['open'] = False
                return indent + destination('end')

            return match.group(0)

        return MODIFIER_LINE_RE.sub(replace, text)

    # -- inserts --------------------------------------------------------------

    def rewrite_inserts(self, text: str, context: ConversionContext) -> str:
        def replace(match):
            name = match.group(1)
            if name.startswith('random.'):
                return match.group(0)
            context.reference(name.split('.')[0])
            return destination(name)

        return map_unprotected(text, lambda segment: INSERT_RE.sub(replace, segment))
