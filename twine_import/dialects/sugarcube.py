"""
SugarCube converter.

SugarCube macros are <<name args>> tags with explicit closers:

    <<set $gold to 50>>
    <<if $gold gt 20>>Rich!<<elseif $gold gt 0>>Getting by.<<else>>Poor.<</if>>
    You have $gold coins. <<print $gold * 2>>

Because every block has an explicit terminator, conditionals are rewritten
token by token with a frame stack instead of by matching whole blocks.
"""

import re
from typing import List, Optional

from twine_import.dialects.base import (
    ConversionContext,
    DialectConverter,
    destination,
    map_unprotected,
    rule,
)
from twine_import.dialects.expressions import find_variable_names, translate_expression
from twine_import.dialects.scanner import split_top_level
from twine_import.models import Category, Dialect, Severity

# Argument text of a <<macro>>; '>' is allowed when not followed by another
_ARGS = r'(?:"[^"]*"|\'[^\']*\'|[^"\'>]|>(?!>))*'


def macro_token(names: str) -> str:
    """Pattern for the opening or closing tag of any macro in names."""
    return r'<<\s*/?(?P<name>' + names + r')\b' + _ARGS + r'>>'


def macro_block(name: str) -> str:
    """Pattern for a whole <<name>>...<</name>> block."""
    return r'<<\s*(?P<name>' + name + r')\b' + _ARGS + r'>>.*?<<\s*/\s*' + name + r'\s*>>'


SET_RE = re.compile(r'<<\s*set\s+(' + _ARGS + r')>>', re.IGNORECASE)
PRINT_RE = re.compile(r'<<\s*(?:print\s+|=|-)(' + _ARGS + r')>>', re.IGNORECASE)
CONTROL_RE = re.compile(
    r'<<\s*(?P<tag>if|elseif|else\s+if|else|/\s*if|endif|switch|case|default|/\s*switch)\b'
    r'(?P<args>' + _ARGS + r')>>',
    re.IGNORECASE,
)
GROUPING_RE = re.compile(r'<<\s*/?\s*(?:nobr|silently)\s*>>', re.IGNORECASE)
SETTER_LINK_RE = re.compile(r'\[\[([^\]]+)\]\[([^\]]*)\]\]')
CLAUSE_RE = re.compile(r'^\s*([$_])([A-Za-z_]\w*)\s*(\+=|-=|\*=|/=|to\b|=)\s*(.+?)\s*$', re.DOTALL)
NAKED_VARIABLE_RE = re.compile(r'(?<![\w$])\$([A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)')
TEMP_REFERENCE_RE = re.compile(r'(?<![\w$])_([A-Za-z]\w*)')

UI_MACROS = ('button|checkbox|cycle|option|optionsfrom|linkappend|linkprepend|linkreplace|link|'
             'listbox|numberbox|radiobutton|textarea|textbox|actions|choice|back|return')
AUDIO_MACROS = ('audio|cacheaudio|createaudiogroup|createaudiotrack|createplaylist|masteraudio|'
                'playlist|removeaudiogroup|removeplaylist|waitforaudio')
DOM_MACROS = 'replace|append|prepend|remove|addclass|removeclass|toggleclass|copy'


class SugarCubeConverter(DialectConverter):
    dialect = Dialect.SUGARCUBE

    loss_rules = [
        rule(macro_block('script'), '<<script>>', Category.SCRIPTING, Severity.CRITICAL,
             'Inline JavaScript cannot be converted', flags=re.IGNORECASE | re.DOTALL),
        rule(macro_block('widget'), '<<widget>>', Category.SCRIPTING, Severity.CRITICAL,
             'Widget definitions have no destination equivalent; convert them to passages',
             flags=re.IGNORECASE | re.DOTALL),
        rule(macro_token('include|display|run'), '<<{name}>>', Category.SCRIPTING, Severity.CRITICAL,
             'This macro runs code or embeds another passage and is not supported'),
        rule(macro_token(UI_MACROS), '<<{name}>>', Category.UI, Severity.WARNING,
             'Interactive UI macro kept as source text; consider using choices instead'),
        rule(macro_token(AUDIO_MACROS), 'Audio Macros', Category.UI, Severity.WARNING,
             'Audio macros are not supported'),
        rule(macro_token('timed|repeat|next|stop'), '<<{name}>>', Category.TIMING, Severity.WARNING,
             'Time-delayed content is not supported'),
        rule(macro_token(DOM_MACROS + '|goto'), '<<{name}>>', Category.STRUCTURE, Severity.WARNING,
             'Macros that modify the page or jump between passages are not supported'),
        rule(macro_token('for|break|continue'), 'Loops', Category.SCRIPTING, Severity.WARNING,
             '<<for>> loops have no destination equivalent'),
        rule(macro_token('unset|capture'), '<<{name}>>', Category.VARIABLES, Severity.INFO,
             'Variable lifetime macros are kept as source text'),
        rule(r'\b(?:either|random|randomFloat)\s*\(|<<\s*random\b', 'Random/Either', Category.OTHER, Severity.WARNING,
             'Random value functions are not supported by the destination', shelve=False),
        rule(r'\bnew\s+(?:Map|Set)\s*\(|<<\s*set\s+[$_]\w+\s*(?:to\b|=)\s*\{', 'Data Structures',
             Category.DATA_STRUCTURE, Severity.WARNING,
             'Maps, sets and object literals are not directly supported', shelve=False),
        rule(r'<<\s*set\b' + _ARGS + r'(?<![\w$])_[A-Za-z]\w*\s*(?:to\b|=)', 'Temporary Variables',
             Category.VARIABLES, Severity.INFO,
             'Temporary variables become story variables; their scope is not preserved', shelve=False),
    ]

    def passes(self):
        return [
            self.rewrite_setter_links,
            self.strip_grouping,
            self.rewrite_assignments,
            self.rewrite_conditionals,
            self.rewrite_prints,
            self.rewrite_variables,
        ]

    # -- links and wrappers ---------------------------------------------------

    def rewrite_setter_links(self, text: str, context: ConversionContext) -> str:
        """[[Text|Target][$x to 1]] keeps its navigation; the setter is dropped."""
        def replace(match):
            context.add_loss('Setter Links', Category.SCRIPTING, Severity.WARNING,
                             'Link setters were removed; apply the assignment in the target passage',
                             original=match.group(0))
            return f'[[{match.group(1)}]]'

        return SETTER_LINK_RE.sub(replace, text)

    def strip_grouping(self, text: str, context: ConversionContext) -> str:
        return GROUPING_RE.sub('', text)

    # -- assignments ----------------------------------------------------------

    def rewrite_assignments(self, text: str, context: ConversionContext) -> str:
        def replace(match):
            converted = self._convert_set(match.group(1), context)
            if converted is None:
                context.add_loss('Complex <<set>>', Category.SCRIPTING, Severity.WARNING,
                                 'This assignment could not be translated', original=match.group(0))
                return context.shelve(match.group(0))
            return converted

        return map_unprotected(text, lambda segment: SET_RE.sub(replace, segment))

    def _convert_set(self, args: str, context: ConversionContext) -> Optional[str]:
        fragments = []
        for clause in split_top_level(args, ',;'):
            if not clause.strip():
                continue
            match = CLAUSE_RE.match(clause)
            if not match:
                return None

            sigil, name, operator, value = match.groups()
            if sigil == '_':
                context.temp_names.add(name)
            for ref in find_variable_names(value):
                if ref != name:
                    context.reference(ref)

            translated = translate_expression(value, Dialect.SUGARCUBE)
            if operator in ('to', '='):
                context.assign(name, translated)
                fragments.append(destination(f'{name} = {translated}'))
            else:
                context.reference(name)
                fragments.append(destination(f'{name} = {name} {operator[0]} {translated}'))

        return ''.join(fragments) if fragments else None

    # -- conditionals ---------------------------------------------------------

    def rewrite_conditionals(self, text: str, context: ConversionContext) -> str:
        stack: List[dict] = []

        def condition(args: str) -> str:
            for ref in find_variable_names(args):
                context.reference(ref)
            return translate_expression(args, Dialect.SUGARCUBE)

        def replace(match):
            tag = re.sub(r'\s+', ' ', match.group('tag').lower()).replace('/ ', '/')
            args = match.group('args').strip()
            top = stack[-1] if stack else None

            if tag in ('if', 'switch'):
                if len(stack) >= context.max_depth:
                    context.add_loss('Nesting Too Deep', Category.STRUCTURE, Severity.WARNING,
                                     'Conditional nesting exceeds the supported depth; kept as source text',
                                     original=match.group(0))
                    stack.append({'kind': 'literal-' + tag})
                    return context.shelve(match.group(0))
                if tag == 'if':
                    stack.append({'kind': 'if'})
                    return destination(f'if {condition(args)} then')
                stack.append({'kind': 'switch', 'subject': condition(args), 'cases': 0})
                return ''

            if tag in ('elseif', 'else if') and top and top['kind'] == 'if':
                return destination(f'elseif {condition(args)} then')

            if tag == 'else' and top and top['kind'] == 'if':
                return destination('else')

            if tag in ('/if', 'endif', '/switch'):
                kind = 'if' if tag != '/switch' else 'switch'
                if top and top['kind'] == kind:
                    stack.pop()
                    return destination('end') if kind == 'if' or top['cases'] else ''
                if top and top['kind'] == 'literal-' + kind:
                    stack.pop()
                    return context.shelve(match.group(0))
                context.add_loss('Unmatched Terminator', Category.STRUCTURE, Severity.INFO,
                                 'A closing tag without a matching opener was kept as source text',
                                 original=match.group(0))
                return context.shelve(match.group(0))

            if tag == 'case' and top and top['kind'] == 'switch':
                values = [v.strip() for v in split_top_level(args, ' ,') if v.strip()]
                test = ' or '.join(f"{top['subject']} == {translate_expression(v, Dialect.SUGARCUBE)}"
                                   for v in values) or 'false'
                top['cases'] += 1
                return destination(f"{'if' if top['cases'] == 1 else 'elseif'} {test} then")

            if tag == 'default' and top and top['kind'] == 'switch':
                top['cases'] += 1
                return destination('else' if top['cases'] > 1 else 'if true then')

            # Branch tags outside their block stay as written
            return context.shelve(match.group(0))

        return map_unprotected(text, lambda segment: CONTROL_RE.sub(replace, segment))

    # -- output ---------------------------------------------------------------

    def rewrite_prints(self, text: str, context: ConversionContext) -> str:
        def replace(match):
            expr = match.group(1).strip()
            if not expr:
                return match.group(0)
            for ref in find_variable_names(expr):
                context.reference(ref)
            return destination(translate_expression(expr, Dialect.SUGARCUBE))

        return map_unprotected(text, lambda segment: PRINT_RE.sub(replace, segment))

    def rewrite_variables(self, text: str, context: ConversionContext) -> str:
        def replace_story(match):
            context.reference(match.group(1).split('.')[0])
            return destination(match.group(1))

        def replace_temp(match):
            if match.group(1) not in context.temp_names:
                return match.group(0)
            return destination(match.group(1))

        def convert(segment: str) -> str:
            segment = NAKED_VARIABLE_RE.sub(replace_story, segment)
            return TEMP_REFERENCE_RE.sub(replace_temp, segment)

        return map_unprotected(text, convert)
