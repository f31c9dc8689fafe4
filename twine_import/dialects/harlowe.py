"""
Harlowe converter.

Harlowe logic lives in (macro: args) calls, usually attached to a [hook]:

    (set: $gold to 50)
    (if: $gold > 20)[Rich!](else:)[Poor.]
    |door>[A door.]  (print: $gold)

Conditional chains are matched with the bracket scanner and rewritten
recursively up to MAX_NESTING_DEPTH; everything else is a flat pass.
"""

import re
from typing import Optional, Tuple

from twine_import.dialects.base import (
    ConversionContext,
    DialectConverter,
    SHELF_CLOSE,
    destination,
    map_unprotected,
    rule,
)
from twine_import.dialects.expressions import find_variable_names, split_strings, translate_expression
from twine_import.dialects.scanner import find_hook_end, iter_macros, macro_at, split_top_level
from twine_import.models import Category, Dialect, Severity

# Macros with no destination equivalent; left in the output verbatim
UNSUPPORTED_MACROS = {
    'display', 'include', 'macro', 'output', 'output-data',
    'input-box', 'force-input-box', 'input', 'force-input', 'dropdown', 'checkbox',
    'cycling-link', 'seq-link', 'link', 'link-reveal', 'link-repeat', 'link-rerun',
    'link-goto', 'link-reveal-goto', 'click', 'click-replace', 'click-append',
    'click-prepend', 'click-goto', 'mouseover', 'mouseout',
    'live', 'after', 'event', 'more',
    'replace', 'append', 'prepend', 'show', 'hide', 'rerun',
    'transition', 't8n', 'transition-time', 't8n-time', 'transition-delay', 't8n-delay',
    'datamap', 'dm', 'dataset', 'ds',
}

CONDITIONAL_OPENERS = {'if', 'unless'}
CONDITIONAL_BRANCHES = {'else-if', 'elseif'}

NAMED_HOOK_FRONT_RE = re.compile(r'\|([\w-]+)>\[')
NAMED_HOOK_BACK_RE = re.compile(r'<([\w-]+)\|')
TEMP_REFERENCE_RE = re.compile(r'(?<![\w$])_([A-Za-z]\w*)')
VARIABLE_REFERENCE_RE = re.compile(r'(?<![\w$])\$([A-Za-z_]\w*)')
ASSIGNMENT_RE = re.compile(r'^\s*([$_])([A-Za-z_]\w*)\s+to\s+(.+)$', re.DOTALL | re.IGNORECASE)
PUT_RE = re.compile(r'^\s*(.+?)\s+into\s+([$_])([A-Za-z_]\w*)\s*$', re.DOTALL | re.IGNORECASE)
CHAIN_GAP_RE = re.compile(r'[ \t]*\n?[ \t]*')


class HarloweConverter(DialectConverter):
    dialect = Dialect.HARLOWE

    loss_rules = [
        rule(r'\(\s*(?:display|include):', 'Passage Inclusion', Category.SCRIPTING, Severity.CRITICAL,
             'Harlowe (display:) embeds another passage and has no equivalent', shelve=False),
        rule(r'\(\s*(?:macro|output|output-data):', 'Custom Macros', Category.SCRIPTING, Severity.CRITICAL,
             'Harlowe custom (macro:) definitions cannot be converted', shelve=False),
        rule(r'\(\s*(?:force-)?input(?:-box)?:|\(\s*(?:dropdown|checkbox):', 'Input Elements',
             Category.UI, Severity.WARNING, 'Text inputs and form controls are not supported', shelve=False),
        rule(r'\(\s*(?:cycling-link|seq-link|link(?:-[\w-]+)?|click(?:-[\w-]+)?|mouseover|mouseout):',
             'Interactive Links', Category.UI, Severity.WARNING,
             'Link and click macros are not converted into choices', shelve=False),
        rule(r'\(\s*(?:datamap|dm|dataset|ds):', 'Harlowe Data Structures', Category.DATA_STRUCTURE,
             Severity.WARNING, 'Harlowe datamaps and datasets are not directly supported', shelve=False),
        rule(r'\(\s*(?:live|after|event|more):', 'Timed Content', Category.TIMING, Severity.WARNING,
             'Delayed and event-driven hooks are not supported', shelve=False),
        rule(r'\(\s*(?:either|random):', 'Random/Either', Category.OTHER, Severity.WARNING,
             'Harlowe (either:) and (random:) are not supported by the destination', shelve=False),
        rule(r'\(\s*(?:replace|append|prepend|show|hide|rerun):', 'Hook Manipulation', Category.STRUCTURE,
             Severity.WARNING, 'Macros that target named hooks cannot be converted', shelve=False),
        rule(r'(?:^|(?<=[\s(,]))\?[A-Za-z][\w-]*', 'Hook Manipulation', Category.STRUCTURE,
             Severity.WARNING, 'Hook references (?name) cannot be converted',
             shelve=False, flags=re.IGNORECASE | re.MULTILINE),
        rule(r'\(\s*(?:transition|t8n)(?:-[\w]+)?:', 'Transitions', Category.UI, Severity.INFO,
             'Harlowe transition effects are not supported', shelve=False),
        rule(r'\(\s*(?:set|put|move):\s*_[A-Za-z]|into\s+_[A-Za-z]', 'Temporary Variables',
             Category.VARIABLES, Severity.INFO,
             'Temporary variables become story variables; their scope is not preserved', shelve=False),
    ]

    def passes(self):
        return [
            self.shelve_unsupported,
            self.rewrite_conditionals,
            self.rewrite_assignments,
            self.rewrite_prints,
            self.unwrap_hooks,
            self.rewrite_variables,
        ]

    # -- pass 1 ---------------------------------------------------------------

    def shelve_unsupported(self, text: str, context: ConversionContext) -> str:
        """Replace unsupported macro calls (with nested args) by shelf tokens."""
        parts = []
        pos = 0
        for macro in iter_macros(text):
            if macro.start < pos or macro.name not in UNSUPPORTED_MACROS:
                continue
            parts.append(text[pos:macro.start])
            parts.append(context.shelve(text[macro.start:macro.end]))
            pos = macro.end
        parts.append(text[pos:])
        return ''.join(parts)

    # -- pass 2 ---------------------------------------------------------------

    def rewrite_conditionals(self, text: str, context: ConversionContext) -> str:
        return self._convert_chains(text, context, depth=0)

    def _condition(self, macro_name: str, args: str, context: ConversionContext) -> str:
        for name in find_variable_names(args):
            context.reference(name)
        condition = translate_expression(args, Dialect.HARLOWE)
        if macro_name == 'unless':
            return f'not ({condition})'
        return condition

    def _attached_hook(self, text: str, pos: int) -> Tuple[Optional[int], Optional[int]]:
        """Return (start, end) of a hook directly after pos; end is None if unclosed."""
        gap = re.match(r'[ \t]*', text[pos:]).end()
        start = pos + gap
        is_link = text.startswith('[[', start) and not text.startswith('[[[', start)
        if start < len(text) and text[start] == '[' and not is_link:
            end = find_hook_end(text, start)
            return start, (end if end != -1 else None)
        return None, None

    def _convert_chains(self, text: str, context: ConversionContext, depth: int) -> str:
        parts = []
        pos = 0

        for macro in iter_macros(text):
            if macro.start < pos or macro.name not in CONDITIONAL_OPENERS:
                continue

            if depth >= context.max_depth:
                context.add_loss('Nesting Too Deep', Category.STRUCTURE, Severity.WARNING,
                                 'Conditional nesting exceeds the supported depth; kept as source text',
                                 original=text[macro.start:macro.end][:200])
                parts.append(context.shelve(text[pos:]))
                return ''.join(parts)

            parts.append(text[pos:macro.start])
            chain, pos = self._convert_chain(text, macro, context, depth)
            parts.append(chain)

        parts.append(text[pos:])
        return ''.join(parts)

    def _convert_chain(self, text, macro, context, depth) -> Tuple[str, int]:
        """Convert an (if:) and any (else-if:)/(else:) that follow it."""
        out = [destination(f'if {self._condition(macro.name, macro.args, context)} then')]

        hook_start, hook_end = self._attached_hook(text, macro.end)
        if hook_start is None:
            # Bare (if:) with nothing attached
            return out[0], macro.end
        if hook_end is None:
            # Unclosed hook: keep the opening rewrite, convert the rest as body
            rest = self._convert_chains(text[hook_start + 1:], context, depth + 1)
            return out[0] + rest, len(text)

        out.append(self._convert_chains(text[hook_start + 1:hook_end], context, depth + 1))
        pos = hook_end + 1

        while True:
            gap = CHAIN_GAP_RE.match(text, pos).end()
            branch = macro_at(text, gap)
            if not branch or branch.name not in CONDITIONAL_BRANCHES | {'else'}:
                break

            hook_start, hook_end = self._attached_hook(text, branch.end)
            if hook_start is None or hook_end is None:
                break

            if branch.name == 'else':
                out.append(destination('else'))
            else:
                out.append(destination(f'elseif {self._condition(branch.name, branch.args, context)} then'))
            out.append(self._convert_chains(text[hook_start + 1:hook_end], context, depth + 1))
            pos = hook_end + 1

            if branch.name == 'else':
                break

        out.append(destination('end'))
        return ''.join(out), pos

    # -- pass 3 ---------------------------------------------------------------

    def rewrite_assignments(self, text: str, context: ConversionContext) -> str:
        def convert(segment: str) -> str:
            parts = []
            pos = 0
            for macro in iter_macros(segment):
                if macro.start < pos or macro.name not in ('set', 'put'):
                    continue
                converted = self._convert_assignment(macro.name, macro.args, context)
                if converted is None:
                    continue
                parts.append(segment[pos:macro.start])
                parts.append(converted)
                pos = macro.end
            parts.append(segment[pos:])
            return ''.join(parts)

        return map_unprotected(text, convert)

    def _convert_assignment(self, name: str, args: str, context: ConversionContext) -> Optional[str]:
        fragments = []
        for clause in split_top_level(args):
            if not clause.strip():
                continue

            if name == 'set':
                match = ASSIGNMENT_RE.match(clause)
                if not match:
                    return None
                sigil, var_name, value = match.groups()
            else:
                match = PUT_RE.match(clause)
                if not match:
                    return None
                value, sigil, var_name = match.groups()

            if sigil == '_':
                context.temp_names.add(var_name)

            # Harlowe's "it" is the variable being changed
            value = ''.join(
                segment if is_string else re.sub(r'\bit\b', f'${var_name}', segment)
                for is_string, segment in split_strings(value.strip())
            )
            for ref in find_variable_names(value):
                if ref != var_name:
                    context.reference(ref)

            translated = translate_expression(value, Dialect.HARLOWE)
            context.assign(var_name, translated)
            fragments.append(destination(f'{var_name} = {translated}'))

        return ''.join(fragments) if fragments else None

    # -- pass 4 ---------------------------------------------------------------

    def rewrite_prints(self, text: str, context: ConversionContext) -> str:
        def convert(segment: str) -> str:
            parts = []
            pos = 0
            for macro in iter_macros(segment):
                if macro.start < pos or macro.name != 'print' or not macro.args:
                    continue
                for ref in find_variable_names(macro.args):
                    context.reference(ref)
                parts.append(segment[pos:macro.start])
                parts.append(destination(translate_expression(macro.args, Dialect.HARLOWE)))
                pos = macro.end
            parts.append(segment[pos:])
            return ''.join(parts)

        return map_unprotected(text, convert)

    # -- pass 5 ---------------------------------------------------------------

    def unwrap_hooks(self, text: str, context: ConversionContext) -> str:
        """Strip named hook markers and free-standing anonymous hooks."""
        return map_unprotected(text, self._unwrap_segment)

    def _unwrap_segment(self, text: str) -> str:
        parts = []
        pos = 0
        i = 0
        while i < len(text):
            if text.startswith('[[', i):
                # Links are left for the link resolver
                close = text.find(']]', i)
                if close == -1:
                    break
                i = close + 2
                continue

            front = NAMED_HOOK_FRONT_RE.match(text, i)
            if front:
                hook_start = front.end() - 1
                hook_end = find_hook_end(text, hook_start)
                if hook_end != -1:
                    parts.append(text[pos:i])
                    parts.append(self._unwrap_segment(text[hook_start + 1:hook_end]))
                    pos = i = hook_end + 1
                    continue

            if text[i] == '[' and self._is_free_standing(text, i):
                hook_end = find_hook_end(text, i)
                if hook_end != -1:
                    back = NAMED_HOOK_BACK_RE.match(text, hook_end + 1)
                    after = back.end() if back else hook_end + 1
                    parts.append(text[pos:i])
                    parts.append(self._unwrap_segment(text[i + 1:hook_end]))
                    pos = i = after
                    continue
            i += 1

        parts.append(text[pos:])
        return ''.join(parts)

    @staticmethod
    def _is_free_standing(text: str, index: int) -> bool:
        """A hook not attached to a preceding macro, hook or shelved call."""
        before = text[:index].rstrip(' \t')
        return not before or before[-1] not in (')', ']', SHELF_CLOSE)

    # -- pass 6 ---------------------------------------------------------------

    def rewrite_variables(self, text: str, context: ConversionContext) -> str:
        def replace_story(match):
            context.reference(match.group(1))
            return destination(match.group(1))

        def replace_temp(match):
            if match.group(1) not in context.temp_names:
                return match.group(0)
            return destination(match.group(1))

        def convert(segment: str) -> str:
            segment = VARIABLE_REFERENCE_RE.sub(replace_story, segment)
            return TEMP_REFERENCE_RE.sub(replace_temp, segment)

        return map_unprotected(text, convert)
