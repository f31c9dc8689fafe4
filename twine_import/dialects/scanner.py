"""
Balanced bracket scanning.

Story format macros nest ((if: (a: 1) contains 1)[...]) so regexes alone
cannot find where a macro or hook ends. These helpers walk the text with an
explicit stack instead of recursive patterns, which keeps them linear on
malformed input.
"""

import re
from typing import Iterator, NamedTuple, Optional

OPENERS = {'(': ')', '[': ']', '{': '}'}
CLOSERS = {')', ']', '}'}
QUOTES = {'"', "'", '`'}

HARLOWE_MACRO_HEAD_RE = re.compile(r'\(\s*([A-Za-z][\w-]*)\s*:')


class Macro(NamedTuple):
    """A Harlowe-style (name: args) call."""
    name: str
    args: str
    start: int
    end: int  # index just past the closing paren


def find_matching(text: str, start: int, quote_aware: bool = True) -> int:
    """Find the bracket closing the one at text[start].

    Args:
        text: Text to scan
        start: Index of an opening (, [ or {
        quote_aware: Skip over quoted strings (macro arguments). Hook bodies
            are prose, where apostrophes are not string delimiters.

    Returns:
        Index of the matching close bracket, or -1 if it is never closed
    """
    if start >= len(text) or text[start] not in OPENERS:
        return -1

    stack = [OPENERS[text[start]]]
    quote = None
    i = start + 1

    while i < len(text):
        char = text[i]

        if quote:
            if char == '\\':
                i += 2
                continue
            if char == quote:
                quote = None
        elif quote_aware and char in QUOTES:
            quote = char
        elif char in OPENERS:
            stack.append(OPENERS[char])
        elif char in CLOSERS:
            if char != stack[-1]:
                # Mismatched closer: give up on this span
                return -1
            stack.pop()
            if not stack:
                return i
        i += 1

    return -1


def find_hook_end(text: str, start: int) -> int:
    """Find the ']' closing the hook that opens at text[start].

    Only square brackets are counted since hook bodies are prose. Links
    ([[...]]) inside the hook nest naturally.
    """
    if start >= len(text) or text[start] != '[':
        return -1

    depth = 0
    for i in range(start, len(text)):
        if text[i] == '[':
            depth += 1
        elif text[i] == ']':
            depth -= 1
            if depth == 0:
                return i
    return -1


def iter_macros(text: str, pos: int = 0) -> Iterator[Macro]:
    """Yield every top-level and nested (name: ...) macro from pos onwards.

    Unclosed macros are skipped. Nested macros are yielded after their
    parent, since scanning resumes right after each macro head.
    """
    while True:
        match = HARLOWE_MACRO_HEAD_RE.search(text, pos)
        if not match:
            return

        end = find_matching(text, match.start())
        if end == -1:
            pos = match.end()
            continue

        yield Macro(
            name=match.group(1).lower(),
            args=text[match.end():end].strip(),
            start=match.start(),
            end=end + 1,
        )
        pos = match.end()


def macro_at(text: str, pos: int) -> Optional[Macro]:
    """Return the macro starting exactly at pos, if any."""
    match = HARLOWE_MACRO_HEAD_RE.match(text, pos)
    if not match:
        return None

    end = find_matching(text, pos)
    if end == -1:
        return None

    return Macro(match.group(1).lower(), text[match.end():end].strip(), pos, end + 1)


def split_top_level(text: str, separators: str = ',') -> list:
    """Split on separators that are not inside brackets or quotes.

    Examples:
        >>> split_top_level('$a to (a: 1, 2), $b to "x, y"')
        ['$a to (a: 1, 2)', ' $b to "x, y"']
    """
    parts = []
    depth = 0
    quote = None
    current = []
    i = 0

    while i < len(text):
        char = text[i]
        if quote:
            current.append(char)
            if char == '\\' and i + 1 < len(text):
                current.append(text[i + 1])
                i += 1
            elif char == quote:
                quote = None
        elif char in QUOTES:
            quote = char
            current.append(char)
        elif char in OPENERS:
            depth += 1
            current.append(char)
        elif char in CLOSERS:
            depth = max(0, depth - 1)
            current.append(char)
        elif char in separators and depth == 0:
            parts.append(''.join(current))
            current = []
        else:
            current.append(char)
        i += 1

    parts.append(''.join(current))
    return parts
