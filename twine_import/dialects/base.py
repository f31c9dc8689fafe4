"""
Shared machinery for dialect converters.

A converter is an ordered pipeline of text passes. Before the passes run,
its loss rules are matched against the raw body: each match becomes a
LossReportItem and, for features with no destination equivalent, the
matched source text is shelved behind an opaque token so later passes leave
it literal. Rewritten {{ }} fragments are protected the same way.
"""

import re
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from twine_import.config import MAX_NESTING_DEPTH
from twine_import.dialects.expressions import parse_literal
from twine_import.models import (
    Category,
    ConversionOutput,
    Dialect,
    ExtractedVariable,
    LossReportItem,
    Severity,
)

logger = logging.getLogger(__name__)

# Private-use code points never appear in real passage text
SHELF_OPEN = '\ue000'
SHELF_CLOSE = '\ue001'
SHELF_TOKEN_RE = re.compile(SHELF_OPEN + r'(\d+)' + SHELF_CLOSE)

PROTECTED_RE = re.compile(r'\{\{.*?\}\}|' + SHELF_OPEN + r'\d+' + SHELF_CLOSE, re.DOTALL)
CLOSING_TAG_RE = re.compile(r'<<\s*/')


@dataclass(frozen=True)
class LossRule:
    """Pattern for a source feature the destination cannot express.

    With shelve=True every match is kept verbatim in the output.
    """
    pattern: re.Pattern
    feature: str
    category: Category
    severity: Severity
    message: str
    shelve: bool = True


def rule(pattern: str, feature: str, category: Category, severity: Severity,
         message: str, shelve: bool = True, flags: int = re.IGNORECASE) -> LossRule:
    return LossRule(re.compile(pattern, flags), feature, category, severity, message, shelve)


def destination(inner: str) -> str:
    """Wrap text as a destination template fragment."""
    return '{{' + inner + '}}'


def map_unprotected(text: str, fn: Callable[[str], str]) -> str:
    """Apply fn to every stretch of text outside {{ }} fragments and shelf tokens."""
    parts = []
    pos = 0
    for match in PROTECTED_RE.finditer(text):
        if match.start() > pos:
            parts.append(fn(text[pos:match.start()]))
        parts.append(match.group(0))
        pos = match.end()
    if pos < len(text):
        parts.append(fn(text[pos:]))
    return ''.join(parts)


class ConversionContext:
    """Per-passage state for one convert() call."""

    def __init__(self, dialect: Dialect, passage_id: Optional[str] = None):
        self.dialect = dialect
        self.passage_id = passage_id
        self.max_depth = MAX_NESTING_DEPTH
        self.temp_names = set()
        self._shelf: List[str] = []
        self._variables: Dict[str, ExtractedVariable] = {}
        self._loss: Dict[tuple, LossReportItem] = {}

    # -- literal pass-through -------------------------------------------------

    def shelve(self, text: str) -> str:
        """Store text and return the token that stands in for it."""
        self._shelf.append(text)
        return f'{SHELF_OPEN}{len(self._shelf) - 1}{SHELF_CLOSE}'

    def restore(self, text: str) -> str:
        """Put shelved text back, including tokens nested inside shelved text."""
        for _ in range(len(self._shelf) + 1):
            if SHELF_OPEN not in text:
                break
            text = SHELF_TOKEN_RE.sub(lambda m: self._shelf[int(m.group(1))], text)
        return text

    # -- fidelity loss ----------------------------------------------------------

    def add_loss(self, feature: str, category: Category, severity: Severity,
                 message: str = '', original: Optional[str] = None) -> None:
        """Record a loss; repeats of the same feature in a passage are counted."""
        key = (feature, category, severity)
        item = self._loss.get(key)
        if item:
            item.occurrences += 1
            return

        affected = {self.passage_id} if self.passage_id else set()
        self._loss[key] = LossReportItem(
            feature=feature,
            category=category,
            severity=severity,
            message=message,
            affected_passage_ids=affected,
            original=original,
        )

    # -- variables --------------------------------------------------------------

    def assign(self, name: str, value: str) -> None:
        """Record an assignment; the first literal declaration of a name wins.

        Assignments of computed expressions ($gold + 10) carry no usable
        initial value, so they only register the name.
        """
        existing = self._variables.get(name)
        if existing and existing.declared:
            return

        inferred_type, initial, is_literal = parse_literal(self.restore(value))
        if not is_literal:
            self.reference(name)
            return
        self._variables[name] = ExtractedVariable(name, inferred_type, initial, declared=True)

    def reference(self, name: str) -> None:
        """Record a read of a variable that may never be assigned."""
        if name not in self._variables:
            self._variables[name] = ExtractedVariable(name, 'string', '', declared=False)

    def output(self, content: str) -> ConversionOutput:
        return ConversionOutput(
            content=self.restore(content),
            variables_found=list(self._variables.values()),
            loss_items=list(self._loss.values()),
        )


class DialectConverter:
    """Base class: subclasses set dialect and loss_rules and list their passes."""

    dialect: Dialect = None
    loss_rules: List[LossRule] = []

    def passes(self) -> List[Callable[[str, ConversionContext], str]]:
        raise NotImplementedError

    def convert(self, raw_body: str, passage_id: Optional[str] = None) -> ConversionOutput:
        """Convert one passage body into destination syntax.

        Args:
            raw_body: Entity-decoded passage text
            passage_id: Destination id of the passage, recorded on loss items

        Returns:
            ConversionOutput with content, variables and loss items
        """
        context = ConversionContext(self.dialect, passage_id)
        text = self.apply_loss_rules(raw_body or '', context)

        for rewrite in self.passes():
            text = rewrite(text, context)

        result = context.output(text)
        if result.loss_items:
            logger.debug(f"{self.dialect.value} passage {passage_id}: "
                         f"{len(result.loss_items)} unsupported feature(s)")
        return result

    def apply_loss_rules(self, text: str, context: ConversionContext) -> str:
        for loss_rule in self.loss_rules:
            text = self._apply_rule(loss_rule, text, context)
        return text

    @staticmethod
    def _apply_rule(loss_rule: LossRule, text: str, context: ConversionContext) -> str:
        """Record and optionally shelve every match of one rule.

        A feature containing {name} is filled from the pattern's name group.
        Closing tags (<</name>>) are shelved but share their opener's item.
        """
        def record(match):
            source = match.group(0)
            if not CLOSING_TAG_RE.match(source):
                name = (match.groupdict().get('name') or '').lower()
                context.add_loss(loss_rule.feature.format(name=name), loss_rule.category,
                                 loss_rule.severity, loss_rule.message,
                                 original=context.restore(source)[:200])
            return context.shelve(source) if loss_rule.shelve else source

        return loss_rule.pattern.sub(record, text)
