"""
Format Detector

Decides which Twine story format produced an archive and reads its declared
version. can_import() is a cheap presence check used before a full import.
"""

import re
import logging
from typing import Iterable, Optional

from twine_import.config import PASSAGE_TAG, STORY_TAG, UNKNOWN_VERSION
from twine_import.models import Dialect

logger = logging.getLogger(__name__)

# Default when nothing else identifies the format
DEFAULT_DIALECT = Dialect.HARLOWE

FORMAT_VERSION_RE = re.compile(
    r'<' + STORY_TAG + r'\b[^>]*?\bformat-version\s*=\s*"([^"]*)"',
    re.IGNORECASE,
)

# <% %> blocks and inline <script> tags used by JavaScript-based formats (Snowman)
EMBEDDED_SCRIPT_RE = re.compile(r'<%.*?%>|<script\b.*?</script\s*>', re.IGNORECASE | re.DOTALL)

# Body heuristics, checked in order for each passage
CONTENT_SIGNATURES = [
    (Dialect.HARLOWE, re.compile(r'\(\s*(?:set|if|print|put|else-if|unless):', re.IGNORECASE)),
    (Dialect.SUGARCUBE, re.compile(r'<<\s*(?:set|if|print|unset|link|include)\b', re.IGNORECASE)),
    (Dialect.CHAPBOOK, re.compile(r'\[\s*(?:if|unless|else if)\s+[^\]]+\]|\[cont(?:inue|inued|\'d)\]|^--\s*$',
                                  re.IGNORECASE | re.MULTILINE)),
]


def can_import(text: str) -> bool:
    """Return True if the text contains a story or passage container tag."""
    if not isinstance(text, str):
        return False
    lowered = text.lower()
    return f'<{STORY_TAG}' in lowered or f'<{PASSAGE_TAG}' in lowered


def dialect_from_declared(declared_format: Optional[str]) -> Optional[Dialect]:
    """Map a declared format name to a Dialect by case-insensitive prefix.

    Returns None when the name is absent or not one of the known formats.
    """
    if not declared_format:
        return None

    name = declared_format.strip().lower()
    for dialect in Dialect:
        if name.startswith(dialect.value):
            return dialect
    return None


def dialect_from_content(bodies: Iterable[str]) -> Optional[Dialect]:
    """Guess the dialect from passage bodies; None if nothing matches."""
    for body in bodies:
        for dialect, signature in CONTENT_SIGNATURES:
            if signature.search(body or ''):
                return dialect
    return None


def detect_dialect(declared_format: Optional[str], bodies: Optional[Iterable[str]] = None) -> Dialect:
    """Resolve the dialect used by an archive.

    The declared format attribute wins. Otherwise passage bodies (when given)
    are checked for format-specific macros, and Harlowe is the fallback.

    Args:
        declared_format: Value of the format attribute, may be empty
        bodies: Optional passage bodies for content heuristics

    Returns:
        The Dialect to convert with
    """
    dialect = dialect_from_declared(declared_format)
    if dialect:
        return dialect

    if bodies is not None:
        dialect = dialect_from_content(bodies)
        if dialect:
            logger.debug(f"Detected {dialect.value} from passage content")
            return dialect

    return DEFAULT_DIALECT


def get_format_version(text: str) -> str:
    """Return the declared format-version attribute, or 'unknown'."""
    match = FORMAT_VERSION_RE.search(text or '')
    return match.group(1) if match else UNKNOWN_VERSION


def describe_detection(declared_format: Optional[str], dialect: Dialect) -> Optional[str]:
    """Explain a declared format that was replaced by detection.

    Returns None when the declared format is one of the supported dialects
    or when no format was declared at all.
    """
    if not declared_format or dialect_from_declared(declared_format):
        return None
    return (f"Story format '{declared_format}' is not supported; "
            f"converting as {dialect.value.title()}")


def count_embedded_scripts(body: str) -> int:
    """Count JavaScript blocks in a passage body.

    Examples:
        >>> count_embedded_scripts('<% if (s.key) { %>Open<% } %>')
        2
        >>> count_embedded_scripts('Plain prose')
        0
    """
    return len(EMBEDDED_SCRIPT_RE.findall(body or ''))
