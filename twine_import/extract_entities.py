#!/usr/bin/env python3
"""
Extract Entities Module

Pulls story metadata and raw passages out of a published Twine 2 archive.

This is the first stage of the import pipeline:
Input: archive HTML as a string
Output: ArchiveDocument (story attributes + RawPassageRecord list)

The archive vocabulary is fixed (<tw-storydata>, <tw-passagedata>, the user
<style>/<script> blocks and <tw-tag>), so the scan is regex based rather than
a general HTML parse. Passage bodies are raw Twine markup that an HTML
parser would mangle when the archive was hand edited.

Usage:
    python3 -m twine_import.extract_entities story.html
"""

import re
import sys
import json
import logging
import argparse
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional

from twine_import.config import PASSAGE_TAG, STORY_TAG
from twine_import.models import ArchiveDocument, RawPassageRecord

logger = logging.getLogger(__name__)


class ArchiveError(ValueError):
    """The input cannot be read as a Twine archive."""


class NotAnArchiveError(ArchiveError):
    def __init__(self, message: str = 'Not a valid Twine archive: no <tw-storydata> element found'):
        super().__init__(message)


class NoPassagesError(ArchiveError):
    def __init__(self, message: str = 'No passages found in Twine archive'):
        super().__init__(message)


# =============================================================================
# PATTERNS
# =============================================================================

# Attribute list that tolerates '>' inside quoted values
_ATTRS = r'((?:\s+[\w:-]+(?:\s*=\s*(?:"[^"]*"|\'[^\']*\'|[^\s"\'>]+))?)*)\s*/?'

STORY_OPEN_RE = re.compile(r'<' + STORY_TAG + _ATTRS + r'>', re.IGNORECASE)
STORY_CLOSE_RE = re.compile(r'</' + STORY_TAG + r'\s*>', re.IGNORECASE)
PASSAGE_RE = re.compile(
    r'<' + PASSAGE_TAG + _ATTRS + r'>(.*?)</' + PASSAGE_TAG + r'\s*>',
    re.IGNORECASE | re.DOTALL,
)
STYLE_RE = re.compile(r'<style' + _ATTRS + r'>(.*?)</style\s*>', re.IGNORECASE | re.DOTALL)
SCRIPT_RE = re.compile(r'<script' + _ATTRS + r'>(.*?)</script\s*>', re.IGNORECASE | re.DOTALL)
TAG_COLOR_RE = re.compile(r'<tw-tag' + _ATTRS + r'>', re.IGNORECASE)

ATTRIBUTE_RE = re.compile(r'([\w:-]+)\s*=\s*(?:"([^"]*)"|\'([^\']*)\')')

# &amp; must be decoded last so "&amp;lt;" becomes "&lt;" and not "<"
HTML_ENTITIES = [
    ('&lt;', '<'),
    ('&gt;', '>'),
    ('&quot;', '"'),
    ('&#39;', "'"),
    ('&#x27;', "'"),
    ('&apos;', "'"),
    ('&amp;', '&'),
]


# =============================================================================
# LOW-LEVEL HELPERS
# =============================================================================

def decode_html_entities(text: str) -> str:
    """Decode the entities Twine uses when escaping passage text.

    Args:
        text: Escaped text from the archive

    Returns:
        Text with &amp; &lt; &gt; &quot; and apostrophe entities decoded
    """
    for entity, char in HTML_ENTITIES:
        text = text.replace(entity, char)
    return text


def parse_attributes(attr_text: str) -> Dict[str, str]:
    """Parse key="value" pairs from the inside of a start tag.

    Keys are lower-cased; values are entity-decoded.
    """
    attrs = {}
    for match in ATTRIBUTE_RE.finditer(attr_text or ''):
        value = match.group(2) if match.group(2) is not None else match.group(3)
        attrs[match.group(1).lower()] = decode_html_entities(value)
    return attrs


def parse_number_pair(value: Optional[str]) -> Optional[List[float]]:
    """Parse "a,b" into two numbers; None when missing or malformed.

    Examples:
        >>> parse_number_pair("100,200.5")
        [100, 200.5]
        >>> parse_number_pair("oops") is None
        True
    """
    if not value:
        return None

    parts = value.split(',')
    if len(parts) != 2:
        return None

    numbers = []
    for part in parts:
        try:
            number = float(part.strip())
        except ValueError:
            return None
        numbers.append(int(number) if number.is_integer() else number)
    return numbers


def parse_tags(value: Optional[str]) -> List[str]:
    """Split a space separated tag attribute, dropping duplicates."""
    tags = []
    for tag in (value or '').split():
        if tag not in tags:
            tags.append(tag)
    return tags


# =============================================================================
# PASSAGE EXTRACTION
# =============================================================================

def parse_passage(attr_text: str, body: str, index: int) -> RawPassageRecord:
    """Build a RawPassageRecord from one <tw-passagedata> match.

    Args:
        attr_text: Attribute portion of the start tag
        body: Raw text between the start and end tags
        index: 1-based position in the document, used when pid is missing

    Returns:
        RawPassageRecord with decoded body
    """
    attrs = parse_attributes(attr_text)

    pid = attrs.get('pid') or str(index)
    name = attrs.get('name', '')
    if not name:
        name = f'Untitled Passage {pid}'
        logger.warning(f"Passage {pid} has no name, using '{name}'")

    position_pair = parse_number_pair(attrs.get('position'))
    position = {'x': position_pair[0], 'y': position_pair[1]} if position_pair else {'x': 0, 'y': 0}

    size_pair = parse_number_pair(attrs.get('size'))
    size = {'width': size_pair[0], 'height': size_pair[1]} if size_pair else None

    return RawPassageRecord(
        pid=pid,
        name=name,
        tags=parse_tags(attrs.get('tags')),
        position=position,
        size=size,
        raw_body=decode_html_entities(body),
    )


def _find_role_blocks(pattern: re.Pattern, text: str, role: str) -> str:
    blocks = []
    for match in pattern.finditer(text):
        attrs = parse_attributes(match.group(1))
        if attrs.get('role') == role:
            content = match.group(2).strip()
            if content:
                blocks.append(decode_html_entities(content))
    return '\n\n'.join(blocks)


def extract_archive(html_content: str) -> ArchiveDocument:
    """Parse a Twine archive into an ArchiveDocument.

    This is the main entry point for the extract_entities module.

    Args:
        html_content: Archive HTML as a string

    Returns:
        ArchiveDocument with passages in document order

    Raises:
        NotAnArchiveError: If there is no <tw-storydata> element
        NoPassagesError: If the container holds no <tw-passagedata> elements
    """
    story_match = STORY_OPEN_RE.search(html_content or '')
    if not story_match:
        raise NotAnArchiveError()

    # Only look inside the container
    close_match = STORY_CLOSE_RE.search(html_content, story_match.end())
    container_end = close_match.start() if close_match else len(html_content)
    container = html_content[story_match.end():container_end]

    story_attrs = parse_attributes(story_match.group(1))

    document = ArchiveDocument(
        name=story_attrs.get('name', ''),
        ifid=story_attrs.get('ifid', ''),
        format_name=story_attrs.get('format', ''),
        format_version=story_attrs.get('format-version', ''),
        start_node=story_attrs.get('startnode', ''),
        creator=story_attrs.get('creator', ''),
        creator_version=story_attrs.get('creator-version', ''),
    )

    for index, match in enumerate(PASSAGE_RE.finditer(container), start=1):
        document.passages.append(parse_passage(match.group(1), match.group(2), index))

    if not document.passages:
        raise NoPassagesError()

    document.stylesheet = _find_role_blocks(STYLE_RE, container, 'stylesheet')
    document.script = _find_role_blocks(SCRIPT_RE, container, 'script')

    for match in TAG_COLOR_RE.finditer(container):
        attrs = parse_attributes(match.group(1))
        if attrs.get('name') and attrs.get('color'):
            document.tag_colors[attrs['name']] = attrs['color']

    logger.debug(f"Extracted {len(document.passages)} passages from '{document.name or 'untitled'}'")

    return document


# =============================================================================
# CLI INTERFACE
# =============================================================================

def main():
    """Dump the raw extraction of an archive as JSON."""
    parser = argparse.ArgumentParser(
        description='Extract raw story data from a Twine archive'
    )
    parser.add_argument('input_html', type=Path, help='Path to Twine archive HTML file')

    args = parser.parse_args()

    if not args.input_html.exists():
        print(f"Error: Input file not found: {args.input_html}", file=sys.stderr)
        sys.exit(1)

    with open(args.input_html, 'r', encoding='utf-8') as f:
        html_content = f.read()

    try:
        document = extract_archive(html_content)
    except ArchiveError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    json.dump(asdict(document), sys.stdout, indent=2)
    print(file=sys.stdout)
    print(f"✓ Extracted {len(document.passages)} passages", file=sys.stderr)


if __name__ == '__main__':
    main()
