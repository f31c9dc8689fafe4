#!/usr/bin/env python3
"""
Link Resolver

Turns [[...]] links in converted passage content into DestinationChoice
entries and removes the link markup from the prose.

Runs after every passage has been converted, since targets are looked up
in the complete passage name map.
"""

import re
import uuid
from typing import List, Mapping, Optional, Tuple

from twine_import.models import DestinationChoice, DestinationPassage

LINK_RE = re.compile(r'\[\[([^\]]+)\]\]')
# Destination fragments that open and close a conditional block, plus links
BLOCK_SCAN_RE = re.compile(r'\{\{\s*(?:(if)\s(?:(?!\}\}).)*?\bthen|(end))\s*\}\}|\[\[[^\]]+\]\]', re.DOTALL)


# =============================================================================
# LINK PARSING
# =============================================================================

def parse_link(link_text: str) -> Tuple[str, str]:
    """Parse a Twine link into its display text and target passage name.

    Supports four link formats:
    - [[target]]
    - [[display->target]]
    - [[target<-display]]
    - [[display|target]]

    Args:
        link_text: The link text to parse (without surrounding [[ ]])

    Returns:
        (display_text, target) tuple

    Examples:
        >>> parse_link('Click here->Destination')
        ('Click here', 'Destination')
        >>> parse_link('Destination<-Click here')
        ('Click here', 'Destination')
        >>> parse_link('Go|Cellar')
        ('Go', 'Cellar')
        >>> parse_link('Cellar')
        ('Cellar', 'Cellar')
    """
    # [[display->target]]
    if '->' in link_text:
        text, target = link_text.rsplit('->', 1)
    # [[target<-display]]
    elif '<-' in link_text:
        target, text = link_text.split('<-', 1)
    # [[display|target]]
    elif '|' in link_text:
        text, target = link_text.split('|', 1)
    # [[target]]
    else:
        text = target = link_text

    return text.strip(), target.strip()


def extract_links(content: str) -> List[Tuple[str, str]]:
    """Extract (display_text, target) for every link, left to right.

    Repeated links are kept; each one becomes its own choice.
    """
    return [parse_link(link) for link in LINK_RE.findall(content)]


# =============================================================================
# CONTENT CLEANUP
# =============================================================================

def is_link_line(line: str) -> bool:
    """Check if a line holds nothing but links.

    Examples:
        >>> is_link_line("[[Continue]]")
        True
        >>> is_link_line("  [[North]] [[South->Cellar]]  ")
        True
        >>> is_link_line("Text before [[link]]")
        False
        >>> is_link_line("")
        False
    """
    if not LINK_RE.search(line):
        return False
    return not LINK_RE.sub('', line).strip()


def strip_links(content: str) -> str:
    """Remove link markup now that links are stored as choices.

    Lines holding only links are dropped. Links inside prose are replaced
    by their display text so the sentence still reads.
    """
    lines = [line for line in content.split('\n') if not is_link_line(line)]
    text = '\n'.join(lines)
    text = LINK_RE.sub(lambda m: parse_link(m.group(1))[0], text)

    # Collapse the gaps dropped lines leave behind
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip('\n')


# =============================================================================
# RESOLUTION
# =============================================================================

def count_conditional_links(content: str) -> int:
    """Count links that sit inside a {{if ...}} block.

    Choices are always offered, so such links lose the condition guarding
    them. A block left open runs to the end of the passage.

    Examples:
        >>> count_conditional_links('{{if key then}}[[Open->Vault]]{{end}} [[Leave]]')
        1
        >>> count_conditional_links('[[North]] [[South]]')
        0
    """
    depth = 0
    count = 0
    for match in BLOCK_SCAN_RE.finditer(content):
        if match.group(1):
            depth += 1
        elif match.group(2):
            depth = max(0, depth - 1)
        elif depth:
            count += 1
    return count


def resolve_links(passage: DestinationPassage, name_to_id: Mapping[str, str],
                  warnings: List[str]) -> DestinationPassage:
    """Build choices for one passage and strip its link markup.

    Args:
        passage: Converted passage whose content still carries [[links]]
        name_to_id: Complete passage name -> destination id map
        warnings: Result warnings list; broken links are appended here

    Returns:
        The same passage, with choices filled in and content cleaned
    """
    choices = []
    for text, target in extract_links(passage.content):
        target_id: Optional[str] = name_to_id.get(target)
        if target_id is None:
            warnings.append(f'Broken link: "{target}" in passage "{passage.title}"')

        choices.append(DestinationChoice(
            id=uuid.uuid4().hex,
            text=text,
            target_passage_id=target_id,
        ))

    passage.choices = choices
    passage.content = strip_links(passage.content)
    return passage
