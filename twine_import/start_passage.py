"""
Start-Passage Resolver
"""

from typing import List, Mapping, Optional, Tuple

from twine_import.config import START_PASSAGE_NAME
from twine_import.models import DestinationPassage


def resolve_start_passage(start_node: str, pid_to_id: Mapping[str, str],
                          passages: List[DestinationPassage]) -> Tuple[str, Optional[str]]:
    """Pick the story's start passage.

    Fallback chain:
    1. The archive's declared startnode, through the pid map
    2. A passage named exactly "Start"
    3. The first passage in document order

    Args:
        start_node: Declared startnode attribute (may be empty)
        pid_to_id: Archive pid -> destination id map
        passages: Converted passages in document order (never empty)

    Returns:
        (passage_id, warning) where warning is None when the declared
        start node was used
    """
    if start_node and start_node in pid_to_id:
        return pid_to_id[start_node], None

    chosen = next((p for p in passages if p.title == START_PASSAGE_NAME), passages[0])
    return chosen.id, f"No start passage declared, using '{chosen.title}'"
