"""
Cross-passage variable merge.

Passages are visited in document order and the first declaration of a name
wins. A name that was only read so far holds a placeholder that a later
literal declaration may replace.
"""

from typing import Dict, Iterable, List

from twine_import.models import ExtractedVariable


def merge_variables(per_passage: Iterable[List[ExtractedVariable]]) -> Dict[str, ExtractedVariable]:
    """Merge per-passage variable lists into one name -> variable map.

    Args:
        per_passage: Variable lists, one per passage, in document order

    Returns:
        Dict with one entry per distinct variable name
    """
    merged: Dict[str, ExtractedVariable] = {}

    for variables in per_passage:
        for variable in variables:
            existing = merged.get(variable.name)
            if existing is None or (variable.declared and not existing.declared):
                merged[variable.name] = variable

    return merged
