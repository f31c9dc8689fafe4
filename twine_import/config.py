"""
Importer configuration.

Constants shared by the pipeline stages and normalisation of the caller's
options mapping.
"""

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Archive vocabulary
STORY_TAG = 'tw-storydata'
PASSAGE_TAG = 'tw-passagedata'

# Start passage fallback
START_PASSAGE_NAME = 'Start'

# Returned by get_format_version() when the attribute is missing
UNKNOWN_VERSION = 'unknown'

DEFAULT_STORY_TITLE = 'Untitled Story'

# Conversion quality penalties
CRITICAL_PENALTY = 0.1
WARNING_PENALTY = 0.03
QUALITY_FLOOR = 0.01

# Deepest conditional/hook nesting a converter will descend into
MAX_NESTING_DEPTH = 32

# No converter-tunable options exist yet
RECOGNIZED_OPTIONS = frozenset()


def normalize_options(options: Optional[Dict]) -> Dict:
    """Return a copy of the recognised options, dropping anything else.

    Args:
        options: Caller-supplied options mapping (may be None)

    Returns:
        Dict containing only recognised keys
    """
    if not options:
        return {}

    normalized = {}
    for key, value in options.items():
        if key in RECOGNIZED_OPTIONS:
            normalized[key] = value
        else:
            logger.debug(f"Ignoring unrecognized import option: {key}")

    return normalized
