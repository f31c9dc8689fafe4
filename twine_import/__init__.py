"""
Twine Archive Importer

This library converts Twine 2 published archives (HTML with <tw-storydata>
and <tw-passagedata> tags) into a story graph for a {{ }} template engine.

Modules:
- extract_entities: Pull story metadata and raw passages out of the archive
- detect_format: Decide which story format (Harlowe, SugarCube, Chapbook) wrote it
- dialects: One syntax converter per story format
- resolve_links: Turn [[links]] into choices
- loss_report: Aggregate conversion issues into a quality score
- start_passage: Pick the entry passage
- importer: Run the whole pipeline and return a ConversionResult
- report_renderer: Render a ConversionResult as HTML or Markdown
"""

from twine_import.importer import TwineImporter, import_archive, validate
from twine_import.detect_format import can_import, detect_dialect, get_format_version
from twine_import.models import ConversionResult, Dialect

__version__ = "1.0.0"

__all__ = [
    'TwineImporter',
    'import_archive',
    'validate',
    'can_import',
    'detect_dialect',
    'get_format_version',
    'ConversionResult',
    'Dialect',
]
