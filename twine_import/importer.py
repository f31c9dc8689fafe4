#!/usr/bin/env python3
"""
Importer

Runs the whole pipeline for one archive:

    presence check -> extract_archive -> detect_dialect -> convert passages
    -> resolve links -> merge variables -> start passage -> loss report

Passages are converted and given ids in a first phase; links are resolved
in a second phase once the complete name -> id map exists. Nothing is kept
between calls.
"""

import uuid
import logging
from types import MappingProxyType
from typing import Dict, List, Optional

from twine_import.config import DEFAULT_STORY_TITLE, normalize_options
from twine_import.detect_format import (
    can_import,
    count_embedded_scripts,
    describe_detection,
    detect_dialect,
    get_format_version,
)
from twine_import.dialects import get_converter
from twine_import.extract_entities import ArchiveError, NotAnArchiveError, extract_archive
from twine_import.loss_report import aggregate
from twine_import.models import (
    Category,
    ConversionResult,
    DestinationPassage,
    LossReportItem,
    Severity,
    StoryGraph,
)
from twine_import.resolve_links import count_conditional_links, resolve_links
from twine_import.start_passage import resolve_start_passage
from twine_import.variables import merge_variables

logger = logging.getLogger(__name__)


def _story_script_item(script: str) -> LossReportItem:
    return LossReportItem(
        feature='Story JavaScript',
        category=Category.SCRIPTING,
        severity=Severity.CRITICAL,
        message='The story JavaScript block was not imported',
        original=script[:200],
    )


def _passage_item(feature: str, category: Category, severity: Severity, message: str,
                  passage_id: str, occurrences: int) -> LossReportItem:
    return LossReportItem(
        feature=feature,
        category=category,
        severity=severity,
        message=message,
        affected_passage_ids={passage_id},
        occurrences=occurrences,
    )


def _convert(raw_text: str, label: str) -> ConversionResult:
    if not can_import(raw_text):
        raise NotAnArchiveError()

    document = extract_archive(raw_text)
    warnings: List[str] = []

    title = document.name.strip()
    if not title:
        title = DEFAULT_STORY_TITLE
        warnings.append(f"Story has no title, using '{DEFAULT_STORY_TITLE}'")

    dialect = detect_dialect(document.format_name, [p.raw_body for p in document.passages])
    note = describe_detection(document.format_name, dialect)
    if note:
        warnings.append(note)
    logger.info(f"Importing {len(document.passages)} passages from {label} as {dialect.value}")

    # Phase 1: ids for every passage before any link is resolved
    pid_to_id: Dict[str, str] = {}
    name_to_id: Dict[str, str] = {}
    ids = []
    for record in document.passages:
        passage_id = uuid.uuid4().hex
        ids.append(passage_id)
        pid_to_id.setdefault(record.pid, passage_id)
        if record.name in name_to_id:
            warnings.append(f'Duplicate passage name "{record.name}"; links go to the first one')
        else:
            name_to_id[record.name] = passage_id

    converter = get_converter(dialect)
    passages: List[DestinationPassage] = []
    per_passage_variables = []
    loss_items: List[LossReportItem] = []

    for record, passage_id in zip(document.passages, ids):
        output = converter.convert(record.raw_body, passage_id)
        passages.append(DestinationPassage(
            id=passage_id,
            title=record.name,
            content=output.content,
            tags=list(record.tags),
            position=dict(record.position),
            size=dict(record.size) if record.size else None,
        ))
        per_passage_variables.append(output.variables_found)
        loss_items.extend(output.loss_items)

        scripts = count_embedded_scripts(record.raw_body) if note else 0
        if scripts:
            loss_items.append(_passage_item(
                'JavaScript Expressions', Category.SCRIPTING, Severity.CRITICAL,
                f"{document.format_name} JavaScript blocks were kept as text and will not run",
                passage_id, scripts))

    if document.script:
        loss_items.append(_story_script_item(document.script))

    # Phase 2: links, against frozen maps
    names = MappingProxyType(name_to_id)
    for passage in passages:
        gated = count_conditional_links(passage.content)
        if gated:
            loss_items.append(_passage_item(
                'Conditional Links', Category.STRUCTURE, Severity.WARNING,
                'Links inside conditional text become choices that are always offered',
                passage.id, gated))
        resolve_links(passage, names, warnings)

    variables = merge_variables(per_passage_variables)
    if variables:
        warnings.append(f"{len(variables)} variable(s) extracted; verify their types and initial values")

    start_id, start_warning = resolve_start_passage(
        document.start_node, MappingProxyType(pid_to_id), passages)
    if start_warning:
        warnings.append(start_warning)

    story = StoryGraph(
        metadata={
            'title': title,
            'ifid': document.ifid,
            'format': document.format_name,
            'format_version': document.format_version or get_format_version(raw_text),
            'dialect': dialect.value,
            'creator': document.creator,
            'creator_version': document.creator_version,
        },
        start_passage_id=start_id,
        passages={passage.id: passage for passage in passages},
        variables=variables,
        stylesheet=document.stylesheet,
        tag_colors=dict(document.tag_colors),
    )

    loss_report = aggregate(loss_items)
    logger.info(f"Conversion quality for {label}: {loss_report.conversion_quality:.0%} "
                f"({loss_report.total_issues} issue(s))")

    return ConversionResult(
        success=True,
        story=story,
        passage_count=len(passages),
        variable_count=len(variables),
        warnings=warnings,
        loss_report=loss_report,
    )


def import_archive(raw_text: str, options: Optional[Dict] = None,
                   filename: Optional[str] = None) -> ConversionResult:
    """Convert a Twine archive into a story graph.

    Never raises: structural problems and unexpected failures both come
    back as ConversionResult(success=False, error=...).

    Args:
        raw_text: Archive HTML
        options: Import options; none are defined yet and unknown keys are ignored
        filename: Display name used in log messages only

    Returns:
        ConversionResult
    """
    label = filename or '<archive>'
    # No option changes conversion yet; unknown keys are logged and dropped
    options = normalize_options(options)

    try:
        return _convert(raw_text, label)
    except ArchiveError as e:
        logger.warning(f"{label}: {e}")
        return ConversionResult.failure(str(e))
    except Exception as e:
        logger.exception(f"Unexpected error importing {label}")
        return ConversionResult.failure(f"Import failed: {e}")


def validate(raw_text: str) -> List[str]:
    """Check that an archive can be imported, without converting it.

    Returns:
        Human-readable problems; empty when the archive is well-formed
    """
    if not can_import(raw_text):
        return [str(NotAnArchiveError())]

    try:
        extract_archive(raw_text)
    except ArchiveError as e:
        return [str(e)]

    return []


class TwineImporter:
    """Importer descriptor for callers that pick importers by file type."""

    name = 'Twine'
    format = 'twine'
    extensions = ('.html', '.htm')
    description = 'Twine 2 published stories (Harlowe, SugarCube, Chapbook)'

    def can_import(self, data) -> bool:
        return can_import(data)

    def import_archive(self, raw_text: str, options: Optional[Dict] = None,
                       filename: Optional[str] = None) -> ConversionResult:
        return import_archive(raw_text, options, filename)

    def validate(self, raw_text: str) -> List[str]:
        return validate(raw_text)

    def get_format_version(self, raw_text: str) -> str:
        return get_format_version(raw_text)
