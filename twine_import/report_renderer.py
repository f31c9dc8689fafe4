#!/usr/bin/env python3
"""
Report Renderer

Renders a ConversionResult as a human-readable conversion report.

Input:
    - ConversionResult (from importer)

Output:
    - HTML or Markdown report text

Responsibilities:
    - Load Jinja2 template
    - Resolve affected passage ids back to titles
    - Add generation metadata (timestamp, source file)
"""

import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

from twine_import.models import ConversionResult, LossReportItem

TEMPLATE_DIR = Path(__file__).parent / 'templates'

TEMPLATES = {
    'html': 'conversion-report.html.jinja2',
    'md': 'conversion-report.md.jinja2',
}


def format_date_for_display(moment: datetime) -> str:
    """Format a timestamp as 'YYYY-MM-DD HH:MM UTC'."""
    return moment.astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')


def _item_rows(items: List[LossReportItem], titles: Dict[str, str]) -> List[Dict]:
    rows = []
    for item in items:
        row = item.to_dict()
        row['passages'] = sorted(titles.get(pid, pid) for pid in item.affected_passage_ids)
        rows.append(row)
    return rows


def build_report_context(result: ConversionResult, source_name: Optional[str] = None) -> Dict:
    """Flatten a ConversionResult into the template's variables.

    Args:
        result: Import result, successful or not
        source_name: Archive file name shown in the report header

    Returns:
        Dict of template variables
    """
    context = {
        'source_name': source_name or 'Twine archive',
        'generated_at': format_date_for_display(datetime.now(timezone.utc)),
        'success': result.success,
        'error': result.error,
        'warnings': list(result.warnings),
        'passage_count': result.passage_count,
        'variable_count': result.variable_count,
        'story': None,
        'variables': [],
        'report': None,
    }

    titles = {}
    if result.story:
        story = result.story
        titles = {pid: passage.title for pid, passage in story.passages.items()}
        start = story.start_passage
        context['story'] = {
            'title': story.metadata.get('title', ''),
            'format': story.metadata.get('format', ''),
            'format_version': story.metadata.get('format_version', ''),
            'dialect': story.metadata.get('dialect', ''),
            'start_passage': start.title if start else '',
        }
        context['variables'] = [v.to_dict() for v in story.variables.values()]

    report = result.loss_report
    if report:
        context['report'] = {
            'quality_percent': round(report.conversion_quality * 100),
            'critical': _item_rows(report.critical, titles),
            'warnings': _item_rows(report.warnings, titles),
            'info': _item_rows(report.info, titles),
            'category_counts': dict(sorted(report.category_counts.items())),
            'total_issues': report.total_issues,
            'affected_passage_count': len(report.affected_passages),
        }

    return context


def render_report(result: ConversionResult, fmt: str = 'html',
                  source_name: Optional[str] = None) -> str:
    """Render the conversion report.

    Args:
        result: Import result
        fmt: 'html' or 'md'
        source_name: Archive file name shown in the report header

    Returns:
        Rendered report text

    Raises:
        ValueError: If fmt is not a known report format
        FileNotFoundError: If the template directory is missing
    """
    if fmt not in TEMPLATES:
        raise ValueError(f"Unknown report format: {fmt} (expected one of {', '.join(TEMPLATES)})")

    if not TEMPLATE_DIR.exists():
        raise FileNotFoundError(f"Template directory not found: {TEMPLATE_DIR}")

    env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), trim_blocks=True, lstrip_blocks=True)
    template = env.get_template(TEMPLATES[fmt])

    return template.render(**build_report_context(result, source_name))


def write_report(result: ConversionResult, output_path: Path, fmt: str = 'html',
                 source_name: Optional[str] = None) -> None:
    """Render the report and write it to output_path."""
    text = render_report(result, fmt, source_name)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(text)

    print(f"✓ Wrote conversion report: {output_path}", file=sys.stderr)
