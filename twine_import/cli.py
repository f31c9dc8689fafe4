#!/usr/bin/env python3
"""
Command line interface for the Twine importer.

Converts a published Twine 2 archive into a story graph JSON file and,
optionally, a conversion report.

Usage:
    twine-import story.html story.json --report report.html
    twine-import story.html --validate-only
"""

import sys
import json
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from twine_import.importer import import_archive, validate
from twine_import.report_renderer import write_report

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='twine-import',
        description='Convert a Twine 2 archive into a story graph',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert and print the story graph
  %(prog)s story.html

  # Convert to a file with an HTML conversion report
  %(prog)s story.html story.json --report report.html

  # Only check that the archive can be read
  %(prog)s story.html --validate-only

Exit codes:
  0 - Success
  1 - The archive could not be imported
  2 - Error occurred (missing file, unreadable input)
        """
    )

    parser.add_argument('input_html', type=Path,
                        help='Path to Twine archive HTML file')
    parser.add_argument('output_json', type=Path, nargs='?',
                        help='Path to write the story graph JSON (default: stdout)')
    parser.add_argument('--report', type=Path,
                        help='Write a conversion report to this path')
    parser.add_argument('--format', dest='report_format', choices=['html', 'md'], default=None,
                        help='Report format (default: from the report file extension, else html)')
    parser.add_argument('--validate-only', action='store_true',
                        help='Check the archive without converting it')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    return parser


def report_format_for(path: Path, requested: Optional[str]) -> str:
    """Pick the report format from the flag or the file extension."""
    if requested:
        return requested
    return 'md' if path.suffix.lower() in ('.md', '.markdown') else 'html'


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI usage."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if not args.input_html.exists():
        print(f"Error: Input file not found: {args.input_html}", file=sys.stderr)
        return EXIT_ERROR

    try:
        with open(args.input_html, 'r', encoding='utf-8') as f:
            raw_text = f.read()
    except (IOError, UnicodeDecodeError) as e:
        print(f"Error: Cannot read {args.input_html}: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.validate_only:
        problems = validate(raw_text)
        for problem in problems:
            print(f"✗ {problem}", file=sys.stderr)
        if problems:
            return EXIT_FAILURE
        print(f"✓ {args.input_html.name} is a valid Twine archive", file=sys.stderr)
        return EXIT_SUCCESS

    result = import_archive(raw_text, filename=args.input_html.name)

    if args.report:
        write_report(result, args.report, report_format_for(args.report, args.report_format),
                     source_name=args.input_html.name)

    if not result.success:
        print(f"✗ Import failed: {result.error}", file=sys.stderr)
        return EXIT_FAILURE

    if args.output_json:
        args.output_json.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output_json, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2)
        print(f"✓ Wrote story graph: {args.output_json}", file=sys.stderr)
    else:
        json.dump(result.to_dict(), sys.stdout, indent=2)
        print(file=sys.stdout)

    for warning in result.warnings:
        print(f"  ! {warning}", file=sys.stderr)

    quality = result.loss_report.conversion_quality
    print(f"✓ Imported {result.passage_count} passages, {result.variable_count} variables "
          f"(quality {quality:.0%})", file=sys.stderr)

    return EXIT_SUCCESS


if __name__ == '__main__':
    sys.exit(main())
