"""
Loss/Quality Reporter

Aggregates the per-passage LossReportItems into one LossReport and scores
the conversion.
"""

from typing import Iterable, List

from twine_import.config import CRITICAL_PENALTY, QUALITY_FLOOR, WARNING_PENALTY
from twine_import.models import LossReport, LossReportItem, Severity


def conversion_quality(critical_count: int, warning_count: int) -> float:
    """Score a conversion in (0, 1].

    Examples:
        >>> conversion_quality(0, 0)
        1.0
        >>> conversion_quality(2, 1)
        0.77
        >>> conversion_quality(50, 0)
        0.01
    """
    quality = 1.0 - CRITICAL_PENALTY * critical_count - WARNING_PENALTY * warning_count
    return round(min(1.0, max(QUALITY_FLOOR, quality)), 4)


def aggregate(items: Iterable[LossReportItem]) -> LossReport:
    """Bucket loss items by severity and compute the quality score.

    Items are not merged across passages; each passage contributes its own
    item per feature and each item is penalised once.

    Args:
        items: Loss items from every converted passage, plus story-level items

    Returns:
        LossReport with severity buckets, affected passages and quality
    """
    report = LossReport()
    affected: List[str] = []

    for item in items:
        if item.severity == Severity.CRITICAL:
            report.critical.append(item)
        elif item.severity == Severity.WARNING:
            report.warnings.append(item)
        else:
            report.info.append(item)

        category = item.category.value
        report.category_counts[category] = report.category_counts.get(category, 0) + 1

        for passage_id in sorted(item.affected_passage_ids):
            if passage_id not in affected:
                affected.append(passage_id)

    report.affected_passages = affected
    report.total_issues = len(report.critical) + len(report.warnings) + len(report.info)
    report.conversion_quality = conversion_quality(len(report.critical), len(report.warnings))
    return report
