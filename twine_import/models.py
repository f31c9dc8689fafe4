"""
Data model for the Twine importer.

Raw* types describe what was read from the archive and are discarded once a
passage is converted. Destination* types, the StoryGraph and the LossReport
are returned to the caller inside a ConversionResult.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class Dialect(str, Enum):
    """Story formats the importer can convert."""
    HARLOWE = 'harlowe'
    SUGARCUBE = 'sugarcube'
    CHAPBOOK = 'chapbook'


class Severity(str, Enum):
    CRITICAL = 'critical'
    WARNING = 'warning'
    INFO = 'info'


class Category(str, Enum):
    SCRIPTING = 'scripting'
    UI = 'ui'
    DATA_STRUCTURE = 'data-structure'
    TIMING = 'timing'
    STRUCTURE = 'structure'
    VARIABLES = 'variables'
    OTHER = 'other'


# =============================================================================
# RAW ARCHIVE DATA
# =============================================================================

@dataclass
class RawPassageRecord:
    """One <tw-passagedata> element, entity-decoded."""
    pid: str
    name: str
    tags: List[str] = field(default_factory=list)
    position: Dict[str, float] = field(default_factory=lambda: {'x': 0, 'y': 0})
    size: Optional[Dict[str, float]] = None
    raw_body: str = ''


@dataclass
class ArchiveDocument:
    """Story-level attributes plus the passages in document order."""
    name: str = ''
    ifid: str = ''
    format_name: str = ''
    format_version: str = ''
    start_node: str = ''
    creator: str = ''
    creator_version: str = ''
    passages: List[RawPassageRecord] = field(default_factory=list)
    stylesheet: str = ''
    script: str = ''
    tag_colors: Dict[str, str] = field(default_factory=dict)


# =============================================================================
# CONVERSION OUTPUT
# =============================================================================

@dataclass
class ExtractedVariable:
    """A story variable found while converting passage text.

    declared is False when the variable was only ever read, in which case a
    later assignment is allowed to supply the initial value.
    """
    name: str
    inferred_type: str  # 'number', 'string', 'boolean' or 'list'
    initial_value: Any
    declared: bool = True

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class LossReportItem:
    """A source feature that could not be rewritten faithfully."""
    feature: str
    category: Category
    severity: Severity
    message: str = ''
    affected_passage_ids: Set[str] = field(default_factory=set)
    occurrences: int = 1
    original: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'feature': self.feature,
            'category': self.category.value,
            'severity': self.severity.value,
            'message': self.message,
            'affected_passage_ids': sorted(self.affected_passage_ids),
            'occurrences': self.occurrences,
            'original': self.original,
        }


@dataclass
class ConversionOutput:
    """What a dialect converter returns for one passage body."""
    content: str
    variables_found: List[ExtractedVariable] = field(default_factory=list)
    loss_items: List[LossReportItem] = field(default_factory=list)


@dataclass
class LossReport:
    critical: List[LossReportItem] = field(default_factory=list)
    warnings: List[LossReportItem] = field(default_factory=list)
    info: List[LossReportItem] = field(default_factory=list)
    affected_passages: List[str] = field(default_factory=list)
    conversion_quality: float = 1.0
    category_counts: Dict[str, int] = field(default_factory=dict)
    total_issues: int = 0

    def to_dict(self) -> Dict:
        return {
            'critical': [item.to_dict() for item in self.critical],
            'warnings': [item.to_dict() for item in self.warnings],
            'info': [item.to_dict() for item in self.info],
            'affected_passages': list(self.affected_passages),
            'conversion_quality': self.conversion_quality,
            'category_counts': dict(self.category_counts),
            'total_issues': self.total_issues,
        }


# =============================================================================
# DESTINATION STORY GRAPH
# =============================================================================

@dataclass
class DestinationChoice:
    id: str
    text: str
    target_passage_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class DestinationPassage:
    id: str
    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    position: Dict[str, float] = field(default_factory=lambda: {'x': 0, 'y': 0})
    size: Optional[Dict[str, float]] = None
    choices: List[DestinationChoice] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class StoryGraph:
    metadata: Dict[str, Any]
    start_passage_id: str
    passages: Dict[str, DestinationPassage] = field(default_factory=dict)
    variables: Dict[str, ExtractedVariable] = field(default_factory=dict)
    stylesheet: str = ''
    tag_colors: Dict[str, str] = field(default_factory=dict)

    def get_passage_by_title(self, title: str) -> Optional[DestinationPassage]:
        """Return the first passage with the given title, or None."""
        for passage in self.passages.values():
            if passage.title == title:
                return passage
        return None

    @property
    def start_passage(self) -> Optional[DestinationPassage]:
        return self.passages.get(self.start_passage_id)

    def to_dict(self) -> Dict:
        return {
            'metadata': dict(self.metadata),
            'start_passage_id': self.start_passage_id,
            'passages': {pid: p.to_dict() for pid, p in self.passages.items()},
            'variables': {name: v.to_dict() for name, v in self.variables.items()},
            'stylesheet': self.stylesheet,
            'tag_colors': dict(self.tag_colors),
        }


@dataclass
class ConversionResult:
    """Outcome of one import.

    success=False always carries an error message and no story.
    """
    success: bool
    story: Optional[StoryGraph] = None
    passage_count: int = 0
    variable_count: int = 0
    warnings: List[str] = field(default_factory=list)
    loss_report: Optional[LossReport] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> 'ConversionResult':
        return cls(success=False, error=error or 'Unknown import error')

    def to_dict(self) -> Dict:
        return {
            'success': self.success,
            'story': self.story.to_dict() if self.story else None,
            'passage_count': self.passage_count,
            'variable_count': self.variable_count,
            'warnings': list(self.warnings),
            'loss_report': self.loss_report.to_dict() if self.loss_report else None,
            'error': self.error,
        }
