# models.py
import re
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, List, Dict, Any, Set

from .constants import MARKER_ATTRIBUTE


class ElementCategory(str, Enum):
    TAB = 'tab'
    EXPLICIT = 'explicit'
    NAVIGATION = 'navigation'
    EXPANDABLE = 'expandable'
    FORM = 'form'
    MODAL_TRIGGER = 'modal-trigger'
    GENERIC_CLICKABLE = 'generic-clickable'


class InteractionOutcome(str, Enum):
    SUCCESS = 'success'
    NOT_FOUND = 'not-found'
    NOT_VISIBLE = 'not-visible'
    EXTERNAL = 'external'
    FAILED = 'failed'
    ABANDONED = 'abandoned'

    @property
    def retryable(self) -> bool:
        return self in (InteractionOutcome.NOT_FOUND, InteractionOutcome.FAILED)


class CaptureState(str, Enum):
    PENDING = 'pending'
    BASELINE_CAPTURED = 'baseline_captured'
    DISCOVERING = 'discovering'
    INTERACTING = 'interacting'
    FINALIZING = 'finalizing'
    DEDUPLICATED = 'deduplicated'
    FAILED = 'failed'


@dataclass
class DiscoveredElement:
    selector: str
    category: ElementCategory
    subtype: str
    text: str
    priority: int
    group_key: str = ''
    strategy: str = ''
    marker_id: Optional[str] = None
    fingerprint: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiscoveredElement':
        return cls(
            selector=data['selector'],
            category=ElementCategory(data['category']),
            subtype=data.get('subtype') or '',
            text=(data.get('text') or '')[:100],
            priority=int(data.get('priority') or 0),
            group_key=data.get('groupKey') or data.get('group_key') or data['selector'],
            strategy=data.get('strategy') or '',
            marker_id=data.get('markerId') or data.get('marker_id'),
            fingerprint=data.get('fingerprint'),
        )

    @property
    def cap_key(self) -> str:
        """Key for the per-type cap: the class signature only when classes are what make items look alike."""
        if self.strategy in ('test-id', 'id') or '.' not in self.group_key:
            return self.selector
        return self.group_key


_MARKER_PATTERN = re.compile(r'\[' + re.escape(MARKER_ATTRIBUTE) + r'="[^"]+"\]')


def element_signature(element: DiscoveredElement) -> str:
    """Key identifying the same logical element across discovery rounds."""
    text = ' '.join((element.text or '').lower().split())
    selector = _MARKER_PATTERN.sub(f'[{MARKER_ATTRIBUTE}="*"]', element.selector)
    return f"{element.category.value}_{text}_{selector}"


@dataclass
class BaselineState:
    url: str
    scroll_x: float = 0
    scroll_y: float = 0
    markers: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass
class ChangeReport:
    dom_size_delta: int = 0
    visible_count_delta: int = 0
    selected_count_delta: int = 0
    text_length_delta: int = 0
    new_image_count: int = 0
    hidden_count_delta: int = 0
    main_content_delta: int = 0
    modal_count_delta: int = 0
    url_changed: bool = False
    selection_changed: bool = False
    dom_changed: bool = False
    visibility_changed: bool = False
    text_changed: bool = False
    style_changed: bool = False
    significant_change: bool = False


@dataclass
class ScreenshotRecord:
    filename: str
    timestamp: str
    buffer: bytes
    size: int
    tags: List[str] = field(default_factory=list)
    crop_rect: Optional[Dict[str, float]] = None
    significant_change: Optional[bool] = None

    def to_metadata(self) -> Dict[str, Any]:
        return {
            'filename': self.filename,
            'timestamp': self.timestamp,
            'size': self.size,
            'tags': list(self.tags),
            'crop_rect': self.crop_rect,
            'significant_change': self.significant_change,
        }


@dataclass
class InteractionHistoryEntry:
    index: int
    selector: str
    category: str
    text: str
    outcome: InteractionOutcome
    attempts: int = 1
    linked_screenshot: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['outcome'] = self.outcome.value
        return data


@dataclass
class DeduplicationGroup:
    members: List[int]
    kept: int
    min_similarity: float = 100.0


@dataclass
class RunContext:
    """Disposable per-page state owned by the orchestrator."""
    screenshots: List[ScreenshotRecord] = field(default_factory=list)
    history: List[InteractionHistoryEntry] = field(default_factory=list)
    discovered: List[DiscoveredElement] = field(default_factory=list)
    processed_signatures: Set[str] = field(default_factory=set)
    failed_signatures: Set[str] = field(default_factory=set)
    attempted_interactions: int = 0
    successful_interactions: int = 0
    discovery_rounds: int = 0
    baseline: Optional[BaselineState] = None
    state: CaptureState = CaptureState.PENDING
    started_at: float = field(default_factory=time.monotonic)

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000


@dataclass
class CaptureReport:
    discovered_elements: int = 0
    attempted_interactions: int = 0
    successful_interactions: int = 0
    total_screenshots: int = 0
    screenshots_before_dedup: int = 0
    unique_elements_processed: int = 0
    discovery_rounds: int = 0
    state: str = CaptureState.PENDING.value
    error: Optional[str] = None
    deduplication: Optional[Dict[str, Any]] = None
    history: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CaptureResult:
    screenshots: List[ScreenshotRecord]
    report: CaptureReport


@dataclass
class PageResult:
    url: str
    success: bool
    files: List[str] = field(default_factory=list)
    report: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
