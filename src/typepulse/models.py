"""
Data Model for Typing Performance Analytics

Records shared by the event buffer, the metrics calculator and the session
and difficulty controllers. Timestamps and durations are milliseconds.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

BACKSPACE_KEYS = frozenset({'Backspace', 'Delete'})

# (expected, actual) -> occurrences
ErrorPatterns = Dict[Tuple[str, str], int]


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class Trend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class DifficultyAdjustment(str, Enum):
    ADVANCE = "advance"
    HOLD = "hold"
    REGRESS = "regress"


@dataclass(frozen=True)
class Position:
    """Cursor location of a keystroke in the practice text"""
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class KeystrokeEvent:
    """Represents a single keystroke event"""
    timestamp: float
    key: str
    expected: str
    is_correct: bool
    time_delta: float  # since the previous keystroke
    position: Position = field(default_factory=Position)

    @property
    def is_backspace(self) -> bool:
        return self.key in BACKSPACE_KEYS


@dataclass(frozen=True)
class AccuracyMetrics:
    """Accuracy breakdown; percentages except correction_ratio (0-1)"""
    raw: float = 0.0
    adjusted: float = 0.0
    error_rate: float = 0.0
    correction_ratio: float = 0.0


@dataclass(frozen=True)
class KeystrokeHeat:
    """Timing and error distribution for one key"""
    key: str
    average_time: float
    frequency: int
    error_rate: float


@dataclass(frozen=True)
class MetricsSnapshot:
    """Read-only view of the latest metrics recompute"""
    wpm: int = 0
    # 100 until there is something to measure
    accuracy: float = 100.0
    consistency: float = 0.0
    error_patterns: ErrorPatterns = field(default_factory=dict)
    keystroke_latency: List[float] = field(default_factory=list)
    heatmap: List[KeystrokeHeat] = field(default_factory=list)

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization"""
        return {
            'wpm': self.wpm,
            'accuracy': self.accuracy,
            'consistency': self.consistency,
            'error_patterns': {f"{expected}->{actual}": count
                               for (expected, actual), count in self.error_patterns.items()},
            'keystroke_latency': list(self.keystroke_latency),
            'heatmap': [asdict(heat) for heat in self.heatmap],
        }


@dataclass(frozen=True)
class PerformanceSession:
    """One bounded practice attempt, from start to end"""
    id: str
    start_time: float
    drill_type: str
    target_wpm: float
    end_time: Optional[float] = None
    final_wpm: int = 0
    accuracy: AccuracyMetrics = field(default_factory=AccuracyMetrics)
    keystrokes: Tuple[KeystrokeEvent, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.end_time is not None

    @property
    def duration_ms(self) -> float:
        if self.end_time is None:
            return 0.0
        return max(0.0, self.end_time - self.start_time)

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization"""
        result = asdict(self)
        result['keystrokes'] = [asdict(k) for k in self.keystrokes]
        return result


@dataclass(frozen=True)
class DifficultyMetrics:
    """Qualitative complexity dimensions, each on a 1-10 scale"""
    text_complexity: int  # readability
    keyboard_density: int  # key pattern difficulty
    conceptual_load: int  # programming concept complexity
    time_constraint: int  # session time pressure


@dataclass(frozen=True)
class DifficultyLevel:
    id: str
    name: str
    description: str
    metrics: DifficultyMetrics
    target_wpm: float
    target_accuracy: float
    session_duration: int  # minutes

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class ProgressionPhase:
    phase: int
    name: str
    description: str
    duration: str
    goal_wpm: float
    goal_accuracy: float
    drill_types: Tuple[str, ...]


@dataclass
class PerformanceAnalysis:
    """Aggregate statistics over the recent sessions at one level"""
    avg_wpm: float = 0.0
    avg_accuracy: float = 0.0
    consistency: float = 0.0
    error_patterns: ErrorPatterns = field(default_factory=dict)
    trend: Trend = Trend.STABLE
    session_count: int = 0
