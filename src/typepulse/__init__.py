"""Real-time typing performance analytics and adaptive difficulty"""

from .config import load_config, merge_config
from .difficulty_controller import (DIFFICULTY_LEVELS, PROGRESSION_PHASES,
                                    DifficultyController)
from .event_buffer import CircularEventBuffer
from .exceptions import ConfigError, TypePulseError
from .metrics_calculator import MetricsCalculator
from .models import (AccuracyMetrics, DifficultyAdjustment, DifficultyLevel,
                     KeystrokeEvent, MetricsSnapshot, PerformanceSession,
                     Position, SessionState, Trend)
from .session_controller import SessionController

__version__ = "0.1.0"
