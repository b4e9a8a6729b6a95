"""
Adaptive Difficulty Controller

Keeps a bounded history of completed practice sessions and decides, from the
recent sessions at the current level, whether the learner should advance,
hold, or drop back one step on a fixed ladder of difficulty levels.
"""

import logging
from collections import Counter, deque
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import merge_config
from .models import (DifficultyAdjustment, DifficultyLevel, DifficultyMetrics,
                     PerformanceAnalysis, PerformanceSession, ProgressionPhase,
                     Trend)

DIFFICULTY_LEVELS: Tuple[DifficultyLevel, ...] = (
    DifficultyLevel(
        id='beginner-1', name='Function Names',
        description='Basic function names and identifiers',
        metrics=DifficultyMetrics(text_complexity=2, keyboard_density=3, conceptual_load=1, time_constraint=2),
        target_wpm=35, target_accuracy=97, session_duration=3,
    ),
    DifficultyLevel(
        id='beginner-2', name='Simple Patterns',
        description='Basic syntax patterns and keywords',
        metrics=DifficultyMetrics(text_complexity=3, keyboard_density=4, conceptual_load=2, time_constraint=3),
        target_wpm=40, target_accuracy=95, session_duration=4,
    ),
    DifficultyLevel(
        id='intermediate-1', name='Query Grammar',
        description='Query patterns and object structures',
        metrics=DifficultyMetrics(text_complexity=4, keyboard_density=5, conceptual_load=4, time_constraint=4),
        target_wpm=50, target_accuracy=95, session_duration=4,
    ),
    DifficultyLevel(
        id='intermediate-2', name='Pipeline Patterns',
        description='Function composition and chaining',
        metrics=DifficultyMetrics(text_complexity=6, keyboard_density=6, conceptual_load=6, time_constraint=5),
        target_wpm=55, target_accuracy=94, session_duration=5,
    ),
    DifficultyLevel(
        id='advanced-1', name='CRUD Endpoints',
        description='Complete API endpoint patterns',
        metrics=DifficultyMetrics(text_complexity=7, keyboard_density=7, conceptual_load=7, time_constraint=6),
        target_wpm=60, target_accuracy=93, session_duration=6,
    ),
    DifficultyLevel(
        id='advanced-2', name='Error Handling',
        description='Complex error handling and edge cases',
        metrics=DifficultyMetrics(text_complexity=8, keyboard_density=8, conceptual_load=8, time_constraint=7),
        target_wpm=65, target_accuracy=92, session_duration=7,
    ),
    DifficultyLevel(
        id='expert-1', name='Full Integration',
        description='Complete system patterns with caching',
        metrics=DifficultyMetrics(text_complexity=9, keyboard_density=9, conceptual_load=9, time_constraint=8),
        target_wpm=70, target_accuracy=91, session_duration=8,
    ),
    DifficultyLevel(
        id='expert-2', name='Master Level',
        description='Complex architectural patterns',
        metrics=DifficultyMetrics(text_complexity=10, keyboard_density=10, conceptual_load=10, time_constraint=10),
        target_wpm=75, target_accuracy=90, session_duration=10,
    ),
)

PROGRESSION_PHASES: Tuple[ProgressionPhase, ...] = (
    ProgressionPhase(
        phase=1, name='Foundation Building',
        description='Build muscle memory for basic patterns', duration='1-2 weeks',
        goal_wpm=45, goal_accuracy=97,
        drill_types=('function-names', 'basic-syntax', 'identifiers'),
    ),
    ProgressionPhase(
        phase=2, name='Pattern Recognition',
        description='Master common programming patterns', duration='1-2 weeks',
        goal_wpm=55, goal_accuracy=95,
        drill_types=('query-grammar', 'object-patterns', 'array-methods'),
    ),
    ProgressionPhase(
        phase=3, name='Pipeline Mastery',
        description='Fluent function composition', duration='1-2 weeks',
        goal_wpm=65, goal_accuracy=94,
        drill_types=('pipeline-patterns', 'composition', 'async-patterns'),
    ),
    ProgressionPhase(
        phase=4, name='Integration Expertise',
        description='Complete endpoint implementation', duration='2-3 weeks',
        goal_wpm=70, goal_accuracy=92,
        drill_types=('crud-endpoints', 'error-handling', 'integration-patterns'),
    ),
)


class DifficultyController:
    """Chooses the next difficulty level from recent session history"""

    def __init__(self, starting_level: Optional[str] = None, config: Optional[Dict] = None,
                 levels: Sequence[DifficultyLevel] = DIFFICULTY_LEVELS):
        self.config = merge_config(config)
        self.logger = logging.getLogger(__name__)

        settings = self.config['difficulty']
        self.target_accuracy = settings['target_accuracy']
        self.wpm_advance_ratio = settings['wpm_advance_ratio']
        self.min_consistency = settings['min_consistency']
        self.regress_accuracy = settings['regress_accuracy']
        self.wpm_regress_ratio = settings['wpm_regress_ratio']
        self.recommend_wpm_ratio = settings['recommend_wpm_ratio']
        self.trend_threshold = settings['trend_threshold']
        self.max_error_patterns = settings['max_error_patterns']
        self.min_sessions = settings['min_sessions']
        self.level_sample_size = settings['level_sample_size']

        self.levels: Tuple[DifficultyLevel, ...] = tuple(levels)
        if not self.levels:
            raise ValueError("at least one difficulty level is required")

        # Oldest sessions fall off once the cap is reached
        self.history: deque = deque(maxlen=settings['history_limit'])

        level_id = starting_level or settings['starting_level']
        level = self.get_level(level_id)
        if level is None:
            self.logger.warning(f"Unknown difficulty level: {level_id}, starting at {self.levels[0].id}")
            level = self.levels[0]
        self.current_level = level

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_session(self, session: PerformanceSession) -> None:
        """Record a completed session"""
        self.history.append(session)

    def sessions_for_level(self, level_id: str, limit: Optional[int] = None) -> List[PerformanceSession]:
        """Most recent sessions attempted at the given level, oldest first"""
        if limit is None:
            limit = self.level_sample_size
        matching = [s for s in self.history if s.drill_type == level_id]
        return matching[-limit:] if limit > 0 else []

    def history_frame(self) -> pd.DataFrame:
        """Session history as a DataFrame, one row per session"""
        columns = ['id', 'drill_type', 'start_time', 'end_time', 'target_wpm', 'final_wpm',
                   'accuracy_raw', 'accuracy_adjusted', 'error_rate', 'correction_ratio',
                   'keystrokes']
        rows = [{
            'id': s.id,
            'drill_type': s.drill_type,
            'start_time': s.start_time,
            'end_time': s.end_time,
            'target_wpm': s.target_wpm,
            'final_wpm': s.final_wpm,
            'accuracy_raw': s.accuracy.raw,
            'accuracy_adjusted': s.accuracy.adjusted,
            'error_rate': s.accuracy.error_rate,
            'correction_ratio': s.accuracy.correction_ratio,
            'keystrokes': len(s.keystrokes),
        } for s in self.history]
        return pd.DataFrame(rows, columns=columns)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_performance(self, sessions: Sequence[PerformanceSession]) -> PerformanceAnalysis:
        """Aggregate speed, accuracy, steadiness and error patterns"""
        if not sessions:
            return PerformanceAnalysis()

        wpms = np.array([s.final_wpm for s in sessions], dtype=float)
        accuracies = np.array([s.accuracy.raw for s in sessions], dtype=float)

        # Session-to-session WPM spread, not keystroke rhythm
        consistency = max(0.0, 100.0 - float(np.sqrt(np.var(wpms))))

        error_patterns = Counter()
        for session in sessions:
            error_patterns.update((k.expected, k.key) for k in session.keystrokes if not k.is_correct)

        return PerformanceAnalysis(
            avg_wpm=float(np.mean(wpms)),
            avg_accuracy=float(np.mean(accuracies)),
            consistency=consistency,
            error_patterns=dict(error_patterns),
            trend=self._calculate_trend(sessions),
            session_count=len(sessions),
        )

    def _calculate_trend(self, sessions: Sequence[PerformanceSession]) -> Trend:
        """Compare the last three sessions with the three before them"""
        if len(sessions) < 3:
            return Trend.STABLE

        recent = sessions[-3:]
        older = sessions[-6:-3]
        if not older:
            return Trend.STABLE

        difference = np.mean([s.final_wpm for s in recent]) - np.mean([s.final_wpm for s in older])
        if difference > self.trend_threshold:
            return Trend.IMPROVING
        if difference < -self.trend_threshold:
            return Trend.DECLINING
        return Trend.STABLE

    def _should_advance(self, performance: PerformanceAnalysis) -> bool:
        return (
            performance.avg_accuracy >= self.target_accuracy
            and performance.avg_wpm >= self.current_level.target_wpm * self.wpm_advance_ratio
            and performance.consistency >= self.min_consistency
            and performance.trend is Trend.IMPROVING
        )

    def _should_regress(self, performance: PerformanceAnalysis) -> bool:
        return (
            performance.avg_accuracy < self.regress_accuracy
            or (performance.avg_wpm < self.current_level.target_wpm * self.wpm_regress_ratio
                and performance.trend is Trend.DECLINING)
        )

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def evaluate(self) -> Tuple[DifficultyAdjustment, DifficultyLevel]:
        """Decide the adjustment and the level it leads to"""
        if len(self.history) < self.min_sessions:
            return DifficultyAdjustment.HOLD, self.current_level

        recent_sessions = self.sessions_for_level(self.current_level.id)
        if len(recent_sessions) < self.min_sessions:
            return DifficultyAdjustment.HOLD, self.current_level

        performance = self.analyze_performance(recent_sessions)
        if self._should_advance(performance):
            return DifficultyAdjustment.ADVANCE, self._neighbour(1)
        if self._should_regress(performance):
            return DifficultyAdjustment.REGRESS, self._neighbour(-1)
        return DifficultyAdjustment.HOLD, self.current_level

    def calculate_next_difficulty(self) -> DifficultyLevel:
        """The level the next session should use; does not change state"""
        _, level = self.evaluate()
        return level

    def update_current_level(self) -> DifficultyLevel:
        """Move to the level chosen by calculate_next_difficulty()"""
        adjustment, level = self.evaluate()
        if level.id != self.current_level.id:
            self.logger.info(f"Difficulty {adjustment.value}: {self.current_level.id} -> {level.id}")
        self.current_level = level
        return level

    def get_current_level(self) -> DifficultyLevel:
        return self.current_level

    def get_level(self, level_id: str) -> Optional[DifficultyLevel]:
        for level in self.levels:
            if level.id == level_id:
                return level
        return None

    def get_progression_phase(self) -> ProgressionPhase:
        index = self._current_index()
        if index <= 1:
            return PROGRESSION_PHASES[0]
        if index <= 3:
            return PROGRESSION_PHASES[1]
        if index <= 5:
            return PROGRESSION_PHASES[2]
        return PROGRESSION_PHASES[3]

    def get_recommendations(self) -> List[str]:
        """Generate practice hints from the recent sessions at this level"""
        performance = self.analyze_performance(self.sessions_for_level(self.current_level.id))
        recommendations = []

        if performance.avg_accuracy < self.target_accuracy:
            recommendations.append("Focus on accuracy before speed. Slow down and aim for 97%+ accuracy.")

        if performance.consistency < self.min_consistency:
            recommendations.append("Work on typing rhythm. Try to maintain steady keystroke timing.")

        if len(performance.error_patterns) > self.max_error_patterns:
            recommendations.append("Practice your most common error patterns in isolation.")

        if performance.avg_wpm < self.current_level.target_wpm * self.recommend_wpm_ratio:
            recommendations.append("Consider dropping to an easier level to build confidence.")

        if not recommendations:
            recommendations.append("Great progress! Keep practicing to advance to the next level.")

        return recommendations

    def get_weak_patterns(self, limit: int = 5) -> List[Tuple[Tuple[str, str], int]]:
        """Most frequent (expected, actual) mistakes at the current level"""
        performance = self.analyze_performance(self.sessions_for_level(self.current_level.id))
        return Counter(performance.error_patterns).most_common(limit)

    def _current_index(self) -> int:
        for index, level in enumerate(self.levels):
            if level.id == self.current_level.id:
                return index
        return 0

    def _neighbour(self, step: int) -> DifficultyLevel:
        # Stepping past either end of the ladder keeps the boundary level
        index = self._current_index() + step
        if 0 <= index < len(self.levels):
            return self.levels[index]
        return self.current_level
