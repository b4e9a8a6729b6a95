"""
Real-time Typing Metrics

Derives speed, accuracy, rhythm consistency, error patterns and per-key
timing from the contents of a CircularEventBuffer. The calculator keeps no
state of its own; every call reads the buffer afresh.
"""

import logging
import math
from collections import Counter
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from .config import merge_config
from .debounce import current_time_ms
from .event_buffer import CircularEventBuffer
from .models import (AccuracyMetrics, ErrorPatterns, KeystrokeEvent,
                     KeystrokeHeat, MetricsSnapshot)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, exact halves upwards"""
    return int(math.floor(value + 0.5))


class MetricsCalculator:
    """Computes typing metrics over the most recent buffered keystrokes"""

    def __init__(self, buffer: CircularEventBuffer, config: Optional[Dict] = None,
                 clock: Optional[Callable[[], float]] = None):
        self.buffer = buffer
        self.config = merge_config(config)
        self.clock = clock or current_time_ms

        metrics = self.config['metrics']
        self.window_ms = metrics['wpm_window_ms']
        self.wpm_sample_size = metrics['wpm_sample_size']
        self.min_time_span_ms = metrics['min_time_span_ms']
        self.paste_threshold_ms = metrics['paste_threshold_ms']
        self.average_word_length = metrics['average_word_length']
        self.accuracy_sample_size = metrics['accuracy_sample_size']
        self.consistency_sample_size = metrics['consistency_sample_size']
        self.consistency_min_events = metrics['consistency_min_events']
        self.consistency_min_samples = metrics['consistency_min_samples']
        self.outlier_threshold_ms = metrics['outlier_threshold_ms']

        self.logger = logging.getLogger(__name__)

    def calculate_real_time_wpm(self) -> int:
        """
        Words per minute over the trailing window.

        Backspace/delete keys and suspected pastes are not counted as typed
        characters. Spans shorter than the minimum time span report 0 since
        there is too little data to be meaningful.
        """
        if len(self.buffer) < 2:
            return 0

        now = self.clock()
        recent_events = [e for e in self.buffer.get_recent(self.wpm_sample_size)
                         if now - e.timestamp <= self.window_ms]
        if len(recent_events) < 2:
            return 0

        valid_keystrokes = [e for e in recent_events
                            if e.is_correct and not e.is_backspace and not self._is_pasted(e)]

        time_span = self._effective_time_span(recent_events)
        if time_span < self.min_time_span_ms:
            return 0

        words = len(valid_keystrokes) / self.average_word_length
        return round_half_up(words * 60000 / time_span)

    def calculate_accuracy(self) -> AccuracyMetrics:
        """Accuracy breakdown over the most recent keystrokes"""
        recent_events = self.buffer.get_recent(self.accuracy_sample_size)
        if not recent_events:
            return AccuracyMetrics()

        total = len(recent_events)
        correct = sum(1 for e in recent_events if e.is_correct)
        typos = total - correct
        corrected = self._count_corrected_errors(recent_events)

        return AccuracyMetrics(
            raw=correct / total * 100,
            # needing a correction costs accuracy even when the result is right
            adjusted=max(0.0, (correct - corrected) / total * 100),
            error_rate=typos / total * 100,
            correction_ratio=corrected / typos if typos > 0 else 0.0,
        )

    def calculate_consistency(self) -> float:
        """Rhythm score 0-100; lower relative variance of timing scores higher"""
        recent_events = self.buffer.get_recent(self.consistency_sample_size)
        if len(recent_events) < self.consistency_min_events:
            return 0.0

        timings = np.array(self._qualifying_deltas(recent_events), dtype=float)
        if len(timings) < self.consistency_min_samples:
            return 0.0

        mean = np.mean(timings)
        std = np.std(timings)
        return float(max(0.0, 100.0 - (std / mean) * 100.0))

    def get_error_patterns(self) -> ErrorPatterns:
        """Count (expected, actual) pairs for each incorrect keystroke"""
        patterns = Counter(
            (e.expected, e.key)
            for e in self.buffer.get_recent(self.accuracy_sample_size)
            if not e.is_correct
        )
        return dict(patterns)

    def get_keystroke_latency(self) -> List[float]:
        """Inter-keystroke delays that pass the outlier filter"""
        return self._qualifying_deltas(self.buffer.get_recent(self.consistency_sample_size))

    def calculate_heatmap(self) -> List[KeystrokeHeat]:
        """Per-key average timing, frequency and error rate, most frequent first"""
        events = [e for e in self.buffer.get_recent(self.accuracy_sample_size) if not e.is_backspace]
        if not events:
            return []

        frame = pd.DataFrame({
            'key': [e.key for e in events],
            'time_delta': [e.time_delta for e in events],
            'is_correct': [e.is_correct for e in events],
        })
        in_range = (frame['time_delta'] > 0) & (frame['time_delta'] < self.outlier_threshold_ms)
        frame['latency'] = frame['time_delta'].where(in_range)

        grouped = frame.groupby('key', sort=False).agg(
            average_time=('latency', 'mean'),
            frequency=('is_correct', 'size'),
            correct=('is_correct', 'sum'),
        )
        grouped = grouped.sort_values('frequency', ascending=False, kind='mergesort')

        heatmap = []
        for key, row in grouped.iterrows():
            frequency = int(row['frequency'])
            average_time = row['average_time']
            heatmap.append(KeystrokeHeat(
                key=str(key),
                average_time=0.0 if pd.isna(average_time) else float(average_time),
                frequency=frequency,
                error_rate=(frequency - int(row['correct'])) / frequency * 100,
            ))
        return heatmap

    def calculate_snapshot(self) -> MetricsSnapshot:
        """Compute every metric at once"""
        if len(self.buffer) == 0:
            return MetricsSnapshot()

        return MetricsSnapshot(
            wpm=self.calculate_real_time_wpm(),
            accuracy=self.calculate_accuracy().raw,
            consistency=self.calculate_consistency(),
            error_patterns=self.get_error_patterns(),
            keystroke_latency=self.get_keystroke_latency(),
            heatmap=self.calculate_heatmap(),
        )

    def _is_pasted(self, event: KeystrokeEvent) -> bool:
        # Heuristic only: a multi-character "key" arriving almost instantly.
        # Extremely fast typists producing composed keys can trip it.
        return event.time_delta < self.paste_threshold_ms and len(event.key) > 1

    def _qualifying_deltas(self, events: List[KeystrokeEvent]) -> List[float]:
        return [e.time_delta for e in events if 0 < e.time_delta < self.outlier_threshold_ms]

    @staticmethod
    def _effective_time_span(events: List[KeystrokeEvent]) -> float:
        if len(events) < 2:
            return 0.0
        ordered = sorted(events, key=lambda e: e.timestamp)
        return ordered[-1].timestamp - ordered[0].timestamp

    @staticmethod
    def _count_corrected_errors(events: List[KeystrokeEvent]) -> int:
        """Backspaces that immediately follow an incorrect keystroke"""
        corrections = 0
        for previous, current in zip(events, events[1:]):
            if current.is_backspace and not previous.is_correct:
                corrections += 1
        return corrections
