"""AggregateAnalyticsService for analysis across a user's whole test history.

This module folds the per-test metrics and mistake analysis over many
results:
- Aggregate slowest sequences (weighted mean across tests)
- Aggregate sequence timings with recent-vs-overall trend classification
- Aggregate mistake patterns (substitutions, mistake sequences) with trends
- Problematic words tallied across tests

Behaviour notes:

- Results are folded in the order the caller supplies them. The position of
  a result in that list is its "test index"; ``AnalyticsConfig.results_order``
  says whether index 0 is the newest test (the default, matching how results
  are fetched) or the oldest. The recency window is taken from that end.

- Deleted results are dropped before indexing. Results without target words
  (and, for mistakes, without keystrokes) are skipped but keep their index,
  so one incomplete record never shifts or aborts the rest of the history.

- Timing trends use ±10% and mistake trends ±25% by default. Both boundaries
  are strict: a change of exactly the threshold is ``stable``.

- By default a test's averaged ``SequenceTiming`` is expanded into
  ``occurrences`` identical samples. With ``per_occurrence_samples`` the real
  latency of every occurrence is used instead.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, Field, ValidationError

from helpers.debug_util import DebugUtil
from models.analytics_config import AnalyticsConfig, ResultOrder
from models.mistake_analysis import analyze_mistakes
from models.typing_metrics import (
    calculate_sequence_timings,
    collect_sequence_samples,
    round_half_up,
)
from models.typing_result import TypingTestResult

logger = logging.getLogger(__name__)

SLOW_SEQUENCE_LENGTHS = (2, 3)


class Trend(str, Enum):
    """Direction of a metric over the recent window."""

    IMPROVING = "improving"
    WORSENING = "worsening"
    STABLE = "stable"


class DateFilter(BaseModel):
    """Restrict an aggregate to results created in the last ``days`` days."""

    days: Optional[int] = Field(default=None, ge=0, description="0 or None disables the filter")

    model_config = {"extra": "forbid", "frozen": True}


class AggregateSequence(BaseModel):
    """Timing of one n-gram across many tests."""

    sequence: str = Field(..., min_length=1)
    average_time: int
    total_occurrences: int = Field(..., ge=1)
    recent_average: int
    overall_average: int
    trend: Trend

    model_config = {"frozen": True}


class AggregateSubstitution(BaseModel):
    """A character substitution across many tests."""

    expected: str
    actual: str
    total_count: int = Field(..., ge=1)
    recent_count: int = Field(..., ge=0)
    trend: Trend

    model_config = {"frozen": True}


class AggregateMistakeSequence(BaseModel):
    """A mistake sequence across many tests."""

    sequence: str = Field(..., min_length=1)
    total_count: int = Field(..., ge=1)
    recent_count: int = Field(..., ge=0)
    trend: Trend

    model_config = {"frozen": True}


class AggregateMistakeData(BaseModel):
    """Aggregate mistake patterns with trends."""

    character_substitutions: List[AggregateSubstitution] = Field(default_factory=list)
    mistake_sequences: List[AggregateMistakeSequence] = Field(default_factory=list)

    model_config = {"frozen": True}


class ProblematicWord(BaseModel):
    """A target word and how many times it was mistyped."""

    word: str = Field(..., min_length=1)
    count: int = Field(..., ge=1)

    model_config = {"frozen": True}


class TrendClassifier:
    """Classify a recent value against its overall baseline.

    A lower recent value counts as improving: faster timings, fewer mistakes.
    """

    def __init__(self, threshold_pct: float, min_tests: int) -> None:
        """Initialize the classifier.

        Args:
            threshold_pct: Percent change that must be exceeded (strictly)
                before a trend is reported.
            min_tests: Number of recent tests needed before a trend is reported.
        """
        self.threshold_pct = threshold_pct
        self.min_tests = min_tests

    @staticmethod
    def percent_change(recent: float, overall: float) -> float:
        """Percent change of ``recent`` against ``overall``; a zero baseline divides by 1."""
        return (recent - overall) / (overall or 1) * 100

    def classify(self, recent: float, overall: float, recent_tests: int) -> Trend:
        """Return the trend, or STABLE when there are too few recent tests."""
        if recent_tests < self.min_tests:
            return Trend.STABLE
        change = self.percent_change(recent, overall)
        if change < -self.threshold_pct:
            return Trend.IMPROVING
        if change > self.threshold_pct:
            return Trend.WORSENING
        return Trend.STABLE


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


class AggregateAnalyticsService:
    """Service for analytics folded across a user's test history.

    All methods are pure with respect to their inputs: the service holds only
    its configuration, so calls can be repeated or run per user in parallel.
    """

    def __init__(
        self,
        config: Optional[AnalyticsConfig] = None,
        debug_util: Optional[DebugUtil] = None,
    ) -> None:
        """Initialize the service with an explicit configuration."""
        self.config = config or AnalyticsConfig()
        self.sequence_trends = TrendClassifier(
            self.config.sequence_trend_threshold_pct, self.config.min_recent_tests_for_trend
        )
        self.mistake_trends = TrendClassifier(
            self.config.mistake_trend_threshold_pct, self.config.min_recent_tests_for_trend
        )
        self.debug_util = debug_util or DebugUtil()

    def load_results(self, records: Iterable[Mapping[str, Any]]) -> List[TypingTestResult]:
        """Validate stored result documents, skipping deleted and malformed ones.

        Args:
            records: Raw documents in the order they were fetched

        Returns:
            The valid, non-deleted results in the same order
        """
        results: List[TypingTestResult] = []
        skipped = 0
        for position, record in enumerate(records):
            try:
                result = TypingTestResult.model_validate(dict(record))
            except ValidationError as e:
                skipped += 1
                logger.warning(
                    "Skipping malformed test result %s (position %d): %s",
                    record.get("id", "<no id>"),
                    position,
                    e.error_count(),
                )
                continue
            if not result.is_deleted:
                results.append(result)
        if skipped:
            self.debug_util.debugMessage(f"load_results skipped {skipped} malformed record(s)")
        return results

    def get_aggregate_slow_sequences(
        self, results: Sequence[TypingTestResult], limit: int = 5
    ) -> List[str]:
        """Return the texts of the slowest 2- and 3-character sequences across all tests.

        Each test contributes its top candidates per length; sequences are
        merged with a weighted mean and must be seen at least
        ``min_sequence_occurrences`` times.
        """
        totals: Dict[str, Tuple[float, int]] = {}
        for result in self._active(results):
            if not result.target_words:
                continue
            for length in SLOW_SEQUENCE_LENGTHS:
                timings = calculate_sequence_timings(
                    result.keystroke_timings,
                    result.target_words,
                    length,
                    self.config.slow_sequence_candidates,
                )
                for timing in timings:
                    total_time, count = totals.get(timing.sequence, (0.0, 0))
                    totals[timing.sequence] = (
                        total_time + timing.average_time * timing.occurrences,
                        count + timing.occurrences,
                    )

        ranked = [
            (sequence, total_time / count)
            for sequence, (total_time, count) in totals.items()
            if count >= self.config.min_sequence_occurrences
        ]
        ranked.sort(key=lambda item: item[1], reverse=True)
        return [sequence for sequence, _avg in ranked[:limit]]

    def get_aggregate_sequence_timings(
        self,
        results: Sequence[TypingTestResult],
        sequence_length: int = 2,
        top_n: int = 10,
        date_filter: Optional[DateFilter] = None,
        now: Optional[datetime] = None,
    ) -> List[AggregateSequence]:
        """Aggregate n-gram timings across tests with a recent-vs-overall trend.

        Args:
            results: The user's results, in ``config.results_order``
            sequence_length: N-gram size
            top_n: Number of sequences to return, slowest overall first
            date_filter: Optional restriction to recent days
            now: Reference time for ``date_filter``; defaults to the current UTC time

        Returns:
            Sequences seen at least ``min_sequence_occurrences`` times
        """
        scoped = self._apply_date_filter(self._active(results), date_filter, now)

        # sequence -> [(test index, sample ms)]
        samples: Dict[str, List[Tuple[int, float]]] = {}
        for index, result in enumerate(scoped):
            if not result.target_words:
                continue
            if self.config.per_occurrence_samples:
                per_test = collect_sequence_samples(result.keystroke_timings, sequence_length)
                for sequence, times in per_test.items():
                    samples.setdefault(sequence, []).extend((index, t) for t in times)
            else:
                timings = calculate_sequence_timings(
                    result.keystroke_timings,
                    result.target_words,
                    sequence_length,
                    self.config.aggregate_sequence_candidates,
                )
                for timing in timings:
                    samples.setdefault(timing.sequence, []).extend(
                        [(index, float(timing.average_time))] * timing.occurrences
                    )

        aggregated: List[AggregateSequence] = []
        for sequence, entries in samples.items():
            if len(entries) < self.config.min_sequence_occurrences:
                continue
            overall_average = _mean([t for _i, t in entries])
            recent_indices = self._recent_indices(i for i, _t in entries)
            if len(recent_indices) >= self.config.min_recent_tests_for_trend:
                recent_average = _mean([t for i, t in entries if i in recent_indices])
            else:
                recent_average = overall_average
            trend = self.sequence_trends.classify(
                recent_average, overall_average, len(recent_indices)
            )
            aggregated.append(
                AggregateSequence(
                    sequence=sequence,
                    average_time=int(round_half_up(overall_average)),
                    total_occurrences=len(entries),
                    recent_average=int(round_half_up(recent_average)),
                    overall_average=int(round_half_up(overall_average)),
                    trend=trend,
                )
            )

        aggregated.sort(key=lambda a: a.overall_average, reverse=True)
        self.debug_util.debugMessage(
            f"Aggregated {len(aggregated)} {sequence_length}-char sequences over {len(scoped)} tests"
        )
        return aggregated[:top_n]

    def get_aggregate_mistakes(
        self,
        results: Sequence[TypingTestResult],
        date_filter: Optional[DateFilter] = None,
        now: Optional[datetime] = None,
    ) -> AggregateMistakeData:
        """Aggregate character substitutions and mistake sequences with trends.

        Rates are per test: ``total / tests`` overall against ``recent
        occurrences / min(recent_test_window, tests)``. The recent occurrences
        are those in the ``recent_test_window`` most recent tests that contain
        the item.
        """
        scoped = self._apply_date_filter(self._active(results), date_filter, now)
        total_tests = len(scoped)
        if total_tests == 0:
            return AggregateMistakeData()

        # key -> test index of every occurrence
        substitutions: Dict[Tuple[str, str], List[int]] = {}
        sequences: Dict[str, List[int]] = {}
        for index, result in enumerate(scoped):
            if not result.has_keystrokes or not result.target_words:
                continue
            analysis = analyze_mistakes(
                result.keystroke_timings, result.target_words, result.typed_words
            )
            for sub in analysis.character_substitutions:
                substitutions.setdefault((sub.expected, sub.actual), []).extend(
                    [index] * sub.count
                )
            for seq in analysis.mistake_sequences:
                sequences.setdefault(seq.sequence, []).extend([index] * seq.frequency)

        recent_tests = min(self.config.recent_test_window, total_tests)

        def _fold(indices: List[int]) -> Tuple[int, int, Trend]:
            total_count = len(indices)
            # window over the tests that contain this item, not the whole history
            recent_window = self._recent_indices(indices)
            recent_count = sum(1 for i in indices if i in recent_window)
            trend = self.mistake_trends.classify(
                recent_count / recent_tests, total_count / total_tests, recent_tests
            )
            return total_count, recent_count, trend

        aggregate_substitutions: List[AggregateSubstitution] = []
        for (expected, actual), indices in substitutions.items():
            total_count, recent_count, trend = _fold(indices)
            aggregate_substitutions.append(
                AggregateSubstitution(
                    expected=expected,
                    actual=actual,
                    total_count=total_count,
                    recent_count=recent_count,
                    trend=trend,
                )
            )

        aggregate_sequences: List[AggregateMistakeSequence] = []
        for sequence, indices in sequences.items():
            total_count, recent_count, trend = _fold(indices)
            aggregate_sequences.append(
                AggregateMistakeSequence(
                    sequence=sequence,
                    total_count=total_count,
                    recent_count=recent_count,
                    trend=trend,
                )
            )

        aggregate_substitutions.sort(key=lambda s: s.total_count, reverse=True)
        aggregate_sequences.sort(key=lambda s: s.total_count, reverse=True)
        top = self.config.top_mistake_items
        return AggregateMistakeData(
            character_substitutions=aggregate_substitutions[:top],
            mistake_sequences=aggregate_sequences[:top],
        )

    def get_problematic_words(
        self, results: Sequence[TypingTestResult], min_count: Optional[int] = None
    ) -> List[ProblematicWord]:
        """Tally how often each target word was mistyped across tests.

        Args:
            results: The user's results
            min_count: Minimum mistakes for a word to be reported; defaults to
                ``config.problematic_word_min_count``

        Returns:
            Words sorted by mistake count, most frequent first
        """
        threshold = self.config.problematic_word_min_count if min_count is None else min_count
        counts: Dict[str, int] = {}
        for result in self._active(results):
            if not result.target_words or not result.typed_words:
                continue
            for target, typed in zip(result.target_words, result.typed_words):
                if target and typed and target != typed:
                    counts[target] = counts.get(target, 0) + 1

        words = [
            ProblematicWord(word=word, count=count)
            for word, count in counts.items()
            if count >= threshold
        ]
        words.sort(key=lambda w: w.count, reverse=True)
        return words

    def _active(self, results: Sequence[TypingTestResult]) -> List[TypingTestResult]:
        return [r for r in results if not r.is_deleted]

    def _apply_date_filter(
        self,
        results: List[TypingTestResult],
        date_filter: Optional[DateFilter],
        now: Optional[datetime],
    ) -> List[TypingTestResult]:
        if date_filter is None or not date_filter.days:
            return results
        reference = now or datetime.now(timezone.utc)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=timezone.utc)
        cutoff = reference - timedelta(days=date_filter.days)
        return [r for r in results if r.created_at >= cutoff]

    def _recent_indices(self, indices: Iterable[int]) -> Set[int]:
        """The ``recent_test_window`` most recent distinct test indices."""
        newest_first = self.config.results_order == ResultOrder.NEWEST_FIRST
        ordered = sorted(set(indices), reverse=not newest_first)
        return set(ordered[: self.config.recent_test_window])
