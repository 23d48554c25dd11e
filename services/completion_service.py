"""
CompletionService: builds the stored result of a finished typing test.
Runs the per-test metrics and mistake analysis over the final input and
assembles labels and mistake summaries for the result document.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from helpers.debug_util import DebugUtil
from models.analytics_config import AnalyticsConfig
from models.keystroke import KeystrokeEvent
from models.mistake_analysis import MistakeAnalysis, analyze_mistakes
from models.typing_metrics import (
    calculate_accuracy,
    calculate_live_wpm,
    calculate_wpm,
    normalize_typed_words,
    round_half_up,
)
from models.typing_result import ResultStatus, TypingTestResult
from models.typing_test_config import CorrectionMode, TypingTestConfig

logger = logging.getLogger(__name__)


def substitution_map(analysis: MistakeAnalysis) -> Dict[str, List[str]]:
    """Group the analysed substitutions as expected char -> typed chars."""
    result: Dict[str, List[str]] = {}
    for sub in analysis.character_substitutions:
        result.setdefault(sub.expected, []).append(sub.actual)
    return result


class CompletionService:
    """Metrics for a typing test in progress and the result of a finished one."""

    def __init__(
        self,
        config: Optional[AnalyticsConfig] = None,
        debug_util: Optional[DebugUtil] = None,
    ) -> None:
        self.config = config or AnalyticsConfig()
        self.debug_util = debug_util or DebugUtil()

    def live_wpm(
        self,
        target_words: Sequence[str],
        completed_words: Sequence[str],
        current_input: str,
        current_word_index: int,
        start_time_ms: float,
        now_ms: Optional[float] = None,
    ) -> float:
        """WPM for the live speedometer; 0 until ``live_wpm_min_elapsed_ms`` has passed."""
        return calculate_live_wpm(
            target_words,
            completed_words,
            current_input,
            current_word_index,
            start_time_ms,
            now_ms=now_ms,
            min_elapsed_ms=self.config.live_wpm_min_elapsed_ms,
        )

    def complete_test(
        self,
        config: TypingTestConfig,
        target_words: Sequence[str],
        completed_words: Sequence[str],
        current_input: str,
        keystrokes: Sequence[KeystrokeEvent],
        start_time_ms: float,
        end_time_ms: float,
        strict_mode_errors: int = 0,
        test_id: Optional[str] = None,
        user_id: Optional[str] = None,
        iteration: Optional[int] = None,
        created_at: Optional[datetime] = None,
        should_save: bool = True,
    ) -> TypingTestResult:
        """Compute every metric of a finished test.

        Args:
            config: The test configuration
            target_words: Words the user was asked to type
            completed_words: Words finished with space or Tab, in order
            current_input: Text of the word in progress when the test ended
            keystrokes: Every keystroke recorded during the test
            start_time_ms: Clock reading when the test started
            end_time_ms: Clock reading when the test ended (same clock)
            strict_mode_errors: Keystrokes blocked by strict mode
            should_save: False for a result that will not be stored; it is
                then marked as practice

        Returns:
            The completed, immutable result

        Raises:
            ValueError: If the test ends before it starts or the error count is negative
        """
        if end_time_ms < start_time_ms:
            raise ValueError("end_time_ms must not be before start_time_ms")
        if strict_mode_errors < 0:
            raise ValueError("strict_mode_errors must be >= 0")

        elapsed_seconds = (end_time_ms - start_time_ms) / 1000
        if config.is_content_length:
            duration = int(round_half_up(elapsed_seconds))
            completion_time: Optional[float] = elapsed_seconds
        else:
            duration = int(config.duration)
            completion_time = None

        final_words = list(completed_words)
        if current_input:
            final_words.append(current_input)
        typed_words = normalize_typed_words(target_words, final_words)

        is_strict = config.effective_correction_mode == CorrectionMode.STRICT
        accuracy = calculate_accuracy(target_words, typed_words, is_strict, strict_mode_errors)
        wpm = calculate_wpm(target_words, typed_words, duration)
        analysis = analyze_mistakes(keystrokes, target_words, typed_words)
        substitutions = substitution_map(analysis)
        labels = list(config.user_labels) + config.auto_labels()

        result = TypingTestResult(
            id=test_id or str(uuid.uuid4()),
            user_id=user_id,
            created_at=created_at or datetime.now(timezone.utc),
            duration=duration,
            status=ResultStatus.COMPLETE,
            test_content_id=config.test_content_id,
            target_words=list(target_words),
            typed_words=typed_words,
            iteration=iteration,
            wpm=wpm,
            accuracy=accuracy.accuracy,
            per_character_accuracy=accuracy.per_character_accuracy,
            correct_word_count=accuracy.correct_count,
            incorrect_word_count=accuracy.incorrect_count,
            total_words=len(target_words),
            total_typed_words=accuracy.total_typed,
            keystroke_timings=list(keystrokes),
            is_practice=config.is_practice or not should_save,
            practice_sequences=list(config.practice_sequences) or None,
            mistake_count=analysis.total_mistakes,
            correction_count=analysis.total_corrections,
            character_substitutions=substitutions or None,
            labels=labels or None,
            is_time_trial=config.is_time_trial,
            time_trial_id=config.time_trial_id,
            completion_time=completion_time,
        )

        logger.info(
            "Completed test %s: %d WPM, %.1f%% accuracy, %d mistakes",
            result.id,
            result.wpm,
            result.accuracy,
            analysis.total_mistakes,
        )
        self.debug_util.debugMessage(
            f"Test {result.id} labels={labels} substitutions={substitutions}"
        )
        return result
