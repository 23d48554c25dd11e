"""Tests for CompletionService and the service factory."""

from datetime import datetime, timezone

import pytest

from models.aggregate_analytics import AggregateAnalyticsService
from models.analytics_config import AnalyticsConfig
from models.mistake_analysis import CharacterSubstitution, MistakeAnalysis
from models.typing_result import ResultStatus
from models.typing_test_config import ContentCategory, CorrectionMode, TypingTestConfig
from services import init_services
from services.completion_service import CompletionService, substitution_map


@pytest.fixture
def completion() -> CompletionService:
    return CompletionService()


class TestCompleteTest:
    """Test CompletionService.complete_test."""

    def test_timed_test(self, completion, type_text) -> None:
        """A timed test uses the configured duration and includes the word in progress."""
        result = completion.complete_test(
            TypingTestConfig(duration=60),
            target_words=["the", "cat", "sat"],
            completed_words=["the", "cat"],
            current_input="sa",
            keystrokes=type_text("thecatsa"),
            start_time_ms=0.0,
            end_time_ms=60000.0,
            user_id="user-1",
            test_id="t-1",
        )

        assert result.id == "t-1"
        assert result.status == ResultStatus.COMPLETE
        assert result.duration == 60
        assert result.typed_words == ["the", "cat", "sa"]
        assert result.wpm == 2
        assert result.accuracy == 66.7
        assert result.per_character_accuracy == 88.9
        assert result.correct_word_count == 2
        assert result.incorrect_word_count == 1
        assert result.total_words == 3
        assert result.total_typed_words == 3
        assert result.labels == ["time-60s", "correction-mode-normal"]
        assert result.mistake_count == 0
        assert result.character_substitutions is None
        assert result.completion_time is None
        assert len(result.keystroke_timings) == 8

    def test_untyped_words_are_padded(self, completion) -> None:
        """Typed words always cover every target word."""
        result = completion.complete_test(
            TypingTestConfig(),
            target_words=["one", "two", "three"],
            completed_words=["one"],
            current_input="",
            keystrokes=[],
            start_time_ms=0.0,
            end_time_ms=30000.0,
        )
        assert result.typed_words == ["one", "", ""]
        assert result.total_typed_words == 1

    def test_content_length_duration(self, completion) -> None:
        """Content-length tests take their duration from the elapsed time."""
        result = completion.complete_test(
            TypingTestConfig(duration="content-length"),
            target_words=["hi"],
            completed_words=["hi"],
            current_input="",
            keystrokes=[],
            start_time_ms=1000.0,
            end_time_ms=13400.0,
        )
        assert result.duration == 12
        assert result.completion_time == pytest.approx(12.4)
        assert result.labels == ["content-length-mode", "correction-mode-normal"]

    def test_time_trial_is_strict(self, completion) -> None:
        """Time trials report the strict error rate."""
        result = completion.complete_test(
            TypingTestConfig(duration="content-length", is_time_trial=True, time_trial_id="tt-1"),
            target_words=["hi"],
            completed_words=["hi"],
            current_input="",
            keystrokes=[],
            start_time_ms=0.0,
            end_time_ms=2000.0,
            strict_mode_errors=1,
        )
        assert result.accuracy == 50.0
        assert result.is_time_trial
        assert result.time_trial_id == "tt-1"
        assert "correction-mode-strict" in result.labels

    def test_mistakes_and_labels(self, completion, type_text) -> None:
        """Substitutions and user labels are carried into the result."""
        config = TypingTestConfig(
            correction_mode=CorrectionMode.SPEED,
            content_category=ContentCategory.QUOTE,
            user_labels=["morning"],
            is_practice=True,
            practice_sequences=["th"],
        )
        result = completion.complete_test(
            config,
            target_words=["the"],
            completed_words=["thw"],
            current_input="",
            keystrokes=type_text("thw", expected="the"),
            start_time_ms=0.0,
            end_time_ms=30000.0,
        )
        assert result.mistake_count == 1
        assert result.correction_count == 0
        assert result.character_substitutions == {"e": ["w"]}
        assert result.labels == [
            "morning",
            "time-30s",
            "correction-mode-speed",
            "quote",
            "practice-mode",
        ]
        assert result.is_practice
        assert result.practice_sequences == ["th"]

    def test_unsaved_result_is_practice(self, completion) -> None:
        """Results that will not be stored are marked as practice."""
        result = completion.complete_test(
            TypingTestConfig(),
            target_words=["a"],
            completed_words=["a"],
            current_input="",
            keystrokes=[],
            start_time_ms=0.0,
            end_time_ms=1000.0,
            should_save=False,
        )
        assert result.is_practice

    def test_created_at_is_kept(self, completion) -> None:
        """An explicit creation time is used as given."""
        created = datetime(2024, 3, 1, tzinfo=timezone.utc)
        result = completion.complete_test(
            TypingTestConfig(),
            target_words=["a"],
            completed_words=[],
            current_input="a",
            keystrokes=[],
            start_time_ms=0.0,
            end_time_ms=1000.0,
            created_at=created,
            iteration=2,
        )
        assert result.created_at == created
        assert result.iteration == 2

    def test_end_before_start(self, completion) -> None:
        """A test cannot end before it starts."""
        with pytest.raises(ValueError):
            completion.complete_test(
                TypingTestConfig(), ["a"], ["a"], "", [], start_time_ms=10.0, end_time_ms=5.0
            )

    def test_negative_strict_errors(self, completion) -> None:
        """Strict error counts cannot be negative."""
        with pytest.raises(ValueError):
            completion.complete_test(
                TypingTestConfig(), ["a"], ["a"], "", [], 0.0, 1000.0, strict_mode_errors=-1
            )


class TestLiveWPM:
    """Test CompletionService.live_wpm."""

    def test_uses_configured_cutoff(self) -> None:
        """Readings before the configured cutoff are zero."""
        service = CompletionService(AnalyticsConfig(live_wpm_min_elapsed_ms=1000.0))
        assert service.live_wpm(["hello"], [], "hel", 0, 0.0, now_ms=500.0) == 0.0
        assert service.live_wpm(["hello"], [], "hel", 0, 0.0, now_ms=60000.0) == pytest.approx(0.6)

    def test_default_cutoff(self, completion) -> None:
        """The default cutoff is 100 ms."""
        assert completion.live_wpm(["hello"], [], "h", 0, 0.0, now_ms=150.0) > 0.0


class TestSubstitutionMap:
    """Test substitution_map."""

    def test_groups_by_expected(self) -> None:
        """Actual characters are grouped under their expected character."""
        analysis = MistakeAnalysis(
            character_substitutions=[
                CharacterSubstitution(expected="e", actual="w", count=2),
                CharacterSubstitution(expected="a", actual="s", count=1),
                CharacterSubstitution(expected="e", actual="r", count=1),
            ]
        )
        assert substitution_map(analysis) == {"e": ["w", "r"], "a": ["s"]}


class TestInitServices:
    """Test init_services."""

    def test_services_share_debug_util(self) -> None:
        """Both services are wired with one DebugUtil."""
        analytics, completion = init_services(AnalyticsConfig(recent_test_window=4))
        assert isinstance(analytics, AggregateAnalyticsService)
        assert isinstance(completion, CompletionService)
        assert analytics.debug_util is completion.debug_util
        assert analytics.config is completion.config
        assert analytics.config.recent_test_window == 4

    def test_config_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without a config the environment is read."""
        monkeypatch.setenv("TYPING_ANALYTICS_RECENT_TEST_WINDOW", "5")
        analytics, _completion = init_services()
        assert analytics.config.recent_test_window == 5
