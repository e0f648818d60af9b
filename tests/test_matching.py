"""Unit tests for stage keyword matching."""

from pipeline_analytics.matching import (
    is_active_stage,
    is_closed,
    is_closed_lost,
    is_closed_lost_exact,
    is_final_outcome,
    is_validation_stage,
)


class TestClosedStages:
    """Tests for closed-stage predicates."""

    def test_is_closed_substring(self) -> None:
        assert is_closed("Closed Won")
        assert is_closed("closed - lost to competitor")
        assert not is_closed("Discover")
        assert not is_closed(None)

    def test_closed_lost_exact_trims_and_ignores_case(self) -> None:
        assert is_closed_lost_exact("  closed lost ")
        assert not is_closed_lost_exact("Closed Lost - No Decision")

    def test_closed_lost_contains_both_words(self) -> None:
        assert is_closed_lost("Closed Lost - No Decision")
        assert not is_closed_lost("Lost")

    def test_final_outcome(self) -> None:
        assert is_final_outcome("Closed Won")
        assert is_final_outcome("Lost")
        assert not is_final_outcome("Closed Won - Pending")


class TestValidationAndActive:
    """Tests for validation and active predicates."""

    def test_validation_fuzzy_match(self) -> None:
        assert is_validation_stage("Validation/Introduction")
        assert is_validation_stage("Technical Validation")
        assert is_validation_stage("introduction")
        assert not is_validation_stage("Discover")
        assert not is_validation_stage(None)

    def test_active_excludes_closed_and_validation(self) -> None:
        assert is_active_stage("Discover")
        assert not is_active_stage("Closed Won")
        assert not is_active_stage("Validation/Introduction")
        assert not is_active_stage(None)
