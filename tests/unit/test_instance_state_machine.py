"""Tests for the quest instance state machine."""

import itertools

import pytest

from questline.instances.exceptions import InvalidTransitionError, MissingReasonError
from questline.instances.state_machine import (
    AUDITED_STATUSES,
    NOTIFY_STATUSES,
    REQUIRE_REASON,
    VALID_TRANSITIONS,
    InstanceStatus,
    allowed_transitions,
    can_transition,
    coerce_status,
    requires_reason,
    validate_transition,
)

EXPECTED_EDGES = {
    ("draft", "recruiting"),
    ("draft", "cancelled"),
    ("recruiting", "locked"),
    ("recruiting", "paused"),
    ("recruiting", "cancelled"),
    ("locked", "recruiting"),
    ("locked", "live"),
    ("locked", "paused"),
    ("locked", "cancelled"),
    ("live", "completed"),
    ("live", "paused"),
    ("paused", "recruiting"),
    ("paused", "locked"),
    ("paused", "live"),
    ("paused", "cancelled"),
    ("completed", "archived"),
    ("cancelled", "archived"),
}

ALL_STATUSES = [s.value for s in InstanceStatus]


class TestTransitionTable:
    """The table matches the documented edges exactly."""

    def test_eight_statuses(self):
        assert len(ALL_STATUSES) == 8

    def test_every_status_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(InstanceStatus)

    @pytest.mark.parametrize(
        "current,target", list(itertools.product(ALL_STATUSES, ALL_STATUSES))
    )
    def test_can_transition_matches_table(self, current, target):
        assert can_transition(current, target) is ((current, target) in EXPECTED_EDGES)

    def test_edge_count(self):
        assert sum(len(targets) for targets in VALID_TRANSITIONS.values()) == len(EXPECTED_EDGES)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            VALID_TRANSITIONS[InstanceStatus.ARCHIVED] = frozenset({InstanceStatus.DRAFT})

    def test_edge_sets_are_frozen(self):
        with pytest.raises(AttributeError):
            VALID_TRANSITIONS[InstanceStatus.DRAFT].add(InstanceStatus.LIVE)

    def test_no_self_transitions(self):
        for current, targets in VALID_TRANSITIONS.items():
            assert current not in targets


class TestCanTransition:
    """Test can_transition edge cases."""

    def test_accepts_enum_members(self):
        assert can_transition(InstanceStatus.LIVE, InstanceStatus.COMPLETED) is True

    def test_accepts_mixed_arguments(self):
        assert can_transition("locked", InstanceStatus.LIVE) is True

    def test_unknown_source(self):
        assert can_transition("nonexistent", "recruiting") is False

    def test_unknown_target(self):
        assert can_transition("draft", "published") is False

    def test_recruiting_cannot_go_live(self):
        assert can_transition("recruiting", "live") is False


class TestAllowedTransitions:
    """Test allowed_transitions lookups."""

    def test_archived_is_terminal(self):
        assert allowed_transitions("archived") == frozenset()

    def test_unknown_status_is_empty(self):
        assert allowed_transitions("bogus") == frozenset()

    def test_paused_can_resume_or_cancel(self):
        assert allowed_transitions(InstanceStatus.PAUSED) == {
            InstanceStatus.RECRUITING,
            InstanceStatus.LOCKED,
            InstanceStatus.LIVE,
            InstanceStatus.CANCELLED,
        }

    def test_completed_only_archives(self):
        assert allowed_transitions("completed") == {InstanceStatus.ARCHIVED}


class TestRequiresReason:
    """Test the reason-required set."""

    @pytest.mark.parametrize("status", ALL_STATUSES)
    def test_only_paused_and_cancelled(self, status):
        assert requires_reason(status) is (status in ("paused", "cancelled"))

    def test_unknown_status(self):
        assert requires_reason("bogus") is False

    def test_side_effect_sets(self):
        assert REQUIRE_REASON == {InstanceStatus.PAUSED, InstanceStatus.CANCELLED}
        assert NOTIFY_STATUSES == {InstanceStatus.PAUSED, InstanceStatus.CANCELLED}
        assert AUDITED_STATUSES == {
            InstanceStatus.PAUSED,
            InstanceStatus.CANCELLED,
            InstanceStatus.ARCHIVED,
        }


class TestValidateTransition:
    """Test validate_transition raises typed errors."""

    def test_valid_transition_no_error(self):
        validate_transition("draft", "recruiting")

    def test_invalid_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition("recruiting", "live")
        assert exc_info.value.current_status == "recruiting"
        assert exc_info.value.target_status == "live"
        assert exc_info.value.error_type == "invalid_transition"

    def test_enum_members_reported_by_value(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(InstanceStatus.ARCHIVED, InstanceStatus.DRAFT)
        assert "'archived'" in exc_info.value.message
        assert "'draft'" in exc_info.value.message

    @pytest.mark.parametrize("target", ["paused", "cancelled"])
    def test_missing_reason(self, target):
        with pytest.raises(MissingReasonError) as exc_info:
            validate_transition("recruiting", target)
        assert exc_info.value.target_status == target

    def test_blank_reason_counts_as_missing(self):
        with pytest.raises(MissingReasonError):
            validate_transition("live", "paused", reason="   ")

    def test_reason_satisfies_requirement(self):
        validate_transition("live", "paused", reason="lightning nearby")

    def test_legality_checked_before_reason(self):
        with pytest.raises(InvalidTransitionError):
            validate_transition("archived", "cancelled")


class TestCoerceStatus:
    def test_known_value(self):
        assert coerce_status("live") is InstanceStatus.LIVE

    def test_member_passes_through(self):
        assert coerce_status(InstanceStatus.DRAFT) is InstanceStatus.DRAFT

    def test_unknown_and_none(self):
        assert coerce_status("bogus") is None
        assert coerce_status(None) is None
