"""Tests for commitment_tracker.core.patterns — pure aggregation logic."""

from conftest import OWNER, make_commitment

from commitment_tracker.core.patterns import (
    completion_rate,
    compute_patterns,
    preferred_days,
    typical_completion_hour,
)


def _done(due_date="2026-03-02", due_time="09:00", id=1):
    return make_commitment(id=id, due_date=due_date, due_time=due_time, completed=True)


class TestTypicalCompletionHour:
    def test_most_common_hour(self):
        completed = [_done(due_time="09:15"), _done(due_time="18:00"), _done(due_time="09:45")]
        assert typical_completion_hour(completed) == 9

    def test_tie_goes_to_first_encountered(self):
        completed = [_done(due_time="18:00"), _done(due_time="09:00")]
        assert typical_completion_hour(completed) == 18
        assert typical_completion_hour(list(reversed(completed))) == 9

    def test_empty_is_none(self):
        assert typical_completion_hour([]) is None

    def test_bad_times_are_skipped(self):
        completed = [_done(due_time="soon"), _done(due_time="25:00"), _done(due_time="07:30")]
        assert typical_completion_hour(completed) == 7


class TestPreferredDays:
    def test_top_three_by_count(self):
        # 2026-03-02 is a Monday
        completed = [
            _done("2026-03-02"), _done("2026-03-09"), _done("2026-03-16"),   # monday x3
            _done("2026-03-06"), _done("2026-03-13"),                        # friday x2
            _done("2026-03-04"),                                             # wednesday
            _done("2026-03-08"),                                             # sunday
        ]
        assert preferred_days(completed) == ["monday", "friday", "wednesday"]

    def test_fewer_than_three_days(self):
        assert preferred_days([_done("2026-03-03")]) == ["tuesday"]

    def test_empty(self):
        assert preferred_days([]) == []


class TestCompletionRate:
    def test_rounded_to_two_places(self):
        commitments = [
            make_commitment(id=1, completed=True),
            make_commitment(id=2),
            make_commitment(id=3),
        ]
        assert completion_rate(commitments) == 0.33

    def test_empty_is_zero(self):
        assert completion_rate([]) == 0.0

    def test_all_done(self):
        assert completion_rate([_done(), _done(id=2)]) == 1.0


class TestComputePatterns:
    def test_snapshot(self):
        completed = [_done("2026-03-02", "09:00", id=1), _done("2026-03-03", "09:30", id=2)]
        everything = completed + [make_commitment(id=3), make_commitment(id=4)]

        pattern = compute_patterns(OWNER, completed, everything)

        assert pattern.owner == OWNER
        assert pattern.typical_completion_hour == 9
        assert pattern.preferred_days == ["monday", "tuesday"]
        assert pattern.average_completion_rate == 0.5

    def test_nothing_completed(self):
        pattern = compute_patterns(OWNER, [], [make_commitment()])
        assert pattern.typical_completion_hour is None
        assert pattern.preferred_days == []
        assert pattern.average_completion_rate == 0.0


def test_all_completed_same_morning_hour():
    completed = [
        _done(due_time="09:00", id=1),
        _done(due_time="09:00", id=2),
        _done(due_time="14:00", id=3),
    ]
    pattern = compute_patterns(OWNER, completed, completed)
    assert pattern.typical_completion_hour == 9
    assert pattern.average_completion_rate == 1.0


def test_empty_history_does_not_raise():
    pattern = compute_patterns(OWNER, [], [])
    assert pattern.average_completion_rate == 0
