"""Tests for the aggregate board view."""

import itertools
from datetime import date

import pytest

from squatboard.core.errors import InvalidInputError, UnknownUserError
from squatboard.features.board.builder import build_view, order_rows, stats_for_user
from squatboard.models.ledger import CompletionLedger
from squatboard.models.user import UserSnapshot

REF = date(2024, 1, 5)


def user(user_id, name, *days):
    return UserSnapshot(user_id=user_id, display_name=name, ledger=CompletionLedger.of(date(2024, 1, x) for x in days))


@pytest.fixture
def users():
    return [
        user("u2", "bob", 5),
        user("u1", "Alice", 1, 2, 3),
        user("u3", "carol", 3, 4, 5),
    ]


def test_grid_is_most_recent_first(users):
    view = build_view(users, REF, 5)
    assert view.dates[0] == REF
    assert view.dates[-1] == date(2024, 1, 1)
    assert view.window_size_days == 5

    carol = stats_for_user(view, "u3")
    assert carol.days == [True, True, True, False, False]
    assert carol.current_streak == 3
    assert carol.completed_today is True


def test_rows_come_out_in_id_order(users):
    view = build_view(users, REF, 3)
    assert [r.user_id for r in view.rows] == ["u1", "u2", "u3"]


def test_stats(users):
    view = build_view(users, REF, 10)
    assert view.stats.longest_streak == 3
    assert view.stats.streak_holder == "carol"
    assert view.stats.active_today == 2
    assert view.stats.user_streaks == {"u1": 0, "u2": 1, "u3": 3}


def test_active_today_bounds(users):
    view = build_view(users, REF, 1)
    assert 0 <= view.stats.active_today <= len(users)
    assert view.stats.active_today == sum(1 for u in users if u.ledger.contains(REF))


def test_stats_are_order_independent(users):
    expected = build_view(users, REF, 7).to_dict()
    for perm in itertools.permutations(users):
        assert build_view(list(perm), REF, 7).to_dict() == expected


def test_empty_board():
    view = build_view([], REF, 3)
    assert view.rows == []
    assert view.stats.longest_streak == 0
    assert view.stats.streak_holder is None
    assert view.stats.active_today == 0


@pytest.mark.parametrize("window", [0, -1, 91])
def test_window_bounds(users, window):
    with pytest.raises(InvalidInputError):
        build_view(users, REF, window)


def test_custom_max_window(users):
    assert build_view(users, REF, 120, max_window_days=365).window_size_days == 120


def test_order_rows_viewer_first_then_name(users):
    view = order_rows(build_view(users, REF, 3), viewer_id="u3")
    assert [r.display_name for r in view.rows] == ["carol", "Alice", "bob"]


def test_order_rows_by_streak(users):
    view = order_rows(build_view(users, REF, 3), sort="streak")
    assert [r.user_id for r in view.rows] == ["u3", "u2", "u1"]


def test_order_rows_does_not_change_stats(users):
    view = build_view(users, REF, 3)
    ordered = order_rows(view, viewer_id="u1", sort="streak")
    assert ordered.stats == view.stats
    assert ordered.dates == view.dates


def test_order_rows_rejects_unknown_sort(users):
    with pytest.raises(InvalidInputError):
        order_rows(build_view(users, REF, 3), sort="age")


def test_stats_for_unknown_user(users):
    with pytest.raises(UnknownUserError):
        stats_for_user(build_view(users, REF, 3), "ghost")


def test_to_dict_shape(users):
    payload = build_view(users, REF, 2).to_dict()
    assert payload["referenceDay"] == "2024-01-05"
    assert payload["dates"] == ["2024-01-05", "2024-01-04"]
    assert payload["users"][0] == {
        "userId": "u1",
        "username": "Alice",
        "days": [False, False],
        "currentStreak": 0,
        "completedToday": False,
    }
    assert payload["stats"]["streakHolder"] == "carol"
    assert payload["stats"]["activeToday"] == 2
