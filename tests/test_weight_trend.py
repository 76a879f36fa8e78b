"""Test the weight log and its smoothed trend."""
from datetime import timedelta

import pytest

from conftest import TODAY
from core.exceptions import NotFoundError, ValidationError
from services import weight_trend


def test_first_entry_seeds_trend(db, user):
    entry = weight_trend.record_weight(db, user.id, TODAY, 80.0)
    assert entry.trend_weight == 80.0


def test_trend_moves_a_tenth_of_the_way(db, user):
    weight_trend.record_weight(db, user.id, TODAY - timedelta(days=1), 80.0)
    entry = weight_trend.record_weight(db, user.id, TODAY, 81.0)
    assert entry.trend_weight == pytest.approx(80.1)


def test_backfill_recomputes_later_entries(db, user):
    weight_trend.record_weight(db, user.id, TODAY - timedelta(days=1), 80.0)
    weight_trend.record_weight(db, user.id, TODAY, 81.0)
    weight_trend.record_weight(db, user.id, TODAY - timedelta(days=2), 70.0)

    entries = weight_trend.list_weights(db, user.id)
    assert [e.trend_weight for e in entries] == [pytest.approx(72.0), pytest.approx(71.0), pytest.approx(70.0)]


def test_same_day_replaces_entry(db, user):
    weight_trend.record_weight(db, user.id, TODAY, 80.0)
    weight_trend.record_weight(db, user.id, TODAY, 79.0, notes="after run")

    entries = weight_trend.list_weights(db, user.id)
    assert len(entries) == 1
    assert entries[0].weight_kg == 79.0
    assert entries[0].notes == "after run"


@pytest.mark.parametrize("weight", [10, 600])
def test_out_of_range_weight_rejected(db, user, weight):
    with pytest.raises(ValidationError) as exc_info:
        weight_trend.record_weight(db, user.id, TODAY, weight)
    assert exc_info.value.details == {"field": "weight_kg"}


def test_latest_observation_respects_until(db, user):
    weight_trend.record_weight(db, user.id, TODAY - timedelta(days=3), 82.0)
    weight_trend.record_weight(db, user.id, TODAY, 81.0)

    latest = weight_trend.latest_observation(db, user.id, until=TODAY - timedelta(days=1))
    assert latest.weight_kg == 82.0
    assert weight_trend.latest_observation(db, user.id, until=TODAY - timedelta(days=5)) is None


def test_delete_recomputes_and_checks_owner(db, make_user):
    owner, other = make_user(), make_user()
    first = weight_trend.record_weight(db, owner.id, TODAY - timedelta(days=1), 70.0)
    weight_trend.record_weight(db, owner.id, TODAY, 80.0)

    with pytest.raises(NotFoundError):
        weight_trend.delete_weight(db, other.id, first.id)

    weight_trend.delete_weight(db, owner.id, first.id)
    remaining = weight_trend.list_weights(db, owner.id)
    assert [e.trend_weight for e in remaining] == [pytest.approx(80.0)]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
