"""Test the daily review sweep."""
from datetime import timedelta

import pytest

from conftest import TODAY, FakeAdvisor, recommendation
from database import models
from services.program_manager import ProgramManager
from services.review_generator import ReviewGenerator
from services.review_sweep import SKIP_EXISTING, SKIP_INSUFFICIENT_DATA, SKIP_LOCKED, ReviewSweep


def test_sweep_generates_and_skips(db, make_user, make_program, log_days):
    """Programs with enough data get a review; the rest are skipped with a reason."""
    ready, sparse = make_user(), make_user()
    make_program(ready.id)
    make_program(sparse.id)
    log_days(ready.id, [4, 3, 2, 1, 0])
    log_days(sparse.id, [1, 0])

    summary = ReviewSweep(db, FakeAdvisor()).run(TODAY)

    assert summary.programs_checked == 2
    assert summary.reviews_generated == 1
    assert summary.skipped_insufficient_data == 1
    assert summary.errors == 0
    outcomes = {o.user_id: o for o in summary.details}
    assert outcomes[ready.id].status == 'generated'
    assert outcomes[sparse.id].skip_code == SKIP_INSUFFICIENT_DATA
    assert "2/7" in outcomes[sparse.id].reason


def test_second_run_same_day_generates_nothing(db, user, make_program, log_days):
    make_program(user.id)
    log_days(user.id, range(5))
    sweep = ReviewSweep(db, FakeAdvisor())

    assert sweep.run(TODAY).reviews_generated == 1
    second = sweep.run(TODAY)

    assert second.reviews_generated == 0
    assert second.skipped_existing == 1
    assert second.details[0].skip_code == SKIP_EXISTING
    assert db.query(models.ProgramReview).count() == 1


def test_one_failure_does_not_stop_the_batch(db, make_user, make_program, log_days):
    first, second = make_user(), make_user()
    make_program(first.id)
    make_program(second.id)
    log_days(first.id, range(5))
    log_days(second.id, range(5))

    summary = ReviewSweep(db, FakeAdvisor("not json at all", recommendation())).run(TODAY)

    assert summary.errors == 1
    assert summary.reviews_generated == 1
    statuses = {o.user_id: o.status for o in summary.details}
    assert statuses == {first.id: 'error', second.id: 'generated'}


def test_locked_programs_are_skipped(db, user, make_program, log_days):
    program = make_program(user.id)
    ProgramManager(db).update_program(user.id, program.id, macros_locked=True)
    log_days(user.id, range(5))

    summary = ReviewSweep(db, FakeAdvisor()).run(TODAY)

    assert summary.skipped_locked == 1
    assert summary.details[0].skip_code == SKIP_LOCKED
    assert db.query(models.ProgramReview).count() == 0


def test_programs_not_yet_due_are_ignored(db, user, make_program, log_days):
    program = make_program(user.id)
    program.next_review_date = TODAY + timedelta(days=3)
    db.commit()
    log_days(user.id, range(5))

    assert ReviewSweep(db, FakeAdvisor()).run(TODAY).programs_checked == 0


def test_programs_that_have_not_started_are_ignored(db, user, make_program, log_days):
    """Logged days before a future start date do not make the program due."""
    make_program(user.id, start_date=TODAY + timedelta(days=3))
    log_days(user.id, range(5))

    summary = ReviewSweep(db, FakeAdvisor()).run(TODAY)

    assert summary.programs_checked == 0
    assert summary.errors == 0
    assert db.query(models.ProgramReview).count() == 0

    # Once it starts it is picked up like any other program.
    assert ReviewSweep(db, FakeAdvisor()).run(TODAY + timedelta(days=3)).programs_checked == 1


def test_stale_pending_reviews_expire(db, user, make_program, log_days):
    generated_on = TODAY - timedelta(days=8)
    make_program(user.id, start_date=generated_on - timedelta(days=7))
    log_days(user.id, range(5), today=generated_on)
    review = ReviewGenerator(db, FakeAdvisor()).generate_review(user.id, today=generated_on)

    summary = ReviewSweep(db, FakeAdvisor()).run(TODAY)

    db.refresh(review)
    assert review.status == 'expired'
    assert summary.expired_reviews == 1


def test_ended_programs_complete_before_review(db, user, make_program, log_days):
    program = make_program(user.id, start_date=TODAY - timedelta(days=15), duration_weeks=2)
    log_days(user.id, range(5))

    summary = ReviewSweep(db, FakeAdvisor()).run(TODAY)

    db.refresh(program)
    assert program.status == 'completed'
    assert summary.programs_completed == 1
    assert summary.programs_checked == 0


def test_summary_serializes(db, user, make_program):
    make_program(user.id)
    data = ReviewSweep(db, FakeAdvisor()).run(TODAY).as_dict()
    assert data['run_date'] == TODAY.isoformat()
    assert data['details'][0]['skip_code'] == SKIP_INSUFFICIENT_DATA


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
