"""Test program lifecycle: creation, expiry, manual adjustments and history."""
from datetime import timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from conftest import DEFAULT_TARGETS, TODAY, FakeAdvisor
from core.exceptions import InvalidStateError, NotFoundError, ValidationError
from database import models
from services.goals import get_goals, validate_targets
from services.program_manager import ProgramManager
from services.review_generator import ReviewGenerator


def test_create_program_sets_end_date_and_seeds_goals(db, user, make_program):
    """The end date is start + weeks*7 and the goals mirror the targets."""
    program = make_program(user.id, start_date=TODAY, duration_weeks=8,
                           targets={'calories': 2200, 'protein': 170, 'carbs': 230, 'fat': 70})

    assert program.status == 'active'
    assert program.end_date == TODAY + timedelta(days=56)
    assert program.review_count == 0
    assert get_goals(db, user.id).as_dict() == {'calories': 2200, 'protein': 170, 'carbs': 230, 'fat': 70}


def test_create_program_cancels_previous_active(db, user, make_program):
    """Only one program stays active per user."""
    first = make_program(user.id)
    second = make_program(user.id, template_id="lean_bulk")
    db.refresh(first)

    assert first.status == 'cancelled'
    assert second.status == 'active'
    active = db.query(models.UserProgram).filter_by(user_id=user.id, status='active').all()
    assert [p.id for p in active] == [second.id]


@pytest.mark.parametrize("missing", ['calories', 'protein', 'carbs', 'fat'])
def test_create_program_requires_every_target(db, user, missing):
    targets = dict(DEFAULT_TARGETS)
    targets[missing] = None
    with pytest.raises(ValidationError) as exc_info:
        ProgramManager(db).create_program(user.id, "maintenance", TODAY, 4, targets)
    assert exc_info.value.details == {"field": missing}
    assert db.query(models.UserProgram).count() == 0


def test_create_program_requires_duration_and_start(db, user):
    manager = ProgramManager(db)
    with pytest.raises(ValidationError):
        manager.create_program(user.id, "maintenance", TODAY, 0, dict(DEFAULT_TARGETS))
    with pytest.raises(ValidationError):
        manager.create_program(user.id, "maintenance", None, 4, dict(DEFAULT_TARGETS))
    with pytest.raises(ValidationError):
        manager.create_program(user.id, "", TODAY, 4, dict(DEFAULT_TARGETS))


def test_active_program_completes_lazily_after_end_date(db, user, make_program):
    program = make_program(user.id, start_date=TODAY - timedelta(days=14), duration_weeks=1)
    manager = ProgramManager(db)

    assert manager.get_active_program(user.id, TODAY) is None
    db.refresh(program)
    assert program.status == 'completed'
    assert [p.id for p in manager.list_history(user.id)] == [program.id]


def test_program_of_another_user_is_not_found(db, make_user, make_program):
    owner, other = make_user(), make_user()
    program = make_program(owner.id)
    with pytest.raises(NotFoundError):
        ProgramManager(db).get_program(other.id, program.id)


def test_manual_adjustment_records_history_and_expires_pending_review(db, user, make_program, log_days):
    """Hand-edited targets are audited, synced to goals and invalidate pending reviews."""
    program = make_program(user.id)
    log_days(user.id, range(5))
    review = ReviewGenerator(db, FakeAdvisor()).generate_review(user.id, today=TODAY)

    updated = ProgramManager(db).update_program(user.id, program.id, targets={'calories': 1850}, today=TODAY)

    assert updated.calorie_target == 1850
    assert updated.protein_target == DEFAULT_TARGETS['protein']
    history = ProgramManager(db).macro_history(user.id, program.id)
    assert [(h.change_reason, h.review_id, h.calorie_target) for h in history] == [('manual_adjustment', None, 1850)]
    assert get_goals(db, user.id).calories == 1850
    db.refresh(review)
    assert review.status == 'expired'


def test_update_program_rejects_non_positive_targets(db, user, make_program):
    program = make_program(user.id)
    with pytest.raises(ValidationError):
        ProgramManager(db).update_program(user.id, program.id, targets={'fat': 0})


def test_status_change_only_from_active(db, user, make_program):
    program = make_program(user.id)
    manager = ProgramManager(db)

    manager.update_program(user.id, program.id, status='completed', ending_weight_kg=78.5)
    with pytest.raises(InvalidStateError):
        manager.update_program(user.id, program.id, status='cancelled')
    with pytest.raises(ValidationError):
        manager.update_program(user.id, program.id, status='active')

    db.refresh(program)
    assert program.status == 'completed'
    assert program.ending_weight_kg == 78.5


def test_macros_locked_flag_round_trips(db, user, make_program):
    program = make_program(user.id)
    updated = ProgramManager(db).update_program(user.id, program.id, macros_locked=True, notes="Holiday")
    assert updated.macros_locked is True
    assert updated.notes == "Holiday"


@pytest.mark.parametrize("value", [0.4, 0.49, -0.6])
def test_targets_that_round_below_one_are_rejected(db, user, value):
    targets = dict(DEFAULT_TARGETS, fat=value)
    with pytest.raises(ValidationError) as exc_info:
        validate_targets(targets)
    assert exc_info.value.details == {"field": "fat"}
    with pytest.raises(ValidationError):
        ProgramManager(db).create_program(user.id, "moderate_cut", TODAY, 12, targets)
    assert db.query(models.UserProgram).count() == 0


def test_fractional_targets_round_half_up():
    macros = validate_targets({'calories': 2000.5, 'protein': 150.4, 'carbs': 2.5, 'fat': 0.5})
    assert macros.as_dict() == {'calories': 2001, 'protein': 150, 'carbs': 3, 'fat': 1}


def test_database_allows_one_active_program_per_user(db, user, make_program):
    program = make_program(user.id)
    db.add(models.UserProgram(
        user_id=user.id, template_id="lean_bulk", start_date=TODAY, end_date=TODAY + timedelta(days=28),
        duration_weeks=4, status='active', calorie_target=2500, protein_target=180, carbs_target=300,
        fat_target=70, review_count=0, macros_locked=False))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

    active = db.query(models.UserProgram).filter_by(user_id=user.id, status='active').all()
    assert [p.id for p in active] == [program.id]


def test_concurrent_activation_is_reported_as_conflict(db, user):
    """Another request activates a program between our cancel step and our insert."""
    table = models.UserProgram.__table__

    def competing_insert(session, flush_context, instances):
        if not any(isinstance(obj, models.UserProgram) for obj in session.new):
            return
        session.connection().execute(table.insert().values(
            user_id=user.id, template_id="maintenance", start_date=TODAY, end_date=TODAY + timedelta(days=28),
            duration_weeks=4, status='active', calorie_target=2300, protein_target=160, carbs_target=260,
            fat_target=70, review_count=0, macros_locked=False))

    event.listen(db, "before_flush", competing_insert)
    try:
        with pytest.raises(InvalidStateError) as exc_info:
            ProgramManager(db).create_program(user.id, "moderate_cut", TODAY, 12, dict(DEFAULT_TARGETS))
    finally:
        event.remove(db, "before_flush", competing_insert)

    assert exc_info.value.status_code == 409
    assert "concurrently" in exc_info.value.message
    # The whole unit rolled back, goals included.
    assert db.query(models.UserProgram).count() == 0
    assert db.query(models.UserGoals).filter_by(user_id=user.id).count() == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
