"""Test weekly review generation, recommendation bounds and AI failure handling."""
from datetime import timedelta

import pytest

from conftest import TODAY, FakeAdvisor, recommendation
from core import config
from core.exceptions import (
    AlreadyReviewedError,
    InsufficientDataError,
    InvalidStateError,
    UpstreamFormatError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from database import models
from services.ai_reasoning import ReviewAdvisor, build_review_advisor, extract_review_payload
from services.review_generator import ReviewGenerator, analysis_window, review_week, validate_recommendation
from services.weight_trend import record_weight


def test_review_week_is_one_based():
    assert review_week(TODAY, TODAY) == 1
    assert review_week(TODAY - timedelta(days=6), TODAY) == 1
    assert review_week(TODAY - timedelta(days=7), TODAY) == 2
    assert review_week(TODAY - timedelta(days=20), TODAY) == 3


def test_analysis_window_after_previous_review(db, user, make_program):
    program = make_program(user.id, start_date=TODAY - timedelta(days=60))
    assert analysis_window(program, TODAY) == (TODAY - timedelta(days=7), TODAY)

    program.last_review_date = TODAY - timedelta(days=10)
    assert analysis_window(program, TODAY) == (TODAY - timedelta(days=9), TODAY)

    program.last_review_date = TODAY - timedelta(days=45)
    assert analysis_window(program, TODAY) == (TODAY - timedelta(days=30), TODAY)


def test_calories_clamped_to_twenty_percent(db, user, make_program):
    """3000 kcal against a 2000 kcal target is held at 2400."""
    program = make_program(user.id)
    rec = validate_recommendation({'recommendedCalories': 3000, 'recommendedProtein': 160,
                                   'recommendedCarbs': 220, 'recommendedFat': 65}, program)
    assert rec.calories == 2400

    rec = validate_recommendation({'recommendedCalories': 1000}, program)
    assert rec.calories == 1600


def test_calorie_clamp_never_leaves_the_band(db, user, make_program):
    """A 2003 kcal target allows 1602.4..2403.6, so the bounds are 1603 and 2403."""
    program = make_program(user.id, targets={'calories': 2003, 'protein': 150, 'carbs': 200, 'fat': 60})

    high = validate_recommendation({'recommendedCalories': 3000}, program)
    low = validate_recommendation({'recommendedCalories': 1000}, program)

    assert high.calories == 2403
    assert low.calories == 1603
    assert 2003 * 0.8 <= low.calories <= high.calories <= 2003 * 1.2


def test_macros_held_inside_safety_bands(db, user, make_program):
    program = make_program(user.id)
    rec = validate_recommendation({'recommendedCalories': 2000, 'recommendedProtein': 10,
                                   'recommendedCarbs': 900, 'recommendedFat': 5}, program)
    assert rec.protein == 50
    assert rec.carbs == 600
    assert rec.fat == 30


def test_safety_band_wins_over_percentage_clamp(db, user, make_program):
    """A 1300 kcal program can only go down to 1200, not 1040."""
    program = make_program(user.id, targets={'calories': 1300, 'protein': 120, 'carbs': 120, 'fat': 40})
    rec = validate_recommendation({'recommendedCalories': 900}, program)
    assert rec.calories == 1200


def test_invalid_values_fall_back_to_current_targets(db, user, make_program):
    program = make_program(user.id)
    rec = validate_recommendation({'recommendedCalories': "lots", 'recommendedProtein': -5,
                                   'recommendedCarbs': None, 'confidenceLevel': 'certain'}, program)
    assert (rec.calories, rec.protein, rec.carbs, rec.fat) == (2000, 150, 200, 60)
    assert rec.confidence == 'medium'
    assert rec.analysis == ''


def test_long_texts_are_truncated(db, user, make_program):
    program = make_program(user.id)
    rec = validate_recommendation({'analysis': 'a' * 6000, 'reasoning': 'r' * 800}, program)
    assert len(rec.analysis) == 5000
    assert len(rec.reasoning) == 500


def test_extract_payload_from_fenced_text():
    parsed = extract_review_payload("Here you go:\n```json\n" + recommendation(calories=2100) + "\n```")
    assert parsed.ok
    assert parsed.value['recommendedCalories'] == 2100


def test_extract_payload_without_json_reports_error():
    parsed = extract_review_payload("I think you are doing great {not json")
    assert not parsed.ok
    assert isinstance(parsed.error, UpstreamFormatError)
    assert not extract_review_payload("").ok


def test_generate_review_stores_pending_recommendation(db, user, make_program, log_days):
    program = make_program(user.id, starting_weight_kg=85.0)
    log_days(user.id, [4, 3, 2, 1, 0], calories=1900, protein=150)
    record_weight(db, user.id, TODAY - timedelta(days=1), 84.0)
    advisor = FakeAdvisor(recommendation(calories=3000, protein=165, carbs=190, fat=62))

    review = ReviewGenerator(db, advisor).generate_review(user.id, today=TODAY)

    assert review.status == 'pending'
    assert review.review_week == 2
    assert review.days_analyzed == 5
    assert review.avg_calories == 1900
    assert review.compliance_rate == 100
    assert review.recommended_calories == 2400
    assert review.recommended_protein == 165
    assert review.confidence_level == 'high'
    assert review.current_weight_kg == 84.0
    assert review.weight_change_kg == -1.0
    assert "moderate_cut" in advisor.prompts[0]
    db.refresh(program)
    assert program.calorie_target == 2000


def test_three_days_of_data_is_not_enough(db, user, make_program, log_days):
    make_program(user.id)
    log_days(user.id, [3, 2, 1])
    with pytest.raises(InsufficientDataError) as exc_info:
        ReviewGenerator(db, FakeAdvisor()).generate_review(user.id, today=TODAY)
    assert exc_info.value.details == {"minimum_required": 4, "days_available": 3}
    assert db.query(models.ProgramReview).count() == 0


def test_four_days_of_data_is_enough(db, user, make_program, log_days):
    make_program(user.id)
    log_days(user.id, [3, 2, 1, 0])
    review = ReviewGenerator(db, FakeAdvisor()).generate_review(user.id, today=TODAY)
    assert review.days_analyzed == 4


def test_duplicate_week_requires_force(db, user, make_program, log_days):
    make_program(user.id)
    log_days(user.id, range(5))
    generator = ReviewGenerator(db, FakeAdvisor())
    first = generator.generate_review(user.id, today=TODAY)

    with pytest.raises(AlreadyReviewedError):
        generator.generate_review(user.id, today=TODAY)

    forced = generator.generate_review(user.id, force_review=True, today=TODAY)
    assert forced.id != first.id
    assert forced.is_forced is True
    assert forced.review_week == first.review_week


def test_unparseable_ai_answer_persists_nothing(db, user, make_program, log_days):
    make_program(user.id)
    log_days(user.id, range(5))
    with pytest.raises(UpstreamFormatError):
        ReviewGenerator(db, FakeAdvisor("Sorry, I can't help with that.")).generate_review(user.id, today=TODAY)
    assert db.query(models.ProgramReview).count() == 0


def test_ai_timeout_propagates(db, user, make_program, log_days):
    make_program(user.id)
    log_days(user.id, range(5))
    with pytest.raises(UpstreamTimeoutError) as exc_info:
        ReviewGenerator(db, FakeAdvisor(UpstreamTimeoutError(30))).generate_review(user.id, today=TODAY)
    assert exc_info.value.status_code == 504


def test_unconfigured_advisor_is_unavailable(db, user, make_program, log_days):
    make_program(user.id)
    log_days(user.id, range(5))
    advisor = ReviewAdvisor(client=None)
    assert not advisor.available
    with pytest.raises(UpstreamUnavailableError):
        ReviewGenerator(db, advisor).generate_review(user.id, today=TODAY)


def test_configured_advisor_makes_a_single_attempt(monkeypatch):
    monkeypatch.setattr(config, "AI_API_KEY", "test-key")
    advisor = build_review_advisor()
    assert advisor.available
    assert advisor.client.max_retries == 0
    assert advisor.client.timeout == config.AI_TIMEOUT_SECONDS


def test_no_active_program(db, user):
    with pytest.raises(InvalidStateError):
        ReviewGenerator(db, FakeAdvisor()).generate_review(user.id, today=TODAY)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
