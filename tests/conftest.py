"""Shared fixtures: an in-memory database per test and a scripted AI advisor."""

import json
from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.models import Base
from services.ai_reasoning import ReviewAdvisor
from services.food_log import add_food_entry
from services.goals import create_user
from services.program_manager import ProgramManager

TODAY = date(2026, 3, 15)
DEFAULT_TARGETS = {'calories': 2000, 'protein': 150, 'carbs': 200, 'fat': 60}


def recommendation(calories=1900, protein=160, carbs=180, fat=60, confidence="high",
                   analysis="Solid week.", reasoning="Weight is trending as expected."):
    """Serialize a review recommendation the way the AI service answers."""
    return json.dumps({
        "analysis": analysis,
        "reasoning": reasoning,
        "recommendedCalories": calories,
        "recommendedProtein": protein,
        "recommendedCarbs": carbs,
        "recommendedFat": fat,
        "confidenceLevel": confidence,
    })


class FakeAdvisor(ReviewAdvisor):
    """Advisor that replays scripted answers instead of calling the network.

    Answers are consumed in order; the last one repeats. An exception in
    the script is raised instead of returned.
    """

    def __init__(self, *answers):
        super().__init__(client=None)
        self.answers = list(answers) or [recommendation()]
        self.prompts = []

    @property
    def available(self) -> bool:
        return True

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make(name="Test User"):
        counter['n'] += 1
        return create_user(db, name, f"user{counter['n']}@example.com")

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def make_program(db):
    def _make(user_id, start_date=TODAY - timedelta(days=7), duration_weeks=12, targets=None,
              template_id="moderate_cut", starting_weight_kg=None):
        return ProgramManager(db).create_program(
            user_id, template_id, start_date, duration_weeks, dict(targets or DEFAULT_TARGETS),
            starting_weight_kg=starting_weight_kg)

    return _make


@pytest.fixture
def log_days(db):
    """Log one food entry on each of the given days (offsets back from `today`)."""

    def _log(user_id, offsets, today=TODAY, calories=1900, protein=150, carbs=200, fat=60):
        for offset in offsets:
            day = today - timedelta(days=offset)
            add_food_entry(db, user_id, day, 'lunch', 'Logged meal', calories, protein, carbs, fat, today=day)

    return _log
