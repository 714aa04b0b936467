import itertools
from datetime import datetime

import pytest
import pytz

from foursigma import create_app, db
from foursigma.models import DailyQuestion, Question, User, UserResponse
from foursigma.utils.scoring import calculate_score, in_bounds

UTC = pytz.UTC

# Wednesday
NOW = datetime(2024, 3, 13, 15, 0, tzinfo=UTC)

_device_counter = itertools.count(1)


@pytest.fixture
def app(tmp_path, monkeypatch):
    # A file database so enrichment worker threads see committed rows
    monkeypatch.setenv("TEST_DATABASE_URL", f"sqlite:///{tmp_path / 'four_sigma.db'}")
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    """App context for service-level tests (not shared with the test client)"""
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_question():
    def _make(true_value=100.0, prompt=None, unit="", is_active=True):
        question = Question(
            prompt=prompt or f"Estimate the value ({true_value})",
            unit=unit,
            true_value=true_value,
            source_name="Almanac",
            source_url="https://example.org/almanac",
            is_active=is_active,
        )
        db.session.add(question)
        db.session.commit()
        return question

    return _make


@pytest.fixture
def schedule_questions():
    def _schedule(day, questions):
        for order, question in enumerate(questions):
            db.session.add(
                DailyQuestion(date=day, question_id=question.id, display_order=order)
            )
        db.session.commit()

    return _schedule


@pytest.fixture
def make_user():
    def _make(display_name="Player", device_id=None):
        user = User(
            device_id=device_id or f"device-{next(_device_counter)}",
            display_name=display_name,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_response():
    """Insert a scored response; score defaults to what the bounds earn"""

    def _make(user, question, lower, upper, answered_at=NOW, score=None):
        response = UserResponse(
            user_id=user.id,
            question_id=question.id,
            lower_bound=lower,
            upper_bound=upper,
            score=(
                calculate_score(lower, upper, question.true_value)
                if score is None
                else score
            ),
            captured=in_bounds(lower, upper, question.true_value),
            answer_value_at_response=question.true_value,
            answered_at=answered_at,
        )
        db.session.add(response)
        db.session.commit()
        return response

    return _make
