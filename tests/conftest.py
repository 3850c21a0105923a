from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from archexam.api.deps import get_clock, get_exam_service
from archexam.core.auth import create_token
from archexam.core.config import Settings
from archexam.core.database import get_db, init_db, make_engine
from archexam.main import app
from archexam.models.orm import Question, User
from archexam.services.exam_service import ExamService

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

SINGLE_OPTIONS = ["Ming", "Qing", "Song", "Tang"]
MULTIPLE_OPTIONS = ["A", "B", "C", "D"]


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def add_bank(db, singles=12, multiples=8):
    questions = []
    for i in range(singles):
        questions.append(Question(
            question_type="single",
            content=f"Which dynasty built hall #{i}?",
            options=list(SINGLE_OPTIONS),
            answer=SINGLE_OPTIONS[i % len(SINGLE_OPTIONS)],
            analysis="Timber bracket sets date it.",
        ))
    for i in range(multiples):
        answer = ["A,B", "B,D", "A,C,D", "C"][i % 4]
        questions.append(Question(
            question_type="multiple",
            content=f"Which features appear on pagoda #{i}?",
            options=list(MULTIPLE_OPTIONS),
            answer=answer,
        ))
    db.add_all(questions)
    db.commit()
    return questions


def correct_answers(questions, question_ids):
    by_id = {q.id: q for q in questions}
    answers = {}
    for qid in question_ids:
        q = by_id[qid]
        if q.question_type == "multiple":
            answers[str(qid)] = list(reversed(q.answer.split(",")))
        else:
            answers[str(qid)] = q.answer
    return answers


@pytest.fixture
def bank(db):
    return add_bank(db)


@pytest.fixture
def users(db):
    db.add_all([User(id="u1", username="ada"), User(id="u2", username="grace")])
    db.commit()


@pytest.fixture
def settings():
    return Settings(
        EXAM_SIGNING_KEY="test-exam-key",
        EXAM_TOKEN_TTL_SECONDS=900,
        QUALIFICATION_QUESTION_COUNT=5,
        QUALIFICATION_PASS_PERCENTAGE=80.0,
        PERSIST_RETRY_WAIT_SECONDS=0,
    )


@pytest.fixture
def service(settings):
    return ExamService(settings)


@pytest.fixture
def clock():
    return {"now": T0}


@pytest.fixture
def client(session_factory, service, clock):
    def _db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_exam_service] = lambda: service
    app.dependency_overrides[get_clock] = lambda: clock["now"]
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user_id="u1", roles=("student",)):
    return {"Authorization": f"Bearer {create_token(user_id, list(roles))}"}
