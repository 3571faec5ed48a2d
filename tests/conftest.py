import os
import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add backend to sys.path so the flat modules import like they do under uvicorn
BACKEND_PATH = Path(__file__).resolve().parent.parent / "backend"
if BACKEND_PATH.as_posix() not in sys.path:
    sys.path.insert(0, BACKEND_PATH.as_posix())

# Must be set before db/config are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RESEND_API_KEY"] = ""
os.environ["GOOGLE_API_KEY"] = ""

from db import Base, SessionLocal, engine  # noqa: E402
import models  # noqa: E402
from utils import utcnow  # noqa: E402


@pytest.fixture
def db():
    """Fresh schema and session per test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    import main

    return TestClient(main.app)


@pytest.fixture
def make_article(db):
    counter = {"n": 0}

    def _make(url=None, title="Understanding Blood Pressure", source="cdc.gov", clean_text="x" * 600):
        counter["n"] += 1
        article = models.Article(
            url=url or f"https://www.cdc.gov/article-{counter['n']}",
            title=title,
            source=source,
            published_at=utcnow(),
            clean_text=clean_text,
            status="processed",
        )
        db.add(article)
        db.commit()
        db.refresh(article)
        return article

    return _make


@pytest.fixture
def make_question(db, make_article):
    def _make(article=None, prompt="What is a normal resting heart rate?", correct_index=1, **fields):
        article = article or make_article()
        question = models.Question(
            article_id=article.id,
            prompt=prompt,
            explanation="Most adults fall between 60 and 100 beats per minute.",
            source_span="A normal resting heart rate for adults ranges from 60 to 100",
            **fields,
        )
        question.choices = [
            models.Choice(text=text, is_correct=(i == correct_index), order_index=i)
            for i, text in enumerate(["20-40 bpm", "60-100 bpm", "120-160 bpm", "200+ bpm"])
        ]
        db.add(question)
        db.commit()
        db.refresh(question)
        return question

    return _make


@pytest.fixture
def make_response(db):
    def _make(question, days_ago=0, correct=True):
        session = models.QuizSession(total_questions=10, correct_answers=0)
        db.add(session)
        db.flush()
        choice = next(c for c in question.choices if c.is_correct == correct)
        response = models.Response(
            session_id=session.id,
            question_id=question.id,
            choice_id=choice.id,
            is_correct=choice.is_correct,
            answered_at=utcnow() - timedelta(days=days_ago),
        )
        db.add(response)
        db.commit()
        return response

    return _make
