# quiz.py
import logging
import math
import random
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

import models
from config import QUIZ_QUESTIONS_PER_SESSION
from notify import NotificationError, send_quiz_results
from utils import utcnow

logger = logging.getLogger(__name__)

QUESTION_POOL_SIZE = 50


class NoQuestionsAvailable(Exception):
    pass


class InvalidChoice(Exception):
    pass


class SessionNotFound(Exception):
    pass


def create_session(db: Session) -> models.QuizSession:
    session = models.QuizSession(
        started_at=utcnow(),
        total_questions=QUIZ_QUESTIONS_PER_SESSION,
        correct_answers=0,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def select_quiz_questions(db: Session, limit: Optional[int] = None, pool_size: int = QUESTION_POOL_SIZE) -> list:
    """Random subset of reviewed, active questions, shaped for the quiz page."""
    pool = (
        db.query(models.Question)
        .options(selectinload(models.Question.choices), selectinload(models.Question.article))
        .filter(models.Question.reviewed.is_(True), models.Question.status == models.QuestionStatus.ACTIVE)
        .limit(pool_size)
        .all()
    )
    if not pool:
        raise NoQuestionsAvailable("No active questions available. Please check with administrator.")

    random.shuffle(pool)
    limit = limit or QUIZ_QUESTIONS_PER_SESSION
    selected = pool[:min(limit, len(pool))]
    logger.info("Quiz: found %d active questions, using %d", len(pool), len(selected))

    return [
        {
            "id": q.id,
            "prompt": q.prompt,
            "explanation": q.explanation,
            "source_quote": q.source_span,
            "article_title": q.article.title,
            "article_source": q.article.source,
            "article_url": q.article.url,
            "choices": [
                {"id": c.id, "text": c.text, "is_correct": c.is_correct}
                for c in sorted(q.choices, key=lambda c: c.order_index)
            ],
        }
        for q in selected
    ]


def _running_score(db: Session, session: models.QuizSession) -> dict:
    answered = db.query(models.Response).filter(models.Response.session_id == session.id).count()
    return {"correct": session.correct_answers, "answered": answered, "total": session.total_questions}


def _previous_response(db: Session, session_id: int, question_id: int) -> Optional[models.Response]:
    return (
        db.query(models.Response)
        .filter(models.Response.session_id == session_id, models.Response.question_id == question_id)
        .first()
    )


def _already_answered(db: Session, session: models.QuizSession, previous: models.Response) -> dict:
    return {
        "correct": previous.is_correct,
        "already_answered": True,
        "running_score": _running_score(db, session),
    }


def record_response(db: Session, session_id: int, question_id: int, choice_id: int) -> dict:
    session = db.get(models.QuizSession, session_id)
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found")

    choice = db.get(models.Choice, choice_id)
    if choice is None or choice.question_id != question_id:
        raise InvalidChoice("Invalid choice")

    previous = _previous_response(db, session_id, question_id)
    if previous:
        return _already_answered(db, session, previous)

    db.add(models.Response(
        session_id=session_id,
        question_id=question_id,
        choice_id=choice_id,
        is_correct=choice.is_correct,
        answered_at=utcnow(),
    ))
    if choice.is_correct:
        session.correct_answers = models.QuizSession.correct_answers + 1
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # Same question answered twice concurrently; the first one counts
        previous = _previous_response(db, session_id, question_id)
        if previous is None:
            raise
        return _already_answered(db, session, previous)
    db.refresh(session)

    return {"correct": choice.is_correct, "running_score": _running_score(db, session)}


def score_percentage(correct: int, total: int) -> int:
    if not total:
        return 0
    # Half rounds up, unlike round()
    return math.floor(correct / total * 100 + 0.5)


def finish_session(db: Session, session_id: int, email: Optional[str] = None) -> dict:
    session = db.get(models.QuizSession, session_id)
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found")

    session.finished_at = utcnow()
    session.email = email or None
    db.commit()
    db.refresh(session)

    responses = []
    for r in session.responses:
        question = r.question
        responses.append({
            "question": question.prompt,
            "selected_answer": r.choice.text,
            "is_correct": r.is_correct,
            "explanation": question.explanation,
            "source": question.source_span,
            "article_title": question.article.title,
            "article_url": question.article.url,
        })

    results = {
        "session_id": session.id,
        "correct_answers": session.correct_answers,
        "total_questions": session.total_questions,
        "percentage": score_percentage(session.correct_answers, session.total_questions),
        "started_at": session.started_at,
        "finished_at": session.finished_at,
        "email": session.email,
        "responses": responses,
    }

    if session.email:
        try:
            send_quiz_results(results)
            logger.info("Quiz results email sent to %s", session.email)
        except NotificationError as e:
            # Email failures never fail the finish
            logger.error("Failed to send quiz results email: %s", e)
        except Exception:
            logger.exception("Unexpected error while emailing quiz results for session %s", session.id)

    return results
