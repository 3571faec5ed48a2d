# lifecycle.py
"""
Question lifecycle: active -> archived -> deleted, with restore back to active.

Every transition is a conditional UPDATE keyed on the current status, so two
callers racing on the same question get exactly one success. Asking for a
transition from the wrong state is an expected outcome (False), not an error.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Article, Question, QuestionStatus, Response
from utils import utcnow

logger = logging.getLogger(__name__)

ARCHIVE_RETENTION_DAYS = 30
PROTECTION_WINDOW_DAYS = 90

DEFAULT_ARCHIVE_REASON = "Archived by admin"
DEFAULT_BULK_ARCHIVE_REASON = "Bulk archived by admin"
DEFAULT_ACTOR = "admin"

OUTCOME_SUCCESS = "success"
OUTCOME_INELIGIBLE = "not_found_or_ineligible"
OUTCOME_ERROR = "error"

# action -> (required current status, resulting status)
TRANSITIONS = {
    "archive": (QuestionStatus.ACTIVE, QuestionStatus.ARCHIVED),
    "restore": (QuestionStatus.ARCHIVED, QuestionStatus.ACTIVE),
    "sweep": (QuestionStatus.ARCHIVED, QuestionStatus.DELETED),
}

BULK_ACTIONS = ("archive", "restore")


class StorageError(Exception):
    pass


@dataclass
class BulkItemResult:
    id: int
    outcome: str
    message: Optional[str] = None


@dataclass
class BulkResult:
    results: List[BulkItemResult] = field(default_factory=list)
    success_count: int = 0
    error_count: int = 0


@dataclass
class SweepCandidate:
    id: int
    prompt: str
    article_id: int
    article_title: Optional[str]
    archived_at: Optional[datetime]
    scheduled_deletion_at: Optional[datetime]
    recent_responses: int
    protected: bool


@dataclass
class SweepPreview:
    eligible: List[SweepCandidate]
    protected: List[SweepCandidate]
    total_archived: int


def _transition(db: Session, question_id: int, action: str, values: dict, *criteria) -> bool:
    from_status, to_status = TRANSITIONS[action]
    stmt = (
        update(Question)
        .where(Question.id == question_id, Question.status == from_status, *criteria)
        .values(status=to_status, **values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"{action} failed for question {question_id}: {e}") from e
    return result.rowcount == 1


def archive_question(
    db: Session,
    question_id: int,
    reason: Optional[str] = None,
    archived_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    now = now or utcnow()
    ok = _transition(db, question_id, "archive", {
        "archived_at": now,
        "archived_by": archived_by or DEFAULT_ACTOR,
        "archived_reason": reason or DEFAULT_ARCHIVE_REASON,
        "scheduled_deletion_at": now + timedelta(days=ARCHIVE_RETENTION_DAYS),
    })
    if ok:
        logger.info("Archived question %s (by=%s)", question_id, archived_by or DEFAULT_ACTOR)
    return ok


def restore_question(db: Session, question_id: int) -> bool:
    ok = _transition(db, question_id, "restore", {
        "archived_at": None,
        "archived_by": None,
        "archived_reason": None,
        "scheduled_deletion_at": None,
    })
    if ok:
        logger.info("Restored question %s", question_id)
    return ok


def bulk_apply(
    db: Session,
    action: str,
    question_ids: Iterable[int],
    reason: Optional[str] = None,
    archived_by: Optional[str] = None,
) -> BulkResult:
    if action not in BULK_ACTIONS:
        raise ValueError(f"Unknown action: {action}")

    out = BulkResult()
    for question_id in question_ids:
        try:
            if action == "archive":
                ok = archive_question(db, question_id, reason or DEFAULT_BULK_ARCHIVE_REASON, archived_by)
            else:
                ok = restore_question(db, question_id)
        except StorageError as e:
            logger.error("Bulk %s failed for question %s: %s", action, question_id, e)
            out.results.append(BulkItemResult(id=question_id, outcome=OUTCOME_ERROR, message=str(e)))
            out.error_count += 1
            continue

        if ok:
            out.results.append(BulkItemResult(id=question_id, outcome=OUTCOME_SUCCESS))
            out.success_count += 1
        else:
            out.results.append(BulkItemResult(id=question_id, outcome=OUTCOME_INELIGIBLE))
            out.error_count += 1
    return out


def _recent_response_filter(question_id: int, now: datetime) -> tuple:
    threshold = now - timedelta(days=PROTECTION_WINDOW_DAYS)
    return (Response.question_id == question_id, Response.answered_at >= threshold)


def recent_response_count(db: Session, question_id: int, now: Optional[datetime] = None) -> int:
    stmt = select(func.count(Response.id)).where(*_recent_response_filter(question_id, now or utcnow()))
    try:
        return db.execute(stmt).scalar_one()
    except SQLAlchemyError as e:
        raise StorageError(f"Could not count responses for question {question_id}: {e}") from e


def is_protected(db: Session, question_id: int, now: Optional[datetime] = None) -> bool:
    return recent_response_count(db, question_id, now) > 0


def _expired_archived(db: Session, now: datetime):
    stmt = (
        select(Question, Article.title)
        .join(Article, Question.article_id == Article.id)
        .where(Question.status == QuestionStatus.ARCHIVED, Question.scheduled_deletion_at < now)
        .order_by(Question.scheduled_deletion_at)
    )
    try:
        return db.execute(stmt).all()
    except SQLAlchemyError as e:
        raise StorageError(f"Could not load expired archived questions: {e}") from e


def preview_sweep(db: Session, now: Optional[datetime] = None) -> SweepPreview:
    now = now or utcnow()
    eligible, protected = [], []
    rows = _expired_archived(db, now)
    for question, article_title in rows:
        count = recent_response_count(db, question.id, now)
        candidate = SweepCandidate(
            id=question.id,
            prompt=question.prompt,
            article_id=question.article_id,
            article_title=article_title,
            archived_at=question.archived_at,
            scheduled_deletion_at=question.scheduled_deletion_at,
            recent_responses=count,
            protected=count > 0,
        )
        (protected if candidate.protected else eligible).append(candidate)
    return SweepPreview(eligible=eligible, protected=protected, total_archived=len(rows))


def sweep_expired(db: Session, now: Optional[datetime] = None) -> int:
    """
    Marks archived questions past their deletion date as deleted, skipping
    any that were answered within the protection window. Safe to re-run:
    only rows still in 'archived' are ever touched.
    """
    now = now or utcnow()
    deleted = 0
    for question, _title in _expired_archived(db, now):
        if is_protected(db, question.id, now):
            logger.info("Question %s is protected by recent responses, skipping", question.id)
            continue
        # Protection is part of the UPDATE criteria as well
        unanswered = ~select(Response.id).where(*_recent_response_filter(question.id, now)).exists()
        if _transition(db, question.id, "sweep", {}, Question.scheduled_deletion_at < now, unanswered):
            deleted += 1
    logger.info("Sweep deleted %d archived question(s)", deleted)
    return deleted
