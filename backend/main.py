# main.py
import logging
import math
from dataclasses import asdict
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func

from config import CORS_ORIGINS, LOG_LEVEL
from db import Base, engine, get_session
import models, schemas
from extractor import ExtractionError, FetchError, extract_article_content, validate_article_content
from generation import ArticleNotFound, generate_questions_for_article
from ingestion import ingest_structured, ingest_urls
from lifecycle import (
    PROTECTION_WINDOW_DAYS, StorageError, archive_question, bulk_apply, preview_sweep,
    restore_question, sweep_expired,
)
from llm import LLMError, ping_llm
from quiz import (
    InvalidChoice, NoQuestionsAvailable, SessionNotFound, create_session, finish_session,
    record_response, select_quiz_questions,
)
from utils import utcnow

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger("healthquiz")

# -----------------------------------------------------------------------------
# App & CORS
# -----------------------------------------------------------------------------
app = FastAPI(title="Healthcare Literacy Quiz")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create tables at startup
Base.metadata.create_all(bind=engine)

# -----------------------------------------------------------------------------
# Health & smoke tests
# -----------------------------------------------------------------------------
@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/llm-test")
def llm_test():
    return ping_llm()


@app.post("/api/test-extract", response_model=schemas.ExtractOut)
def test_extract(payload: schemas.UrlIn):
    try:
        content = extract_article_content(str(payload.url))
    except (FetchError, ExtractionError) as e:
        return {"ok": False, "error": str(e)}
    return {
        "ok": True,
        "title": content.title,
        "source": content.source,
        "published_at": content.published_at,
        "text_len": len(content.clean_text),
        "preview": content.clean_text[:500],
        "valid": validate_article_content(content),
    }

# -----------------------------------------------------------------------------
# Articles
# -----------------------------------------------------------------------------
@app.post("/api/ingest", response_model=schemas.IngestOut)
def ingest(payload: schemas.IngestIn):
    with get_session() as db:
        if payload.urls is not None:
            if not payload.urls:
                raise HTTPException(status_code=400, detail="URLs array is required")
            results = ingest_urls(db, payload.urls)
            noun = "URLs"
        elif payload.articles is not None:
            if not payload.articles:
                raise HTTPException(status_code=400, detail="Articles array is required")
            results = ingest_structured(db, payload.articles)
            noun = "articles"
        else:
            raise HTTPException(status_code=400, detail="Either urls array or articles array is required")

    return {"message": f"Processed {len(results)} {noun}", "results": [asdict(r) for r in results]}


@app.get("/api/articles", response_model=schemas.ArticlesOut)
def list_articles():
    with get_session() as db:
        rows = (
            db.query(models.Article)
            .order_by(models.Article.created_at.desc(), models.Article.id.desc())
            .limit(50)
            .all()
        )
        items = [
            {
                "id": a.id,
                "url": a.url,
                "title": a.title,
                "source": a.source,
                "published_at": a.published_at,
                "status": a.status,
                "created_at": a.created_at,
                "text_len": len(a.clean_text or ""),
            }
            for a in rows
        ]
    return {"articles": items, "count": len(items)}


@app.post("/api/generate", response_model=schemas.GenerateOut)
def generate(payload: schemas.GenerateIn):
    with get_session() as db:
        try:
            outcome = generate_questions_for_article(db, payload.article_id)
        except ArticleNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except LLMError as e:
            logger.error("Generation failed for article %s: %s", payload.article_id, e)
            raise HTTPException(status_code=502, detail="Failed to generate MCQs")

    if outcome.already_exists:
        message = "Questions already exist for this article"
    else:
        message = f"Generated {outcome.question_count} questions for article: {outcome.article_title}"
    return {
        "message": message,
        "article_title": outcome.article_title,
        "question_count": outcome.question_count,
        "results": outcome.results,
    }

# -----------------------------------------------------------------------------
# Quiz flow
# -----------------------------------------------------------------------------
@app.get("/api/quiz", response_model=schemas.QuizOut)
def get_quiz():
    with get_session() as db:
        try:
            questions = select_quiz_questions(db)
        except NoQuestionsAvailable as e:
            raise HTTPException(status_code=404, detail=str(e))
    return {"questions": questions, "total_questions": len(questions)}


@app.post("/api/session", response_model=schemas.SessionOut)
def start_session():
    with get_session() as db:
        session = create_session(db)
        return {"session_id": session.id, "started_at": session.started_at}


@app.post("/api/respond", response_model=schemas.RespondOut)
def respond(payload: schemas.RespondIn):
    with get_session() as db:
        try:
            return record_response(db, payload.session_id, payload.question_id, payload.choice_id)
        except InvalidChoice as e:
            raise HTTPException(status_code=400, detail=str(e))
        except SessionNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/finish", response_model=schemas.FinishOut)
def finish(payload: schemas.FinishIn):
    with get_session() as db:
        try:
            return finish_session(db, payload.session_id, payload.email)
        except SessionNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))

# -----------------------------------------------------------------------------
# Admin: questions
# -----------------------------------------------------------------------------
@app.get("/api/admin/questions", response_model=schemas.AdminQuestionsOut)
def admin_list_questions(
    status: str = "all",
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
):
    if status != "all" and status not in {s.value for s in models.QuestionStatus}:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")

    with get_session() as db:
        query = (
            db.query(models.Question, models.Article.title, models.Article.source)
            .join(models.Article, models.Question.article_id == models.Article.id)
        )
        if status != "all":
            query = query.filter(models.Question.status == models.QuestionStatus(status))

        total = query.count()
        rows = (
            query.order_by(models.Question.created_at.desc(), models.Question.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        ids = [q.id for q, _, _ in rows]
        threshold = utcnow() - timedelta(days=PROTECTION_WINDOW_DAYS)
        counts = (
            db.query(models.Response.question_id, func.count(models.Response.id))
            .filter(models.Response.question_id.in_(ids))
            .group_by(models.Response.question_id)
        )
        total_counts = dict(counts.all())
        recent_counts = dict(counts.filter(models.Response.answered_at >= threshold).all())

        questions = [
            {
                "id": q.id,
                "article_id": q.article_id,
                "prompt": q.prompt,
                "explanation": q.explanation,
                "difficulty": q.difficulty,
                "source_span": q.source_span,
                "status": q.status.value,
                "archived_at": q.archived_at,
                "archived_by": q.archived_by,
                "archived_reason": q.archived_reason,
                "scheduled_deletion_at": q.scheduled_deletion_at,
                "created_at": q.created_at,
                "article_title": title or "Unknown",
                "article_source": source or "Unknown",
                "recent_response_count": recent_counts.get(q.id, 0),
                "total_response_count": total_counts.get(q.id, 0),
            }
            for q, title, source in rows
        ]

    return {
        "questions": questions,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@app.post("/api/admin/questions/{question_id}/archive", response_model=schemas.ArchiveOut)
def admin_archive_question(question_id: int, payload: Optional[schemas.ArchiveIn] = None):
    payload = payload or schemas.ArchiveIn()
    with get_session() as db:
        try:
            ok = archive_question(db, question_id, payload.reason, payload.archived_by)
        except StorageError:
            logger.exception("Archive question error")
            raise HTTPException(status_code=500, detail="Failed to archive question")
        if not ok:
            raise HTTPException(status_code=404, detail="Question not found or already archived")

        question = db.get(models.Question, question_id)
        return {
            "message": "Question archived successfully",
            "archived_at": question.archived_at,
            "scheduled_deletion_at": question.scheduled_deletion_at,
        }


@app.post("/api/admin/questions/{question_id}/restore", response_model=schemas.RestoreOut)
def admin_restore_question(question_id: int):
    with get_session() as db:
        try:
            ok = restore_question(db, question_id)
        except StorageError:
            logger.exception("Restore question error")
            raise HTTPException(status_code=500, detail="Failed to restore question")
    if not ok:
        raise HTTPException(status_code=404, detail="Question not found or not archived")
    return {"message": "Question restored successfully", "restored_at": utcnow()}


@app.post("/api/admin/questions/bulk", response_model=schemas.BulkOut)
def admin_bulk_questions(payload: schemas.BulkIn):
    with get_session() as db:
        try:
            result = bulk_apply(db, payload.action, payload.question_ids, payload.reason, payload.archived_by)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    return {
        "message": f"Bulk {payload.action} completed",
        "summary": {
            "total": len(payload.question_ids),
            "success": result.success_count,
            "errors": result.error_count,
        },
        "results": [asdict(r) for r in result.results],
    }

# -----------------------------------------------------------------------------
# Admin: cleanup of expired archived questions
# -----------------------------------------------------------------------------
@app.get("/api/admin/cleanup", response_model=schemas.CleanupPreviewOut)
def admin_cleanup_preview():
    with get_session() as db:
        try:
            preview = preview_sweep(db)
        except StorageError:
            logger.exception("Cleanup preview error")
            raise HTTPException(status_code=500, detail="Failed to preview cleanup")
    return {
        "preview": True,
        "questions_ready_for_deletion": [asdict(c) for c in preview.eligible],
        "protected_questions": [asdict(c) for c in preview.protected],
        "total_archived": preview.total_archived,
    }


@app.post("/api/admin/cleanup", response_model=schemas.CleanupOut)
def admin_cleanup():
    with get_session() as db:
        try:
            deleted = sweep_expired(db)
        except StorageError:
            logger.exception("Cleanup operation error")
            raise HTTPException(status_code=500, detail="Failed to perform cleanup")
    return {
        "message": "Cleanup completed successfully",
        "deleted_count": deleted,
        "cleanup_date": utcnow(),
    }
