# generation.py
import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models
from llm import generate_mcqs, verify_mcq
from utils import normalize_mcq_payload

logger = logging.getLogger(__name__)


class ArticleNotFound(Exception):
    pass


@dataclass
class GenerationOutcome:
    article_id: int
    article_title: str
    already_exists: bool = False
    question_count: int = 0
    results: List[dict] = field(default_factory=list)


def _save_mcq(db: Session, article_id: int, mcq: dict) -> models.Question:
    question = models.Question(
        article_id=article_id,
        prompt=mcq["prompt"],
        explanation=mcq["explanation"],
        difficulty="medium",
        reviewed=True,
        source_span=mcq["source_quote"],
        status=models.QuestionStatus.ACTIVE,
    )
    question.choices = [
        models.Choice(text=text, is_correct=(i == mcq["answer_index"]), order_index=i)
        for i, text in enumerate(mcq["choices"])
    ]
    db.add(question)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(question)
    return question


def generate_questions_for_article(db: Session, article_id: int) -> GenerationOutcome:
    """
    Generates MCQs for an article and stores them as active questions.
    Articles that already have questions are left alone.
    Raises ArticleNotFound, or LLMError when generation itself fails.
    """
    article = db.get(models.Article, article_id)
    if article is None:
        raise ArticleNotFound(f"Article {article_id} not found")

    existing = db.query(models.Question).filter(models.Question.article_id == article_id).count()
    if existing:
        return GenerationOutcome(article.id, article.title, already_exists=True, question_count=existing)

    logger.info("Generating MCQs for article: %s", article.title)
    payload = normalize_mcq_payload(generate_mcqs(article.url, article.clean_text, article.title))

    outcome = GenerationOutcome(article.id, article.title)
    for mcq in payload["questions"]:
        verdict = verify_mcq(mcq)
        try:
            question = _save_mcq(db, article.id, mcq)
        except SQLAlchemyError as e:
            logger.error("Failed to save MCQ for article %s: %s", article.id, e)
            outcome.results.append({"prompt": mcq["prompt"], "status": "failed", "error": str(e)})
            continue
        outcome.results.append({
            "question_id": question.id,
            "prompt": question.prompt,
            "status": verdict,
            "choice_count": len(mcq["choices"]),
        })
        outcome.question_count += 1
    return outcome
