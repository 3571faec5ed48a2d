# ingestion.py
"""
Batch article ingestion. Each URL/record is handled on its own: a failure is
written into that item's result and the loop moves on.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import models
from extractor import (
    ExtractionError, FetchError, extract_article_content, parse_date, validate_article_content,
)
from utils import utcnow

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"

MSG_EXISTS = "Article already exists"
MSG_INGESTED = "Article ingested successfully"
MSG_INVALID = "Content validation failed - article too short or missing required fields"


@dataclass
class IngestResult:
    url: str
    status: str
    message: str
    article_id: Optional[int] = None
    title: Optional[str] = None


def _existing(db: Session, url: str) -> Optional[models.Article]:
    return db.query(models.Article).filter(models.Article.url == url).first()


def _insert_article(db: Session, **fields) -> models.Article:
    article = models.Article(status="processed", raw_html="", **fields)
    db.add(article)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(article)
    return article


def _store(db: Session, url: str, **fields) -> IngestResult:
    try:
        article = _insert_article(db, url=url, **fields)
    except IntegrityError as e:
        # Only a lost race on the unique url counts as a duplicate
        existing = _existing(db, url)
        if existing is None:
            logger.error("Insert failed for %s: %s", url, e)
            return IngestResult(url, STATUS_FAILED, str(e.orig or e))
        return IngestResult(url, STATUS_SKIPPED, MSG_EXISTS, existing.id)
    return IngestResult(url, STATUS_SUCCESS, MSG_INGESTED, article.id, article.title)


def _ingest_one_url(db: Session, url: str) -> IngestResult:
    existing = _existing(db, url)
    if existing:
        return IngestResult(url, STATUS_SKIPPED, MSG_EXISTS, existing.id)

    content = extract_article_content(url)
    if not validate_article_content(content):
        return IngestResult(url, STATUS_FAILED, MSG_INVALID)

    return _store(
        db,
        url,
        title=content.title,
        source=content.source,
        published_at=content.published_at,
        clean_text=content.clean_text,
    )


def ingest_urls(db: Session, urls: Iterable[str]) -> List[IngestResult]:
    results = []
    for url in urls:
        logger.info("Processing URL: %s", url)
        try:
            results.append(_ingest_one_url(db, url))
        except (FetchError, ExtractionError, SQLAlchemyError) as e:
            logger.error("Failed to process URL %s: %s", url, e)
            results.append(IngestResult(url, STATUS_FAILED, str(e)))
    return results


class InvalidRecord(ValueError):
    pass


def _joined(values) -> str:
    if isinstance(values, str):
        return values
    return ", ".join(str(v) for v in values or [])


def compose_clean_text(record: dict) -> str:
    return (
        f"{record.get('takeaway') or ''}\n\n{record.get('summary') or ''}\n\n"
        f"Organizations: {_joined(record.get('organizations'))}\n"
        f"Locations: {_joined(record.get('locations'))}\n"
        f"Relevant Terms: {_joined(record.get('matching_terms'))}"
    )


def _required_text(record: dict, key: str) -> str:
    value = record[key]
    if not isinstance(value, str) or not value.strip():
        raise InvalidRecord(f"Field {key} must be a non-empty string")
    return value.strip()


def _ingest_one_record(db: Session, record: dict) -> IngestResult:
    url = _required_text(record, "articleURL")
    title = _required_text(record, "title")
    existing = _existing(db, url)
    if existing:
        return IngestResult(url, STATUS_SKIPPED, MSG_EXISTS, existing.id)

    return _store(
        db,
        url,
        title=title,
        source=record.get("publisher") or "",
        published_at=parse_date(record.get("date") or "") or utcnow(),
        clean_text=compose_clean_text(record),
    )


def ingest_structured(db: Session, records: Iterable[dict]) -> List[IngestResult]:
    """Ingests pre-summarized article records (no scraping)."""
    results = []
    for record in records:
        title = record.get("title") if isinstance(record, dict) else None
        logger.info("Processing article: %s", title)
        try:
            if not isinstance(record, dict):
                raise InvalidRecord("Article record must be an object")
            results.append(_ingest_one_record(db, record))
        except KeyError as e:
            logger.error("Failed to process article %s: missing %s", title, e)
            results.append(IngestResult(_record_url(record), STATUS_FAILED, f"Missing field: {e}"))
        except Exception as e:
            # Any single bad record becomes a failed entry; the batch goes on
            db.rollback()
            logger.exception("Failed to process article %s", title)
            results.append(IngestResult(_record_url(record), STATUS_FAILED, str(e)))
    return results


def _record_url(record) -> str:
    url = record.get("articleURL") if isinstance(record, dict) else None
    return url if isinstance(url, str) else ""
