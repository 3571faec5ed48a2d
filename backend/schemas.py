# schemas.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, HttpUrl

QuestionStatusName = Literal["active", "archived", "deleted"]


class UrlIn(BaseModel):
    url: HttpUrl


class ExtractOut(BaseModel):
    ok: bool
    title: Optional[str] = None
    source: Optional[str] = None
    published_at: Optional[datetime] = None
    text_len: int = 0
    preview: Optional[str] = None
    valid: bool = False
    error: Optional[str] = None


class IngestIn(BaseModel):
    urls: Optional[List[str]] = None
    # Structured records are validated per item during ingestion so one bad
    # record can't reject the whole batch
    articles: Optional[List[dict]] = None


class IngestResultOut(BaseModel):
    url: str
    status: Literal["success", "skipped", "failed"]
    message: str
    article_id: Optional[int] = None
    title: Optional[str] = None


class IngestOut(BaseModel):
    message: str
    results: List[IngestResultOut]


class ArticleOut(BaseModel):
    id: int
    url: str
    title: str
    source: str
    published_at: Optional[datetime]
    status: Optional[str]
    created_at: Optional[datetime]
    text_len: int


class ArticlesOut(BaseModel):
    articles: List[ArticleOut]
    count: int


class GenerateIn(BaseModel):
    article_id: int


class GenerateOut(BaseModel):
    message: str
    article_title: str
    question_count: int
    results: list


class ChoiceOut(BaseModel):
    id: int
    text: str
    is_correct: bool


class QuizQuestionOut(BaseModel):
    id: int
    prompt: str
    explanation: Optional[str]
    source_quote: Optional[str]
    article_title: str
    article_source: str
    article_url: str
    choices: List[ChoiceOut]


class QuizOut(BaseModel):
    questions: List[QuizQuestionOut]
    total_questions: int


class SessionOut(BaseModel):
    session_id: int
    started_at: datetime


class RespondIn(BaseModel):
    session_id: int
    question_id: int
    choice_id: int


class RunningScore(BaseModel):
    correct: int
    answered: int
    total: int


class RespondOut(BaseModel):
    correct: bool
    already_answered: bool = False
    running_score: RunningScore


class FinishIn(BaseModel):
    session_id: int
    email: Optional[str] = None


class ReviewItem(BaseModel):
    question: str
    selected_answer: str
    is_correct: bool
    explanation: Optional[str]
    source: Optional[str]
    article_title: str
    article_url: Optional[str] = None


class FinishOut(BaseModel):
    session_id: int
    correct_answers: int
    total_questions: int
    percentage: int
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    email: Optional[str]
    responses: List[ReviewItem]


class AdminQuestionOut(BaseModel):
    id: int
    article_id: int
    prompt: str
    explanation: Optional[str]
    difficulty: Optional[str]
    source_span: Optional[str]
    status: QuestionStatusName
    archived_at: Optional[datetime]
    archived_by: Optional[str]
    archived_reason: Optional[str]
    scheduled_deletion_at: Optional[datetime]
    created_at: Optional[datetime]
    article_title: str
    article_source: str
    recent_response_count: int
    total_response_count: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AdminQuestionsOut(BaseModel):
    questions: List[AdminQuestionOut]
    pagination: Pagination


class ArchiveIn(BaseModel):
    reason: Optional[str] = None
    archived_by: Optional[str] = None


class ArchiveOut(BaseModel):
    message: str
    archived_at: Optional[datetime] = None
    scheduled_deletion_at: Optional[datetime] = None


class RestoreOut(BaseModel):
    message: str
    restored_at: datetime


class BulkIn(BaseModel):
    action: str
    question_ids: List[int]
    reason: Optional[str] = None
    archived_by: Optional[str] = None


class BulkItemOut(BaseModel):
    id: int
    outcome: Literal["success", "not_found_or_ineligible", "error"]
    message: Optional[str] = None


class BulkSummary(BaseModel):
    total: int
    success: int
    errors: int


class BulkOut(BaseModel):
    message: str
    summary: BulkSummary
    results: List[BulkItemOut]


class SweepCandidateOut(BaseModel):
    id: int
    prompt: str
    article_id: int
    article_title: Optional[str]
    archived_at: Optional[datetime]
    scheduled_deletion_at: Optional[datetime]
    recent_responses: int
    protected: bool


class CleanupPreviewOut(BaseModel):
    preview: bool = True
    questions_ready_for_deletion: List[SweepCandidateOut]
    protected_questions: List[SweepCandidateOut]
    total_archived: int


class CleanupOut(BaseModel):
    message: str
    deleted_count: int
    cleanup_date: datetime
