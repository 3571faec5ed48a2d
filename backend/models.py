# models.py
import enum

from sqlalchemy import (
    Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from db import Base
from utils import utcnow


class QuestionStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class Article(Base):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(1024), unique=True, index=True, nullable=False)
    title = Column(String(512), nullable=False)
    source = Column(String(255), nullable=False)
    published_at = Column(DateTime)
    raw_html = Column(Text, default="")
    clean_text = Column(Text, nullable=False)
    status = Column(String(16), default="processed")  # pending|processed|approved|rejected
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    questions = relationship("Question", back_populates="article", cascade="all, delete-orphan")


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), index=True, nullable=False)
    prompt = Column(Text, nullable=False)
    explanation = Column(Text)
    difficulty = Column(String(16), default="medium")  # easy|medium|hard
    reviewed = Column(Boolean, default=True, nullable=False)
    source_span = Column(Text)
    status = Column(
        Enum(QuestionStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=16),
        default=QuestionStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    archived_at = Column(DateTime)
    archived_by = Column(String(255))
    archived_reason = Column(Text)
    scheduled_deletion_at = Column(DateTime, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    article = relationship("Article", back_populates="questions")
    choices = relationship(
        "Choice", back_populates="question", cascade="all, delete-orphan", order_by="Choice.order_index"
    )
    responses = relationship("Response", back_populates="question")


class Choice(Base):
    __tablename__ = "choices"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False, nullable=False)
    order_index = Column(Integer, nullable=False)

    question = relationship("Question", back_populates="choices")


class QuizSession(Base):
    __tablename__ = "quiz_sessions"

    id = Column(Integer, primary_key=True, index=True)
    started_at = Column(DateTime, default=utcnow)
    finished_at = Column(DateTime)
    email = Column(String(320))
    total_questions = Column(Integer, nullable=False, default=10)
    correct_answers = Column(Integer, nullable=False, default=0)

    responses = relationship("Response", back_populates="session", order_by="Response.answered_at")


class Response(Base):
    __tablename__ = "responses"
    __table_args__ = (UniqueConstraint("session_id", "question_id", name="uq_response_session_question"),)

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("quiz_sessions.id", ondelete="CASCADE"), index=True, nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
    choice_id = Column(Integer, ForeignKey("choices.id", ondelete="CASCADE"), nullable=False)
    is_correct = Column(Boolean, nullable=False)
    answered_at = Column(DateTime, default=utcnow, index=True)

    session = relationship("QuizSession", back_populates="responses")
    question = relationship("Question", back_populates="responses")
    choice = relationship("Choice")
