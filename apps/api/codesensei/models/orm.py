from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite는 tzinfo를 보존하지 않는다.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    level: Mapped[str] = mapped_column(String(32), default="beginner")
    interests: Mapped[list] = mapped_column(JSON, default=list)
    preferred_languages: Mapped[list] = mapped_column(JSON, default=lambda: ["javascript", "python"])
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    # legacy running total; profile reads derive the count from solved_questions
    solved_questions: Mapped[int] = mapped_column(Integer, default=0)
    streak: Mapped[int] = mapped_column(Integer, default=0)
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    average_time: Mapped[float] = mapped_column(Float, default=0.0)
    weak_topics: Mapped[list] = mapped_column(JSON, default=list)
    strong_topics: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    qid: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    qname: Mapped[str] = mapped_column(String(300))
    description: Mapped[str] = mapped_column(Text)
    constraints: Mapped[list] = mapped_column(JSON, default=list)
    example_test_cases: Mapped[list] = mapped_column(JSON, default=list)
    topic: Mapped[str | None] = mapped_column(String(200), nullable=True)
    difficulty: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    def to_payload(self) -> dict[str, Any]:
        return {
            "qid": self.qid,
            "qname": self.qname,
            "description": self.description,
            "constraints": list(self.constraints or []),
            "example_test_cases": list(self.example_test_cases or []),
        }


class Interest(Base):
    __tablename__ = "interests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    freq: Mapped[int] = mapped_column(Integer, default=1)


class SavedQuestion(Base):
    __tablename__ = "saved_questions"
    __table_args__ = (UniqueConstraint("user_id", "question_id", name="uq_saved_user_question"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(120), index=True)
    question_id: Mapped[str] = mapped_column(String(64), index=True)
    question_data: Mapped[dict] = mapped_column(JSON, default=dict)
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)


class SolvedQuestion(Base):
    __tablename__ = "solved_questions"
    __table_args__ = (UniqueConstraint("user_id", "question_id", name="uq_solved_user_question"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(120), index=True)
    question_id: Mapped[str] = mapped_column(String(64), index=True)
    solved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)


class GeneratedAnswer(Base):
    __tablename__ = "generated_answers"
    __table_args__ = (
        UniqueConstraint("question_id", "language", "user_id", name="uq_answer_question_language_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[str] = mapped_column(String(64), index=True)
    language: Mapped[str] = mapped_column(String(32), index=True)
    user_id: Mapped[str] = mapped_column(String(120), index=True)
    answer: Mapped[dict] = mapped_column(JSON, default=dict)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    is_regenerated: Mapped[bool] = mapped_column(Boolean, default=False)
