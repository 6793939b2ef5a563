import logging
import random
import time
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Delete, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from codesensei.core.cache import CacheService
from codesensei.core.config import Settings
from codesensei.core.monitoring import timed
from codesensei.models.orm import Question, utcnow
from codesensei.services.fallback import pick_fallback
from codesensei.services.normalizer_validator import normalize_difficulty, normalize_question_record
from codesensei.services.question_generator import QuestionGenerator
from codesensei.services.topics import TopicSource


logger = logging.getLogger(__name__)


def _delete_expired(now: datetime) -> Delete:
    # 세션의 시간대 없는 값과 비교하지 않도록 동기화를 끈다.
    return delete(Question).where(Question.expires_at <= now).execution_options(synchronize_session=False)


def generate_qid(rng: random.Random | None = None) -> str:
    suffix = (rng or random).randint(0, 999_999)
    return f"{int(time.time() * 1000)}{suffix:06d}"


class QuestionService:
    def __init__(
        self,
        db: Session,
        cache: CacheService,
        settings: Settings,
        topic_source: TopicSource,
        generator: QuestionGenerator,
        rng: random.Random | None = None,
    ) -> None:
        self.db = db
        self.cache = cache
        self.settings = settings
        self.topic_source = topic_source
        self.generator = generator
        self.rng = rng or random.Random()

    def get_next_question(self, topic: str | None = None, difficulty: str | None = None) -> dict[str, Any]:
        qid = generate_qid(self.rng)

        cached = self.cache.get_question(qid)
        if cached:
            logger.info("Returning cached question %s", qid)
            return {"qid": qid, "questionData": cached, "meta": {"cached": True}}

        resolved_topic = self.topic_source.resolve_topic(topic)
        resolved_difficulty = normalize_difficulty(difficulty, self.rng)

        with timed("question_generate", topic=resolved_topic, difficulty=resolved_difficulty):
            question = self.generator.generate(resolved_topic, resolved_difficulty)

        fallback_used = question is None
        if question is None:
            logger.warning("Using fallback question for topic %r", resolved_topic)
            question = normalize_question_record(pick_fallback(resolved_topic, self.rng))

        question_data = {"qid": qid, **question}
        self.cache.set_question(qid, question_data, self.settings.question_cache_ttl_sec)
        persisted = self._persist(qid, question, resolved_topic, resolved_difficulty)

        return {
            "qid": qid,
            "questionData": question_data,
            "meta": {
                "fallback_used": fallback_used,
                "topic": resolved_topic,
                "difficulty": resolved_difficulty,
                "persisted": persisted,
            },
        }

    def save_question(self, qid: str, question_data: dict[str, Any]) -> None:
        """Store a client-supplied question, replacing any row with the same qid.

        Raises SQLAlchemyError when the write fails.
        """
        record = normalize_question_record(question_data)
        self._write(
            qid,
            record,
            topic=question_data.get("topic"),
            difficulty=question_data.get("difficulty"),
        )
        self.cache.set_question(qid, {"qid": qid, **record}, self.settings.question_cache_ttl_sec)

    def get_question(self, qid: str) -> dict[str, Any] | None:
        cached = self.cache.get_question(qid)
        if cached:
            return cached

        row = self.db.scalar(select(Question).where(Question.qid == qid, Question.expires_at > utcnow()))
        if row is None:
            return None

        payload = row.to_payload()
        self.cache.set_question(qid, payload, self.settings.question_cache_ttl_sec)
        return payload

    def purge_expired_questions(self) -> int:
        result = self.db.execute(_delete_expired(utcnow()))
        self.db.commit()
        if result.rowcount:
            logger.info("Purged %s expired question(s)", result.rowcount)
        return int(result.rowcount or 0)

    def _persist(self, qid: str, question: dict[str, Any], topic: str, difficulty: str) -> bool:
        try:
            self._write(qid, question, topic=topic, difficulty=difficulty)
            return True
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to persist question %s: %s", qid, exc)
            return False

    def _write(self, qid: str, question: dict[str, Any], *, topic: Any, difficulty: Any) -> None:
        now = utcnow()
        self.db.execute(_delete_expired(now))

        row = self.db.scalar(select(Question).where(Question.qid == qid))
        if row is None:
            row = Question(qid=qid)
            self.db.add(row)
        row.qname = question["qname"]
        row.description = question["description"]
        row.constraints = question["constraints"]
        row.example_test_cases = question["example_test_cases"]
        row.topic = str(topic) if topic else None
        row.difficulty = str(difficulty) if difficulty else None
        row.created_at = now
        row.expires_at = now + timedelta(seconds=self.settings.question_ttl_sec)
        self.db.commit()
