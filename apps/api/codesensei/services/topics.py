import logging
import random

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from codesensei.core.cache import CacheService
from codesensei.models.orm import Interest
from codesensei.services.normalizer_validator import normalize_topic


logger = logging.getLogger(__name__)

BUILTIN_TOPICS = (
    "Marvel",
    "Demon Slayer",
    "Harry Potter",
    "Space Exploration",
    "Football",
    "Cooking",
    "Pokemon",
    "Stock Market",
    "Music Festivals",
    "Wildlife Safari",
)


class TopicSource:
    """Resolves the topic for a question request.

    Built per request with its own session and cache; the registry lives in the
    interests table and is mirrored in the cache under a single key.
    """

    def __init__(
        self,
        db: Session,
        cache: CacheService,
        *,
        topics_ttl: int = 1800,
        builtin: tuple[str, ...] = BUILTIN_TOPICS,
        rng: random.Random | None = None,
    ) -> None:
        self.db = db
        self.cache = cache
        self.topics_ttl = topics_ttl
        self.builtin = builtin
        self.rng = rng or random.Random()

    def resolve_topic(self, user_supplied: str | None = None) -> str:
        topic = normalize_topic(user_supplied)
        if not topic:
            candidates = self.list_topics() or list(self.builtin)
            topic = self.rng.choice(candidates)
        self.record_topic(topic)
        return topic

    def list_topics(self) -> list[str]:
        cached = self.cache.get_topics()
        if cached:
            return cached
        try:
            topics = list(self.db.scalars(select(Interest.topic).order_by(Interest.id)))
        except SQLAlchemyError as exc:
            logger.error("Failed to load topics: %s", exc)
            return []
        if topics:
            self.cache.set_topics(topics, self.topics_ttl)
        return topics

    def record_topic(self, topic: str, *, strict: bool = False) -> bool:
        """Insert the topic with freq 1 or bump its frequency. Returns True on insert.

        Database errors are logged and swallowed unless strict is set.
        """
        topic = normalize_topic(topic)
        if not topic:
            return False
        try:
            created = self._upsert_frequency(topic)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to record topic %r: %s", topic, exc)
            if strict:
                raise
            return False
        if created:
            self.cache.invalidate_topics()
        return created

    def _upsert_frequency(self, topic: str) -> bool:
        result = self.db.execute(
            update(Interest).where(Interest.topic == topic).values(freq=Interest.freq + 1)
        )
        if result.rowcount:
            self.db.commit()
            return False
        try:
            self.db.add(Interest(topic=topic, freq=1))
            self.db.commit()
            return True
        except IntegrityError:
            # 동시에 같은 토픽이 삽입된 경우
            self.db.rollback()
            self.db.execute(
                update(Interest).where(Interest.topic == topic).values(freq=Interest.freq + 1)
            )
            self.db.commit()
            return False

    def frequency(self, topic: str) -> int:
        freq = self.db.scalar(select(Interest.freq).where(Interest.topic == normalize_topic(topic)))
        return int(freq or 0)
