import json
import logging
from typing import Any

import redis


logger = logging.getLogger(__name__)

TOPICS_KEY = "topics"


def question_key(qid: str) -> str:
    return f"question:{qid}"


def rate_limit_key(client_id: str) -> str:
    return f"rate_limit:{client_id}"


class CacheService:
    """Best-effort Redis cache. Every failure is logged and swallowed."""

    def __init__(self, client: Any = None) -> None:
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "CacheService":
        if not redis_url:
            return cls(None)
        try:
            return cls(redis.Redis.from_url(redis_url, decode_responses=True))
        except Exception as exc:
            logger.warning("Redis unavailable, cache disabled: %s", exc)
            return cls(None)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _get_json(self, key: str) -> Any:
        if self.client is None:
            return None
        try:
            cached = self.client.get(key)
            return json.loads(cached) if cached else None
        except Exception as exc:
            logger.error("Redis get error for %s: %s", key, exc)
            return None

    def _set_json(self, key: str, value: Any, ttl: int) -> bool:
        if self.client is None:
            return False
        try:
            self.client.setex(key, ttl, json.dumps(value))
            return True
        except Exception as exc:
            logger.error("Redis set error for %s: %s", key, exc)
            return False

    def get_question(self, qid: str) -> dict[str, Any] | None:
        cached = self._get_json(question_key(qid))
        return cached if isinstance(cached, dict) else None

    def set_question(self, qid: str, question: dict[str, Any], ttl: int = 3600) -> bool:
        return self._set_json(question_key(qid), question, ttl)

    def get_topics(self) -> list[str]:
        cached = self._get_json(TOPICS_KEY)
        if not isinstance(cached, list):
            return []
        return [str(item) for item in cached if str(item).strip()]

    def set_topics(self, topics: list[str], ttl: int = 1800) -> bool:
        return self._set_json(TOPICS_KEY, topics, ttl)

    def invalidate_topics(self) -> None:
        if self.client is None:
            return
        try:
            self.client.delete(TOPICS_KEY)
        except Exception as exc:
            logger.error("Redis delete error for %s: %s", TOPICS_KEY, exc)

    def check_rate_limit(self, client_id: str, limit: int = 100, window: int = 900) -> bool:
        # Redis가 없거나 오류가 나면 요청을 허용한다(fail-open).
        if self.client is None:
            return True
        try:
            key = rate_limit_key(client_id)
            current = int(self.client.incr(key))
            if current == 1:
                self.client.expire(key, window)
            return current <= limit
        except Exception as exc:
            logger.error("Redis rate limit error: %s", exc)
            return True
