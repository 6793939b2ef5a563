import logging
from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from codesensei.core.cache import CacheService
from codesensei.core.config import Settings, get_settings
from codesensei.core.database import get_db
from codesensei.domain.ai import AIService, build_optional_ai_service
from codesensei.services.answer_service import AnswerService
from codesensei.services.error_policy import build_structured_error_detail
from codesensei.services.execution import PistonClient
from codesensei.services.pipeline_runtime import RetryPolicy, ai_error_detail
from codesensei.services.question_generator import QuestionGenerator
from codesensei.services.question_service import QuestionService
from codesensei.services.storage import LocalObjectStorage
from codesensei.services.topics import TopicSource


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_cache() -> CacheService:
    return CacheService.from_url(get_settings().redis_url)


@lru_cache(maxsize=1)
def _get_ai_service() -> AIService | None:
    return build_optional_ai_service(get_settings())


def get_ai_service() -> AIService | None:
    try:
        return _get_ai_service()
    except Exception as exc:
        reason = ai_error_detail(exc)
        raise HTTPException(
            status_code=503,
            detail=build_structured_error_detail(
                error_code="config_error",
                message=reason,
                retryable=False,
                detail=f"ai_service_init_failed:config_error:{reason}",
            ),
        ) from exc


def get_retry_policy(settings: Settings = Depends(get_settings)) -> RetryPolicy:
    return RetryPolicy.from_settings(settings)


def get_storage(settings: Settings = Depends(get_settings)) -> LocalObjectStorage:
    return LocalObjectStorage(settings.media_root, settings.media_base_url)


def get_execution_client(settings: Settings = Depends(get_settings)) -> PistonClient:
    return PistonClient(base_url=settings.piston_base_url, timeout_sec=settings.execution_timeout_sec)


def get_topic_source(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> TopicSource:
    return TopicSource(db, cache, topics_ttl=settings.topics_cache_ttl_sec)


def get_question_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
    topic_source: TopicSource = Depends(get_topic_source),
    ai_service: AIService | None = Depends(get_ai_service),
    policy: RetryPolicy = Depends(get_retry_policy),
) -> QuestionService:
    return QuestionService(db, cache, settings, topic_source, QuestionGenerator(ai_service, policy))


def get_answer_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    question_service: QuestionService = Depends(get_question_service),
    ai_service: AIService | None = Depends(get_ai_service),
    policy: RetryPolicy = Depends(get_retry_policy),
) -> AnswerService:
    return AnswerService(db, settings, question_service, ai_service, policy)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_rate_limit(
    request: Request,
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> None:
    ip = client_ip(request)
    if not cache.check_rate_limit(ip, settings.rate_limit_requests, settings.rate_limit_window_sec):
        logger.warning("Rate limit exceeded for %s on %s", ip, request.url.path)
        raise HTTPException(
            status_code=429,
            detail=build_structured_error_detail(error_code="rate_limited"),
        )
