from codesensei.core.config import Settings
from codesensei.domain.ai.providers.gemini import GeminiProvider
from codesensei.domain.ai.providers.openai import OpenAIProvider
from codesensei.domain.ai.service import AIService


def build_ai_service(settings: Settings) -> AIService:
    primary = _build_primary_provider(settings)
    return AIService(
        primary=primary,
        max_concurrency=settings.ai_max_concurrency,
        acquire_timeout_ms=settings.ai_backpressure_acquire_timeout_ms,
    )


def _build_primary_provider(settings: Settings) -> GeminiProvider | OpenAIProvider:
    if settings.ai_provider == "gemini":
        return GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout_sec=settings.ai_request_timeout_sec,
        )

    if settings.ai_provider == "openai":
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_sec=settings.ai_request_timeout_sec,
        )

    raise ValueError(f"unsupported_ai_provider:{settings.ai_provider}")


def build_optional_ai_service(settings: Settings) -> AIService | None:
    # 키가 없으면 None: 질문은 폴백 라이브러리, 답변은 정적 템플릿으로 대체된다.
    if not settings.ai_configured:
        return None
    return build_ai_service(settings)
