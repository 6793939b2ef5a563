"""AI domain services and provider abstractions."""

from codesensei.domain.ai.factory import build_ai_service, build_optional_ai_service
from codesensei.domain.ai.service import AIService

__all__ = ["AIService", "build_ai_service", "build_optional_ai_service"]
