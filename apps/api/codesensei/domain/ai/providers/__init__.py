"""AI providers."""

from codesensei.domain.ai.providers.gemini import GeminiProvider
from codesensei.domain.ai.providers.openai import OpenAIProvider

__all__ = ["GeminiProvider", "OpenAIProvider"]
