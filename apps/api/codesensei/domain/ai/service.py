from threading import BoundedSemaphore

from codesensei.domain.ai.providers.base import TextAIProvider


class AIService:
    def __init__(
        self,
        *,
        primary: TextAIProvider,
        max_concurrency: int = 4,
        acquire_timeout_ms: int = 200,
    ) -> None:
        self.primary = primary
        self._semaphore = BoundedSemaphore(value=max(1, int(max_concurrency)))
        self._acquire_timeout_sec = max(0.01, int(acquire_timeout_ms) / 1000)

    def generate_text(
        self,
        *,
        prompt: str,
        system_prompt: str = "",
        json_mode: bool = False,
    ) -> str:
        acquired = self._semaphore.acquire(timeout=self._acquire_timeout_sec)
        if not acquired:
            raise RuntimeError("ai_backpressure_busy")
        try:
            return self.primary.generate_text(
                prompt=prompt,
                system_prompt=system_prompt,
                json_mode=json_mode,
            )
        except Exception as primary_exc:
            raise RuntimeError(f"ai_primary_failed:{primary_exc}") from primary_exc
        finally:
            self._semaphore.release()
