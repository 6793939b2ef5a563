from typing import Protocol


class TextAIProvider(Protocol):
    """LLM provider contract that returns the raw completion text."""

    def generate_text(
        self,
        *,
        prompt: str,
        system_prompt: str = "",
        json_mode: bool = False,
    ) -> str:
        ...
