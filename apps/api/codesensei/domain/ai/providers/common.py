import json
from typing import Any


def strip_code_fence(text: str) -> str:
    raw = text.strip()
    if raw.startswith("```"):
        lines = raw.splitlines()
        if len(lines) >= 2 and lines[-1].strip().startswith("```"):
            return "\n".join(lines[1:-1]).strip()
    return raw


def extract_json_text(text: str) -> str:
    raw = strip_code_fence(str(text or ""))
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ValueError("ai_response_json_missing")
    return raw[start : end + 1]


def parse_json_text(text: str) -> dict[str, Any]:
    parsed = json.loads(extract_json_text(text))
    if not isinstance(parsed, dict):
        raise ValueError("ai_response_not_object")
    return parsed


def require_text(text: Any, provider: str) -> str:
    if isinstance(text, str) and text.strip():
        return text
    raise RuntimeError(f"{provider}_text_missing")
