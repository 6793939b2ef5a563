import json
import logging
from typing import Any
from urllib import request

from pydantic import BaseModel


logger = logging.getLogger(__name__)

LANGUAGE_VERSIONS = {
    "javascript": "18.15.0",
    "typescript": "5.0.3",
    "python": "3.10.0",
    "java": "15.0.2",
    "csharp": "6.12.0",
    "php": "8.2.3",
}


class ExecuteRequest(BaseModel):
    language: str
    sourceCode: str
    stdin: str | None = None


class UnsupportedLanguageError(ValueError):
    pass


class PistonClient:
    """Runs source code on a Piston-compatible execution API."""

    def __init__(self, *, base_url: str, timeout_sec: int = 15) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec

    def build_payload(self, language: str, source_code: str, stdin: str | None = None) -> dict[str, Any]:
        key = language.strip().lower()
        version = LANGUAGE_VERSIONS.get(key)
        if version is None:
            raise UnsupportedLanguageError(f"unsupported_language:{language}")

        payload: dict[str, Any] = {
            "language": key,
            "version": version,
            "files": [{"content": source_code}],
        }
        if stdin:
            payload["stdin"] = stdin
        return payload

    def execute(self, language: str, source_code: str, stdin: str | None = None) -> dict[str, Any]:
        payload = self.build_payload(language, source_code, stdin)
        req = request.Request(
            f"{self.base_url}/execute",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with request.urlopen(req, timeout=self.timeout_sec) as response:
                body = response.read().decode("utf-8")
        except Exception as exc:  # pragma: no cover - network boundary
            raise RuntimeError(f"execution_request_failed:{exc}") from exc

        try:
            result = json.loads(body)
        except ValueError as exc:
            raise RuntimeError(f"execution_response_invalid:{exc}") from exc
        if not isinstance(result, dict):
            raise RuntimeError("execution_response_not_object")
        logger.info("Executed %s %s", payload["language"], payload["version"])
        return result
