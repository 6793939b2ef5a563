import tempfile
import unittest
from typing import Any, Callable, Iterator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from codesensei.api.deps import get_ai_service, get_cache, get_execution_client, get_retry_policy
from codesensei.core.cache import CacheService
from codesensei.core.config import Settings, get_settings
from codesensei.core.database import get_db, init_db
from codesensei.main import app
from codesensei.services.pipeline_runtime import RetryPolicy


VALID_QUESTION_JSON = """{
  "qname": "Marvel Infinity Stones",
  "description": "Thanos collects stones with power values. Return the maximum total power of any contiguous run.",
  "constraints": ["1 <= n <= 10^5", "-10^4 <= power[i] <= 10^4"],
  "example_test_cases": [
    {"input": {"power": [1, -2, 3, 4]}, "output": 7},
    {"input": {"power": [-1]}, "output": -1}
  ]
}"""

ANSWER_TEXT = """**Approach:**
Use Kadane's algorithm and keep the best running sum.

**Solution:**
```python
def solve(power):
    best = cur = power[0]
    for value in power[1:]:
        cur = max(value, cur + value)
        best = max(best, cur)
    return best
```

**Time Complexity:** O(n)
**Space Complexity:** O(1)

**Explanation:**
Each element either extends the current run or starts a new one.

**Edge Cases:**
A single negative element returns itself.

**Alternative Approaches:**
Divide and conquer in O(n log n).
"""


def make_engine() -> Engine:
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


class FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis down")

    def get(self, key: str) -> Any:
        self._check()
        return self.store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def incr(self, key: str) -> int:
        self._check()
        self.store[key] = int(self.store.get(key) or 0) + 1
        return self.store[key]

    def expire(self, key: str, ttl: int) -> None:
        self._check()
        self.ttls[key] = ttl


class FakeAIService:
    """Replays scripted responses; an Exception entry is raised instead of returned."""

    def __init__(self, responses: list[Any] | Callable[[str], str]) -> None:
        self.responses = responses
        self.calls = 0
        self.prompts: list[str] = []

    def generate_text(self, *, prompt: str, system_prompt: str = "", json_mode: bool = False) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        if callable(self.responses):
            return self.responses(prompt)
        index = min(self.calls - 1, len(self.responses) - 1)
        item = self.responses[index]
        if isinstance(item, Exception):
            raise item
        return item


class FakeExecutionClient:
    def __init__(self, result: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.result = result or {"language": "python", "version": "3.10.0", "run": {"stdout": "ok\n", "code": 0}}
        self.error = error
        self.calls: list[tuple[str, str, str | None]] = []

    def execute(self, language: str, source_code: str, stdin: str | None = None) -> dict[str, Any]:
        self.calls.append((language, source_code, stdin))
        if self.error is not None:
            raise self.error
        return self.result


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        init_db(self.engine)
        self.SessionTesting = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

        self.media_dir = tempfile.TemporaryDirectory()
        self.settings = Settings(
            _env_file=None,
            jwt_secret="test-secret",
            media_root=self.media_dir.name,
            rate_limit_requests=100,
        )
        self.redis = FakeRedis()
        self.cache = CacheService(self.redis)
        self.ai: Any = None
        self.sleeps: list[float] = []
        self.execution = FakeExecutionClient()

        def _override_db() -> Iterator[Session]:
            db = self.SessionTesting()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _override_db
        app.dependency_overrides[get_settings] = lambda: self.settings
        app.dependency_overrides[get_cache] = lambda: self.cache
        app.dependency_overrides[get_ai_service] = lambda: self.ai
        app.dependency_overrides[get_retry_policy] = lambda: RetryPolicy(
            max_attempts=3,
            base_delay_sec=1.0,
            sleep=self.sleeps.append,
        )
        app.dependency_overrides[get_execution_client] = lambda: self.execution
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.engine.dispose()
        self.media_dir.cleanup()

    def session(self) -> Session:
        return self.SessionTesting()
