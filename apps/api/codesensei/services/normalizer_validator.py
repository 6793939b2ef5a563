import random
from typing import Any


DIFFICULTIES = ("easy", "medium", "hard")

REQUIRED_QUESTION_FIELDS = ("qname", "description")


def as_non_empty_str(value: Any, fallback: str) -> str:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return fallback


def normalize_topic(value: Any) -> str:
    return " ".join(str(value or "").split())


def normalize_difficulty(value: Any, rng: random.Random | None = None) -> str:
    raw = str(value or "").strip().lower()
    if raw in DIFFICULTIES:
        return raw
    return (rng or random).choice(DIFFICULTIES)


def is_valid_difficulty(value: Any) -> bool:
    return str(value or "").strip().lower() in DIFFICULTIES


def normalize_constraints(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, dict):
        constraints = []
        for key, text in value.items():
            if text is None:
                continue
            text = str(text).strip()
            if not text:
                continue
            constraints.append(f"{key}: {text}")
        return constraints
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [line.strip() for line in str(value).splitlines() if line.strip()]


def normalize_example_test_cases(value: Any) -> list[Any]:
    # 입력/출력 값의 형태는 검증하지 않고 그대로 전달한다.
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return [value]
    return []


def missing_question_fields(data: dict[str, Any]) -> list[str]:
    return [name for name in REQUIRED_QUESTION_FIELDS if not as_non_empty_str(data.get(name), "")]


def normalize_question_record(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "qname": as_non_empty_str(data.get("qname"), ""),
        "description": as_non_empty_str(data.get("description"), ""),
        "constraints": normalize_constraints(data.get("constraints")),
        "example_test_cases": normalize_example_test_cases(data.get("example_test_cases")),
    }
