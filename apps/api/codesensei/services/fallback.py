import random
from typing import Any


DEFAULT_FALLBACK_TOPIC = "Algorithms"


def _fallback_templates(topic: str) -> list[dict[str, Any]]:
    return [
        {
            "qname": f"{topic} Array Challenge",
            "description": (
                f"Given an array of integers related to {topic}, return the sum of all of its elements. "
                "The function should handle edge cases and run in linear time."
            ),
            "constraints": [
                "1 <= array.length <= 10^4",
                "-10^9 <= array[i] <= 10^9",
            ],
            "example_test_cases": [
                {"input": {"array": [1, 2, 3, 4, 5]}, "output": 15},
                {"input": {"array": [10, 20, 30]}, "output": 60},
            ],
        },
        {
            "qname": f"{topic} String Manipulation",
            "description": (
                f"Working with {topic} themed strings, write a function that returns the input string reversed. "
                "Consider all possible edge cases."
            ),
            "constraints": [
                "1 <= string.length <= 1000",
                "string contains only lowercase letters",
            ],
            "example_test_cases": [
                {"input": {"str": "hello"}, "output": "olleh"},
                {"input": {"str": "world"}, "output": "dlrow"},
            ],
        },
        {
            "qname": f"{topic} Pair Finder",
            "description": (
                f"In a {topic} inventory, each item has an integer value. Given the list of values and a target, "
                "return the indices of the two items whose values add up to the target. "
                "Exactly one valid pair exists and the same item may not be used twice."
            ),
            "constraints": [
                "2 <= values.length <= 10^4",
                "-10^9 <= values[i], target <= 10^9",
                "exactly one valid answer exists",
            ],
            "example_test_cases": [
                {"input": {"values": [2, 7, 11, 15], "target": 9}, "output": [0, 1]},
                {"input": {"values": [3, 2, 4], "target": 6}, "output": [1, 2]},
            ],
        },
        {
            "qname": f"{topic} Balanced Sequence",
            "description": (
                f"A {topic} log encodes nested events with the characters '(', ')', '[', ']', '{{' and '}}'. "
                "Return true if every opened event is closed in the correct order, otherwise false."
            ),
            "constraints": [
                "1 <= log.length <= 10^4",
                "log consists only of the characters ()[]{}",
            ],
            "example_test_cases": [
                {"input": {"log": "([]{})"}, "output": True},
                {"input": {"log": "([)]"}, "output": False},
            ],
        },
    ]


def fallback_pool(topic: str | None = None) -> list[dict[str, Any]]:
    label = " ".join(str(topic or "").split()) or DEFAULT_FALLBACK_TOPIC
    return _fallback_templates(label)


def pick_fallback(topic: str | None = None, rng: random.Random | None = None) -> dict[str, Any]:
    return (rng or random).choice(fallback_pool(topic))
