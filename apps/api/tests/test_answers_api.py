import json
import unittest

from sqlalchemy import func, select

from codesensei.models.orm import GeneratedAnswer
from codesensei.services.answer_service import build_answer_prompt, parse_answer_response

try:
    from tests.support import ANSWER_TEXT, VALID_QUESTION_JSON, ApiTestCase, FakeAIService
except ModuleNotFoundError:
    from support import ANSWER_TEXT, VALID_QUESTION_JSON, ApiTestCase, FakeAIService


class ParseAnswerResponseTests(unittest.TestCase):
    def test_sections_with_bold_markers(self) -> None:
        answer = parse_answer_response(ANSWER_TEXT)

        self.assertEqual(answer["approach"], "Use Kadane's algorithm and keep the best running sum.")
        self.assertTrue(answer["solution"].startswith("def solve(power):"))
        self.assertEqual(answer["timeComplexity"], "O(n)")
        self.assertEqual(answer["spaceComplexity"], "O(1)")
        self.assertEqual(answer["edgeCases"], "A single negative element returns itself.")
        self.assertEqual(answer["alternativeApproaches"], "Divide and conquer in O(n log n).")
        self.assertEqual(answer["rawResponse"], ANSWER_TEXT)

    def test_sections_without_bold_markers(self) -> None:
        answer = parse_answer_response(ANSWER_TEXT.replace("**", ""))

        self.assertEqual(answer["timeComplexity"], "O(n)")
        self.assertEqual(answer["explanation"], "Each element either extends the current run or starts a new one.")

    def test_csharp_fence_tag_is_not_part_of_solution(self) -> None:
        text = "**Solution:**\n```csharp\npublic class Solution {}\n```\n**Time Complexity:** O(1)"

        self.assertEqual(parse_answer_response(text)["solution"], "public class Solution {}")
        self.assertEqual(
            parse_answer_response(text.replace("csharp", "cs"))["solution"],
            "public class Solution {}",
        )

    def test_missing_sections_use_defaults(self) -> None:
        answer = parse_answer_response("just some prose")

        self.assertEqual(answer["approach"], "")
        self.assertEqual(answer["solution"], "")
        self.assertEqual(answer["timeComplexity"], "Not specified")
        self.assertEqual(answer["spaceComplexity"], "Not specified")

    def test_prompt_embeds_examples_verbatim(self) -> None:
        question = {"qid": "q", **json.loads(VALID_QUESTION_JSON)}

        prompt = build_answer_prompt(question, "python")

        self.assertIn('Input: {"power": [1, -2, 3, 4]}', prompt)
        self.assertIn("Output: 7", prompt)
        self.assertIn("exactly the example output", prompt)
        self.assertIn("- 1 <= n <= 10^5", prompt)


class GenerateAnswerApiTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client.post("/api/question", json={"qid": "q-1", "questionData": json.loads(VALID_QUESTION_JSON)})

    def _generate(self, **extra) -> dict:
        response = self.client.post(
            "/api/generate-answer",
            json={"questionId": "q-1", "language": "python", **extra},
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def test_second_call_is_cached_and_identical(self) -> None:
        self.ai = FakeAIService([ANSWER_TEXT])

        first = self._generate()
        second = self._generate()

        self.assertFalse(first["cached"])
        self.assertTrue(second["cached"])
        self.assertEqual(first["answer"], second["answer"])
        self.assertEqual(json.dumps(first["answer"]), json.dumps(second["answer"]))
        self.assertEqual(first["generatedAt"], second["generatedAt"])
        self.assertEqual(self.ai.calls, 1)

    def test_force_regenerate_replaces_record(self) -> None:
        self.ai = FakeAIService([ANSWER_TEXT, ANSWER_TEXT.replace("O(1)", "O(n)")])

        first = self._generate()
        regenerated = self._generate(forceRegenerate=True)

        self.assertEqual(self.ai.calls, 2)
        self.assertTrue(regenerated["isRegenerated"])
        self.assertNotEqual(first["generatedAt"], regenerated["generatedAt"])
        self.assertEqual(regenerated["answer"]["spaceComplexity"], "O(n)")
        with self.session() as db:
            self.assertEqual(db.scalar(select(func.count(GeneratedAnswer.id))), 1)

    def test_failed_regeneration_keeps_previous_record(self) -> None:
        self.ai = FakeAIService([ANSWER_TEXT, RuntimeError("ai_primary_failed:The read operation timed out")])

        first = self._generate()
        response = self.client.post(
            "/api/generate-answer",
            json={"questionId": "q-1", "language": "python", "forceRegenerate": True},
        )

        self.assertEqual(response.status_code, 504)
        self.assertEqual(response.json()["error_code"], "timeout")
        self.assertTrue(response.json()["retryable"])
        self.assertEqual(self.sleeps, [2.0, 4.0])
        cached = self._generate()
        self.assertTrue(cached["cached"])
        self.assertEqual(cached["answer"], first["answer"])
        self.assertFalse(cached["isRegenerated"])

    def test_answers_are_shared_between_users(self) -> None:
        self.ai = FakeAIService([ANSWER_TEXT])
        self._generate()

        login = self.client.post("/auth/login", json={"username": "ada", "password": "pw"})
        token = login.json()["token"]
        response = self.client.post(
            "/api/generate-answer",
            json={"questionId": "q-1", "language": "python"},
            headers={"Authorization": f"Bearer {token}"},
        )

        self.assertTrue(response.json()["cached"])
        self.assertEqual(self.ai.calls, 1)

    def test_unknown_question_is_404(self) -> None:
        self.ai = FakeAIService([ANSWER_TEXT])

        response = self.client.post("/api/generate-answer", json={"questionId": "missing", "language": "python"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.ai.calls, 0)

    def test_missing_language_is_400(self) -> None:
        response = self.client.post("/api/generate-answer", json={"questionId": "q-1"})

        self.assertEqual(response.status_code, 400)

    def test_no_provider_returns_unpersisted_boilerplate(self) -> None:
        body = self._generate()

        self.assertFalse(body["cached"])
        self.assertTrue(body["answer"]["solution"].startswith("def solve(input):"))
        with self.session() as db:
            self.assertEqual(db.scalar(select(func.count(GeneratedAnswer.id))), 0)


if __name__ == "__main__":
    unittest.main()
