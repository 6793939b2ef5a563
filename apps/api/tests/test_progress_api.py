import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from codesensei.models.orm import User
from codesensei.services.progress_service import next_streak

try:
    from tests.support import ApiTestCase
except ModuleNotFoundError:
    from support import ApiTestCase


QUESTION_DATA = {"qid": "q-42", "qname": "Pair Finder", "description": "Find the pair."}


class BookmarkApiTests(ApiTestCase):
    def _check(self, question_id: str = "q-42") -> bool:
        response = self.client.get("/api/saved-questions/check", params={"questionId": question_id})
        self.assertEqual(response.status_code, 200)
        return response.json()["isBookmarked"]

    def test_save_check_delete_scenario(self) -> None:
        self.assertFalse(self._check())

        saved = self.client.post("/api/saved-questions", json={"questionId": "q-42", "questionData": QUESTION_DATA})
        self.assertEqual(saved.json(), {"success": True})
        self.assertTrue(self._check())

        again = self.client.post("/api/saved-questions", json={"questionId": "q-42", "questionData": QUESTION_DATA})
        self.assertEqual(again.json()["message"], "Question already saved")

        listing = self.client.get("/api/saved-questions").json()["savedQuestions"]
        self.assertEqual([item["questionId"] for item in listing], ["q-42"])
        self.assertEqual(listing[0]["questionData"]["qname"], "Pair Finder")

        deleted = self.client.request("DELETE", "/api/saved-questions", json={"questionId": "q-42"})
        self.assertEqual(deleted.json(), {"success": True})
        self.assertFalse(self._check())

        missing = self.client.request("DELETE", "/api/saved-questions", json={"questionId": "q-42"})
        self.assertEqual(missing.status_code, 404)

    def test_delete_accepts_query_parameter(self) -> None:
        self.client.post("/api/saved-questions", json={"questionId": "q-7", "questionData": QUESTION_DATA})

        response = self.client.delete("/api/saved-questions", params={"questionId": "q-7"})

        self.assertEqual(response.status_code, 200)
        self.assertFalse(self._check("q-7"))

    def test_check_accepts_post_body(self) -> None:
        self.client.post("/api/saved-questions", json={"questionId": "q-8", "questionData": QUESTION_DATA})

        response = self.client.post("/api/saved-questions/check", json={"questionId": "q-8"})

        self.assertTrue(response.json()["isBookmarked"])

    def test_saved_questions_are_newest_first(self) -> None:
        for qid in ("a", "b", "c"):
            self.client.post("/api/saved-questions", json={"questionId": qid, "questionData": QUESTION_DATA})

        listing = self.client.get("/api/saved-questions").json()["savedQuestions"]

        self.assertEqual([item["questionId"] for item in listing], ["c", "b", "a"])

    def test_check_without_question_id_is_400(self) -> None:
        self.assertEqual(self.client.get("/api/saved-questions/check").status_code, 400)

    def test_bookmarks_are_scoped_per_user(self) -> None:
        token = self.client.post("/auth/login", json={"username": "grace", "password": "pw"}).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}
        self.client.post(
            "/api/saved-questions",
            json={"questionId": "q-9", "questionData": QUESTION_DATA},
            headers=headers,
        )

        mine = self.client.get("/api/saved-questions/check", params={"questionId": "q-9"}, headers=headers)

        self.assertTrue(mine.json()["isBookmarked"])
        self.assertFalse(self._check("q-9"))


class MarkSolvedApiTests(ApiTestCase):
    def test_mark_solved_twice_increments_once(self) -> None:
        first = self.client.post("/api/mark-solved", json={"questionId": "q-1"})
        second = self.client.post("/api/mark-solved", json={"questionId": "q-1"})

        self.assertFalse(first.json()["alreadySolved"])
        self.assertTrue(second.json()["alreadySolved"])
        with self.session() as db:
            user = db.scalar(select(User).where(User.username == "default_user"))
            self.assertEqual(user.solved_questions, 1)
            self.assertEqual(user.streak, 1)

        status = self.client.get("/api/mark-solved", params={"questionId": "q-1"}).json()
        self.assertTrue(status["isSolved"])
        self.assertIsNotNone(status["solvedAt"])

    def test_unsolved_status(self) -> None:
        status = self.client.get("/api/mark-solved", params={"questionId": "nope"}).json()

        self.assertEqual(status, {"isSolved": False, "solvedAt": None})

    def test_missing_question_id_is_400(self) -> None:
        response = self.client.post("/api/mark-solved", json={})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "invalid_request")

    def test_invalid_bearer_token_is_401(self) -> None:
        response = self.client.post(
            "/api/mark-solved",
            json={"questionId": "q-1"},
            headers={"Authorization": "Bearer not-a-token"},
        )

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error_code"], "unauthorized")


class StreakTests(unittest.TestCase):
    def test_next_streak(self) -> None:
        now = datetime(2024, 5, 10, 12, tzinfo=timezone.utc)

        self.assertEqual(next_streak(0, None, now), 1)
        self.assertEqual(next_streak(3, now - timedelta(hours=2), now), 3)
        self.assertEqual(next_streak(3, now - timedelta(days=1), now), 4)
        self.assertEqual(next_streak(3, now - timedelta(days=3), now), 1)


if __name__ == "__main__":
    unittest.main()
