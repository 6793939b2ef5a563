import json
import unittest
from datetime import timedelta

from sqlalchemy import select

from codesensei.core.cache import CacheService, question_key
from codesensei.models.orm import Interest, Question, utcnow
from codesensei.services.fallback import fallback_pool
from codesensei.services.normalizer_validator import DIFFICULTIES
from codesensei.services.question_service import QuestionService

try:
    from tests.support import VALID_QUESTION_JSON, ApiTestCase, FakeAIService
except ModuleNotFoundError:
    from support import VALID_QUESTION_JSON, ApiTestCase, FakeAIService


class GenerateQuestionApiTests(ApiTestCase):
    def test_generated_question_is_cached_and_persisted(self) -> None:
        self.ai = FakeAIService([VALID_QUESTION_JSON])

        response = self.client.post("/api/generate-question", json={"topic": "Marvel", "difficulty": "easy"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        qid = body["qid"]
        self.assertTrue(qid.isdigit())
        self.assertEqual(body["questionData"]["qname"], "Marvel Infinity Stones")
        self.assertEqual(body["questionData"]["qid"], qid)
        self.assertEqual(
            body["meta"],
            {"fallback_used": False, "topic": "Marvel", "difficulty": "easy", "persisted": True},
        )
        self.assertEqual(self.redis.ttls[question_key(qid)], 3600)

        with self.session() as db:
            row = db.scalar(select(Question).where(Question.qid == qid))
            self.assertIsNotNone(row)
            self.assertEqual(row.topic, "Marvel")
            delta = row.expires_at - row.created_at
            self.assertEqual(delta, timedelta(seconds=86400))

    def test_fallback_for_every_topic_and_difficulty_when_model_unreachable(self) -> None:
        self.ai = FakeAIService([RuntimeError("ai_primary_failed:<urlopen error [Errno 111] Connection refused>")])

        for topic in ("Marvel", "Cooking", None):
            for difficulty in (*DIFFICULTIES, None):
                with self.subTest(topic=topic, difficulty=difficulty):
                    response = self.client.post(
                        "/api/generate-question",
                        json={"topic": topic, "difficulty": difficulty},
                    )

                    self.assertEqual(response.status_code, 200)
                    body = response.json()
                    self.assertTrue(body["meta"]["fallback_used"])
                    self.assertIn(body["meta"]["difficulty"], DIFFICULTIES)
                    resolved_topic = body["meta"]["topic"]
                    titles = {item["qname"] for item in fallback_pool(resolved_topic)}
                    self.assertIn(body["questionData"]["qname"], titles)
                    self.assertTrue(body["questionData"]["description"])

    def test_no_provider_uses_fallback_without_delay(self) -> None:
        response = self.client.post("/api/generate-question", json={})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["meta"]["fallback_used"])
        self.assertEqual(self.sleeps, [])

    def test_topic_is_recorded_with_frequency(self) -> None:
        self.client.post("/api/generate-question", json={"topic": "  Space   Exploration "})
        self.client.post("/api/generate-question", json={"topic": "Space Exploration"})

        with self.session() as db:
            interest = db.scalar(select(Interest).where(Interest.topic == "Space Exploration"))
            self.assertEqual(interest.freq, 2)

    def test_random_topic_comes_from_registry(self) -> None:
        with self.session() as db:
            db.add(Interest(topic="Pokemon", freq=5))
            db.commit()

        body = self.client.post("/api/generate-question", json={}).json()

        self.assertEqual(body["meta"]["topic"], "Pokemon")
        with self.session() as db:
            self.assertEqual(db.scalar(select(Interest.freq).where(Interest.topic == "Pokemon")), 6)

    def test_invalid_difficulty_is_rejected(self) -> None:
        response = self.client.post("/api/generate-question", json={"difficulty": "impossible"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "invalid_request")

    def test_cache_outage_does_not_fail_the_request(self) -> None:
        self.redis.fail = True

        response = self.client.post("/api/generate-question", json={"topic": "Marvel"})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["meta"]["persisted"])

    def test_rate_limit_returns_429(self) -> None:
        self.settings.rate_limit_requests = 1

        first = self.client.post("/api/generate-question", json={}, headers={"x-forwarded-for": "10.0.0.1"})
        second = self.client.post("/api/generate-question", json={}, headers={"x-forwarded-for": "10.0.0.1"})
        other = self.client.post("/api/generate-question", json={}, headers={"x-forwarded-for": "10.0.0.2"})

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 429)
        self.assertEqual(second.json()["error_code"], "rate_limited")
        self.assertEqual(other.status_code, 200)


class QuestionReadWriteApiTests(ApiTestCase):
    def _question_data(self) -> dict:
        return json.loads(VALID_QUESTION_JSON)

    def test_saved_question_is_readable_after_cache_eviction(self) -> None:
        response = self.client.post("/api/question", json={"qid": "q-1", "questionData": self._question_data()})
        self.assertEqual(response.json(), {"success": True, "qid": "q-1"})

        self.redis.store.clear()
        fetched = self.client.get("/api/question", params={"qid": "q-1"})

        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["qname"], "Marvel Infinity Stones")
        self.assertIn(question_key("q-1"), self.redis.store)

    def test_save_replaces_existing_question(self) -> None:
        data = self._question_data()
        self.client.post("/api/question", json={"qid": "q-2", "questionData": data})
        data["qname"] = "Renamed"
        self.client.post("/api/question", json={"qid": "q-2", "questionData": data})

        self.redis.store.clear()
        self.assertEqual(self.client.get("/api/question", params={"qid": "q-2"}).json()["qname"], "Renamed")
        with self.session() as db:
            self.assertEqual(len(list(db.scalars(select(Question).where(Question.qid == "q-2")))), 1)

    def test_expired_question_is_invisible(self) -> None:
        with self.session() as db:
            db.add(
                Question(
                    qid="old",
                    qname="Old",
                    description="Expired",
                    constraints=[],
                    example_test_cases=[],
                    expires_at=utcnow() - timedelta(seconds=1),
                )
            )
            db.commit()

        response = self.client.get("/api/question", params={"qid": "old"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error_code"], "not_found")

    def test_expired_rows_are_purged_on_write(self) -> None:
        with self.session() as db:
            db.add(
                Question(
                    qid="stale",
                    qname="Stale",
                    description="Expired",
                    expires_at=utcnow() - timedelta(minutes=5),
                )
            )
            db.commit()

        self.client.post("/api/question", json={"qid": "fresh", "questionData": self._question_data()})

        with self.session() as db:
            self.assertEqual(list(db.scalars(select(Question.qid))), ["fresh"])

    def test_purge_expired_questions(self) -> None:
        with self.session() as db:
            db.add(Question(qid="stale", qname="S", description="D", expires_at=utcnow() - timedelta(seconds=1)))
            db.commit()
            service = QuestionService(db, CacheService(None), self.settings, None, None)

            self.assertEqual(service.purge_expired_questions(), 1)
            self.assertEqual(service.purge_expired_questions(), 0)

    def test_missing_fields_are_rejected(self) -> None:
        response = self.client.post("/api/question", json={"qid": "q-3", "questionData": {"qname": "Only"}})

        self.assertEqual(response.status_code, 400)

    def test_missing_qid_query_is_rejected(self) -> None:
        self.assertEqual(self.client.get("/api/question").status_code, 400)


class InterestsApiTests(ApiTestCase):
    def test_post_creates_then_increments(self) -> None:
        created = self.client.post("/interests/topic", json={"interest": "Harry Potter"})
        bumped = self.client.post("/interests/topic", json={"interest": "Harry Potter"})

        self.assertEqual(created.status_code, 201)
        self.assertEqual(bumped.status_code, 200)
        self.assertEqual(self.client.get("/interests/topic").json(), ["Harry Potter"])

    def test_empty_interest_is_rejected(self) -> None:
        self.assertEqual(self.client.post("/interests/topic", json={"interest": "  "}).status_code, 400)


if __name__ == "__main__":
    unittest.main()
