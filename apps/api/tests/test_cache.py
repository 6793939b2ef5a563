import unittest

from codesensei.core.cache import CacheService, question_key, rate_limit_key

try:
    from tests.support import FakeRedis
except ModuleNotFoundError:
    from support import FakeRedis


class CacheServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.redis = FakeRedis()
        self.cache = CacheService(self.redis)

    def test_question_round_trip_with_ttl(self) -> None:
        self.assertTrue(self.cache.set_question("1", {"qname": "Q"}, ttl=60))

        self.assertEqual(self.cache.get_question("1"), {"qname": "Q"})
        self.assertEqual(self.redis.ttls[question_key("1")], 60)

    def test_rate_limit_window(self) -> None:
        results = [self.cache.check_rate_limit("1.2.3.4", limit=2, window=900) for _ in range(3)]

        self.assertEqual(results, [True, True, False])
        self.assertEqual(self.redis.ttls[rate_limit_key("1.2.3.4")], 900)

    def test_errors_are_swallowed(self) -> None:
        self.redis.fail = True

        self.assertIsNone(self.cache.get_question("1"))
        self.assertFalse(self.cache.set_question("1", {}))
        self.assertEqual(self.cache.get_topics(), [])
        self.assertTrue(self.cache.check_rate_limit("ip"))
        self.cache.invalidate_topics()

    def test_invalidate_topics_keeps_questions(self) -> None:
        self.cache.set_question("1", {"qname": "Q"})
        self.cache.set_topics(["A"])

        self.cache.invalidate_topics()

        self.assertEqual(self.cache.get_topics(), [])
        self.assertEqual(self.cache.get_question("1"), {"qname": "Q"})

    def test_disabled_cache(self) -> None:
        cache = CacheService.from_url("")

        self.assertFalse(cache.enabled)
        self.assertIsNone(cache.get_question("1"))
        self.assertTrue(cache.check_rate_limit("ip"))


if __name__ == "__main__":
    unittest.main()
