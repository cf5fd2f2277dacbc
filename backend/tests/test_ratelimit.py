import unittest
from unittest.mock import MagicMock

from redis import exceptions as redis_exceptions

from backend.cache import CacheError
from backend.ratelimit import InMemoryRateLimiter, RedisRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 500.0

    def __call__(self):
        return self.now


class InMemoryRateLimiterTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.limiter = InMemoryRateLimiter(requests=2, window=60, clock=self.clock)

    def test_allows_up_to_limit_within_window(self):
        first = self.limiter.hit("rate:auth:1.2.3.4")
        second = self.limiter.hit("rate:auth:1.2.3.4")
        third = self.limiter.hit("rate:auth:1.2.3.4")
        self.assertTrue(first.allowed)
        self.assertEqual(first.remaining, 1)
        self.assertTrue(second.allowed)
        self.assertFalse(third.allowed)
        self.assertEqual(third.remaining, 0)
        self.assertEqual(third.retry_after, 60)

    def test_window_resets(self):
        for _ in range(3):
            self.limiter.hit("k")
        self.clock.now += 45
        self.assertEqual(self.limiter.hit("k").retry_after, 15)
        self.clock.now += 15
        result = self.limiter.hit("k")
        self.assertTrue(result.allowed)
        self.assertEqual(result.remaining, 1)

    def test_keys_are_counted_separately(self):
        self.limiter.hit("a")
        self.limiter.hit("a")
        self.assertFalse(self.limiter.hit("a").allowed)
        self.assertTrue(self.limiter.hit("b").allowed)


class RedisRateLimiterTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.pipe = self.client.pipeline.return_value
        self.limiter = RedisRateLimiter(self.client, requests=5, window=60)

    def test_first_hit_sets_expiry(self):
        self.pipe.execute.return_value = [1, -1]
        result = self.limiter.hit("rate:auth:1.2.3.4")
        self.pipe.incr.assert_called_once_with("rate:auth:1.2.3.4")
        self.client.pexpire.assert_called_once_with("rate:auth:1.2.3.4", 60000)
        self.assertTrue(result.allowed)
        self.assertEqual(result.remaining, 4)

    def test_hit_over_limit_reports_retry_after(self):
        self.pipe.execute.return_value = [6, 29500]
        result = self.limiter.hit("k")
        self.client.pexpire.assert_not_called()
        self.assertFalse(result.allowed)
        self.assertEqual(result.retry_after, 30)

    def test_transport_error_is_cache_error(self):
        self.pipe.execute.side_effect = redis_exceptions.ConnectionError("down")
        with self.assertRaises(CacheError):
            self.limiter.hit("k")


if __name__ == "__main__":
    unittest.main()
