from __future__ import annotations

import threading

from django.test import SimpleTestCase

from providers.throttle import RateLimiter, limiter_for, reset_limiters


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RateLimiterTests(SimpleTestCase):
    def test_consecutive_acquires_are_spaced_by_min_interval(self):
        clock = FakeClock()
        limiter = RateLimiter(3.0, clock=clock, sleep=clock.sleep)

        first = limiter.acquire()
        second = limiter.acquire()

        self.assertGreaterEqual(second - first, 3.0)
        self.assertEqual(clock.sleeps, [3.0])
        self.assertEqual(limiter.last_acquired_at, second)

    def test_no_wait_when_interval_already_elapsed(self):
        clock = FakeClock()
        limiter = RateLimiter(3.0, clock=clock, sleep=clock.sleep)

        limiter.acquire()
        clock.now += 5
        limiter.acquire()

        self.assertEqual(clock.sleeps, [])

    def test_partial_wait_counts_time_already_passed(self):
        clock = FakeClock()
        limiter = RateLimiter(3.0, clock=clock, sleep=clock.sleep)

        limiter.acquire()
        clock.now += 1.5
        limiter.acquire()

        self.assertEqual(len(clock.sleeps), 1)
        self.assertAlmostEqual(clock.sleeps[0], 1.5)

    def test_capacity_allows_a_burst_then_throttles(self):
        clock = FakeClock()
        limiter = RateLimiter(3.0, capacity=2, clock=clock, sleep=clock.sleep)

        limiter.acquire()
        limiter.acquire()
        self.assertEqual(clock.sleeps, [])

        limiter.acquire()
        self.assertEqual(clock.sleeps, [3.0])

    def test_invalid_capacity(self):
        with self.assertRaises(ValueError):
            RateLimiter(3.0, capacity=0)

    def test_threads_share_one_limiter(self):
        clock = FakeClock()
        lock = threading.Lock()

        def sleep(seconds):
            with lock:
                clock.sleep(seconds)

        limiter = RateLimiter(3.0, clock=clock, sleep=sleep)
        stamps = []

        def worker():
            stamps.append(limiter.acquire())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stamps.sort()
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        self.assertEqual(len(stamps), 4)
        for gap in gaps:
            self.assertGreaterEqual(gap, 3.0)


class LimiterRegistryTests(SimpleTestCase):
    def tearDown(self):
        reset_limiters()

    def test_same_key_same_instance(self):
        self.assertIs(limiter_for("cj"), limiter_for("CJ"))
        self.assertIsNot(limiter_for("cj"), limiter_for("other"))
