"""
Fixed-window rate limiting.
"""

from fitchain.ratelimit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestFixedWindowRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = FixedWindowRateLimiter(3, 60, clock=FakeClock())
        assert [limiter.hit("1.2.3.4") for _ in range(4)] == [True, True, True, False]

    def test_keys_are_independent(self):
        limiter = FixedWindowRateLimiter(1, 60, clock=FakeClock())
        assert limiter.hit("a") is True
        assert limiter.hit("b") is True
        assert limiter.hit("a") is False

    def test_window_resets(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(2, 60, clock=clock)
        limiter.hit("ip")
        limiter.hit("ip")
        assert limiter.hit("ip") is False

        clock.now = 1059.5
        assert limiter.hit("ip") is False

        clock.now = 1060.0
        assert limiter.hit("ip") is True

    def test_reset_clears_state(self):
        limiter = FixedWindowRateLimiter(1, 60, clock=FakeClock())
        limiter.hit("ip")
        limiter.reset()
        assert limiter.hit("ip") is True

    def test_lapsed_clients_are_forgotten(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(5, 60, clock=clock)
        limiter.hit("a")
        limiter.hit("b")
        clock.now = 1030.0
        limiter.hit("c")
        assert len(limiter) == 3

        clock.now = 1060.0
        limiter.hit("d")
        assert len(limiter) == 2

        clock.now = 1200.0
        limiter.hit("d")
        assert len(limiter) == 1
