# tests/test_rate_limit.py
# Ventana deslizante del canje de códigos.

from app.rate_limit import SlidingWindowLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_blocks_after_max_requests_in_window():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(3, 60, clock=clock)

    assert [limiter.is_allowed("ip:/code") for _ in range(4)] == [True, True, True, False]


def test_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(2, 60, clock=clock)
    limiter.is_allowed("k")
    limiter.is_allowed("k")
    assert not limiter.is_allowed("k")

    clock.now += 61
    assert limiter.is_allowed("k")


def test_keys_are_independent_and_reset_clears():
    limiter = SlidingWindowLimiter(1, 60, clock=FakeClock())
    assert limiter.is_allowed("a")
    assert limiter.is_allowed("b")
    assert not limiter.is_allowed("a")

    limiter.reset()
    assert limiter.is_allowed("a")


def test_zero_limit_disables():
    limiter = SlidingWindowLimiter(0, 60)
    assert all(limiter.is_allowed("x") for _ in range(50))
