import pytest

from nad_controller import ExponentialBackoff, RateLimitingQueue


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_duplicate_adds_are_coalesced():
    queue = RateLimitingQueue()

    queue.add("ns/pod-a")
    queue.add("ns/pod-a")
    queue.add("ns/pod-b")

    assert len(queue) == 2
    assert queue.get(timeout=0) == "ns/pod-a"
    assert queue.get(timeout=0) == "ns/pod-b"
    assert queue.get(timeout=0) is None


def test_key_in_processing_is_not_handed_out_twice():
    queue = RateLimitingQueue()
    queue.add("ns/pod-a")

    key = queue.get(timeout=0)
    queue.add("ns/pod-a")

    assert queue.get(timeout=0) is None

    queue.done(key)
    assert queue.get(timeout=0) == "ns/pod-a"


def test_rate_limited_add_waits_for_backoff():
    clock = FakeClock()
    queue = RateLimitingQueue(ExponentialBackoff(base_delay=1.0), clock=clock)

    queue.add_rate_limited("ns/pod-a")

    assert queue.pending() == 1
    assert queue.get(timeout=0) is None

    clock.now += 1.0
    assert queue.get(timeout=0) == "ns/pod-a"
    assert queue.num_requeues("ns/pod-a") == 1


def test_backoff_grows_and_is_capped():
    backoff = ExponentialBackoff(base_delay=0.005, max_delay=0.02)

    delays = [backoff.when("k") for _ in range(5)]

    assert delays == pytest.approx([0.005, 0.01, 0.02, 0.02, 0.02])
    assert backoff.num_requeues("k") == 5


def test_forget_resets_backoff():
    backoff = ExponentialBackoff(base_delay=0.005)
    backoff.when("k")
    backoff.when("k")

    backoff.forget("k")

    assert backoff.num_requeues("k") == 0
    assert backoff.when("k") == pytest.approx(0.005)


def test_backoff_does_not_overflow():
    backoff = ExponentialBackoff(base_delay=1.0, max_delay=10.0)

    for _ in range(100):
        delay = backoff.when("k")

    assert delay == 10.0


def test_shut_down_releases_getters_and_ignores_adds():
    queue = RateLimitingQueue()
    queue.add("ns/pod-a")

    queue.shut_down()
    queue.add("ns/pod-b")

    assert queue.shutting_down is True
    assert queue.get() is None
