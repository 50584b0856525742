"""
CONTEXT TRACKER TESTS
Interaction recency + OTP frequency anomaly detection with a fake clock.
"""

import threading

from fraud_guard.context_tracker import (
    ContextState, ContextTracker, FrequencyTracker, InteractionRecency,
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, minutes: float):
        self.now += minutes * 60


def make_tracker():
    clock = FakeClock()
    tracker = ContextTracker(
        state=ContextState(),
        recency=InteractionRecency(active_window_minutes=2, clock=clock),
        frequency=FrequencyTracker(window_minutes=5, max_events_in_window=3, retention_minutes=10, clock=clock),
    )
    return tracker, clock


def test_no_interaction_is_never_suspicious():
    tracker, clock = make_tracker()
    signal = tracker.observe()
    assert not signal.suspicious


def test_recent_interaction_is_not_suspicious():
    tracker, clock = make_tracker()
    tracker.update_user_interaction()
    clock.advance(1)
    assert not tracker.observe().suspicious


def test_stale_interaction_is_suspicious():
    tracker, clock = make_tracker()
    tracker.update_user_interaction()
    clock.advance(3)
    assert tracker.observe().suspicious


def test_frequency_alert_after_more_than_max_events():
    tracker, clock = make_tracker()
    signals = []
    for _ in range(4):
        signals.append(tracker.observe())
        clock.advance(0.5)

    assert [s.frequency_alert for s in signals] == [False, False, False, True]


def test_events_outside_window_do_not_count():
    tracker, clock = make_tracker()
    for _ in range(3):
        tracker.observe()
    clock.advance(6)
    assert not tracker.observe().frequency_alert
    assert tracker.frequency.event_count(tracker.state) == 1


def test_old_events_are_pruned_after_retention():
    tracker, clock = make_tracker()
    tracker.observe()
    clock.advance(11)
    tracker.observe()
    assert len(tracker.state.otp_events) == 1


def test_non_sensitive_messages_are_not_recorded():
    tracker, clock = make_tracker()
    for _ in range(5):
        signal = tracker.observe(sensitive=False)
    assert not signal.frequency_alert
    assert len(tracker.state.otp_events) == 0


def test_explicit_event_time_is_used():
    tracker, clock = make_tracker()
    tracker.update_user_interaction(at=clock.now)
    signal = tracker.observe(event_time=clock.now + 10 * 60)
    assert signal.suspicious


def test_reset_clears_state():
    tracker, clock = make_tracker()
    tracker.update_user_interaction()
    tracker.observe()
    tracker.reset()
    assert tracker.state.last_interaction is None
    assert len(tracker.state.otp_events) == 0


def test_shared_state_is_safe_across_threads():
    tracker, clock = make_tracker()

    def worker():
        for _ in range(50):
            tracker.observe()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(tracker.state.otp_events) == 200
