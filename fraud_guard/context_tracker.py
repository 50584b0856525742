"""
CONTEXT TRACKER - Interaction recency + OTP frequency anomaly detection

Two signals:
- CONTEXT SUSPICIOUS: a sensitive code arrived while the user was not
  actively using the app (last interaction older than the active window).
- FREQUENCY ALERT: more OTP/verification messages inside the sliding
  window than the configured maximum (OTP flooding / takeover probing).

State lives in a caller-owned ContextState. All mutation happens under
its lock so one state can be shared by threaded callers.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Optional

from .verdicts import ContextSignal

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class ContextState:
    """Per-process context memory. Timestamps are epoch seconds."""
    last_interaction: Optional[float] = None
    otp_events: Deque[float] = field(default_factory=deque)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class InteractionRecency:
    def __init__(self, active_window_minutes: float = 2.0, clock: Clock = time.time):
        self.active_window_seconds = active_window_minutes * 60
        self.clock = clock

    def update_last_interaction(self, state: ContextState, at: Optional[float] = None):
        with state.lock:
            state.last_interaction = self.clock() if at is None else at

    def is_context_suspicious(self, state: ContextState, event_time: Optional[float] = None) -> bool:
        """No recorded interaction is never suspicious"""
        event_time = self.clock() if event_time is None else event_time
        with state.lock:
            if state.last_interaction is None:
                return False
            return event_time - state.last_interaction > self.active_window_seconds

    def reset(self, state: ContextState):
        with state.lock:
            state.last_interaction = None


class FrequencyTracker:
    def __init__(
        self,
        window_minutes: float = 5.0,
        max_events_in_window: int = 3,
        retention_minutes: float = 10.0,
        clock: Clock = time.time,
    ):
        self.window_seconds = window_minutes * 60
        self.max_events_in_window = max_events_in_window
        self.retention_seconds = retention_minutes * 60
        self.clock = clock

    def record_event(self, state: ContextState, at: Optional[float] = None):
        at = self.clock() if at is None else at
        with state.lock:
            state.otp_events.append(at)
            self._prune(state, at)

    def event_count(self, state: ContextState, now: Optional[float] = None) -> int:
        now = self.clock() if now is None else now
        with state.lock:
            return sum(1 for t in state.otp_events if now - t <= self.window_seconds)

    def is_possible_attack(self, state: ContextState, now: Optional[float] = None) -> bool:
        return self.event_count(state, now) > self.max_events_in_window

    def reset(self, state: ContextState):
        with state.lock:
            state.otp_events.clear()

    def _prune(self, state: ContextState, now: float):
        while state.otp_events and now - state.otp_events[0] > self.retention_seconds:
            state.otp_events.popleft()


class ContextTracker:
    """Facade over both trackers sharing one ContextState"""

    def __init__(
        self,
        state: Optional[ContextState] = None,
        recency: Optional[InteractionRecency] = None,
        frequency: Optional[FrequencyTracker] = None,
    ):
        self.state = state or ContextState()
        self.recency = recency or InteractionRecency()
        self.frequency = frequency or FrequencyTracker()

    def observe(self, event_time: Optional[float] = None, sensitive: bool = True) -> ContextSignal:
        """
        Account for one analyzed message and report its context.
        Only sensitive (OTP/verification) messages are recorded and judged.
        """
        if not sensitive:
            return ContextSignal()

        self.frequency.record_event(self.state, event_time)
        signal = ContextSignal(
            suspicious=self.recency.is_context_suspicious(self.state, event_time),
            frequency_alert=self.frequency.is_possible_attack(self.state, event_time),
        )
        if signal.frequency_alert:
            logger.warning("🚨 OTP burst detected - possible account takeover attempt")
        return signal

    def update_user_interaction(self, at: Optional[float] = None):
        self.recency.update_last_interaction(self.state, at)

    def reset(self):
        self.recency.reset(self.state)
        self.frequency.reset(self.state)
        logger.info("Context state cleared")
