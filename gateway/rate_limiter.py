"""Per-user rate limiting for socket sends (sliding window with cooldown)"""
import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class _UserWindow:
    timestamps: list[float] = field(default_factory=list)
    blocked_until: float | None = None


class RateLimiter:
    """In-memory limiter keyed by user id, shared by all of a user's connections"""

    def __init__(
        self,
        messages_per_window: int = 5,
        window_seconds: float = 1.0,
        cooldown_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.messages_per_window = messages_per_window
        self.window_seconds = window_seconds
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self.user_windows: dict[str, _UserWindow] = {}

    def is_rate_limited(self, user_id: str) -> tuple[bool, str | None]:
        """
        Record an attempt and tell whether it must be rejected.

        Returns:
            (is_limited, error_message)
        """
        now = self.clock()
        window = self.user_windows.setdefault(user_id, _UserWindow())

        if window.blocked_until is not None:
            if now < window.blocked_until:
                retry_after = int(window.blocked_until - now) + 1
                return True, f"Rate limited. Try again in {retry_after} second(s)."
            window.blocked_until = None
            window.timestamps.clear()

        cutoff = now - self.window_seconds
        window.timestamps = [ts for ts in window.timestamps if ts > cutoff]

        if len(window.timestamps) < self.messages_per_window:
            window.timestamps.append(now)
            return False, None

        window.blocked_until = now + self.cooldown_seconds
        return True, f"Too many messages. Try again in {self.cooldown_seconds:g} second(s)."

    def forget_user(self, user_id: str) -> None:
        """Drop state for a user with no remaining connections"""
        self.user_windows.pop(user_id, None)
