# Per-user request limits: a daily cap plus a cooldown between requests.
# Counters live in memory only, so a restart (or a second process) starts
# everyone fresh. That's accepted; this is spend protection, not billing.

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from senan.models import RateLimitDecision

logger = logging.getLogger(__name__)

DAILY_LIMIT = 20
COOLDOWN_MS = 30_000
HEAVY_COOLDOWN_MS = 120_000

# Command classes that pay the long cooldown (full-context completions)
HEAVY_COMMAND_CLASSES = {"ask"}

# Rough dollar estimate per request, shown in !stats
COST_PER_REQUEST = {
    "ask": 0.01,
    "ask_simple": 0.003,
    "quiz": 0.005,
    "refresh": 0.02,
}


def next_midnight(now: datetime) -> datetime:
    return (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)


@dataclass
class RateLimitCounter:
    requests_today: int
    day_boundary: datetime
    last_request: datetime = None


class RateLimiter:

    def __init__(self, daily_limit: int = DAILY_LIMIT, cooldown_ms: int = COOLDOWN_MS,
                 heavy_cooldown_ms: int = HEAVY_COOLDOWN_MS):
        self.daily_limit = daily_limit
        self.cooldown_ms = cooldown_ms
        self.heavy_cooldown_ms = heavy_cooldown_ms
        self._counters = {}

    def cooldown_for(self, command_class: str) -> int:
        return self.heavy_cooldown_ms if command_class in HEAVY_COMMAND_CLASSES else self.cooldown_ms

    def check(self, user_id, command_class: str = "ask", now: datetime = None) -> RateLimitDecision:
        """
        Decide whether user_id may run a command of command_class now, and
        count it if so. Denied attempts are not counted.

        The daily cap is checked before the cooldown, so a user who is out of
        requests hears about the cap rather than a wait time.
        """
        now = now or datetime.now()
        key = str(user_id)
        counter = self._counters.get(key)
        if counter is None:
            counter = RateLimitCounter(requests_today=0, day_boundary=next_midnight(now))
        if now > counter.day_boundary:
            counter.requests_today = 0
            counter.day_boundary = next_midnight(now)

        if counter.requests_today >= self.daily_limit:
            self._counters[key] = counter
            return RateLimitDecision(
                allowed=False,
                reason="daily_limit",
                retry_after_ms=int((counter.day_boundary - now).total_seconds() * 1000),
                message=f"You've reached your daily limit of {self.daily_limit} requests. Try again tomorrow!",
            )

        cooldown = self.cooldown_for(command_class)
        if counter.last_request is not None:
            elapsed_ms = (now - counter.last_request).total_seconds() * 1000
            if elapsed_ms < cooldown:
                remaining_ms = int(cooldown - elapsed_ms)
                seconds = -(-remaining_ms // 1000)
                self._counters[key] = counter
                return RateLimitDecision(
                    allowed=False,
                    reason="cooldown",
                    retry_after_ms=remaining_ms,
                    message=f"Please wait {seconds} seconds before making another request.",
                )

        counter.requests_today += 1
        counter.last_request = now
        self._counters[key] = counter
        return RateLimitDecision(
            allowed=True,
            requests_remaining=self.daily_limit - counter.requests_today,
            estimated_cost=COST_PER_REQUEST.get(command_class, COST_PER_REQUEST["ask"]),
        )

    def user_stats(self, user_id, now: datetime = None):
        """Today's usage for one user, or None if they haven't asked anything."""
        counter = self._counters.get(str(user_id))
        if counter is None:
            return None
        now = now or datetime.now()
        return {
            "requests_today": 0 if now > counter.day_boundary else counter.requests_today,
            "daily_limit": self.daily_limit,
            "last_request": counter.last_request.isoformat() if counter.last_request else None,
            "next_reset": counter.day_boundary.isoformat(),
        }

    def reset_user(self, user_id) -> None:
        self._counters.pop(str(user_id), None)
        logger.info("Reset rate limits for user %s", user_id)

    def all_users(self) -> list:
        return [
            {
                "user_id": user_id,
                "requests_today": c.requests_today,
                "last_request": c.last_request.isoformat() if c.last_request else None,
                "next_reset": c.day_boundary.isoformat(),
            }
            for user_id, c in self._counters.items()
        ]

    def estimated_spend(self) -> float:
        """Rough dollar total for today's counted requests across all users."""
        return round(sum(c.requests_today for c in self._counters.values()) * COST_PER_REQUEST["ask"], 4)
