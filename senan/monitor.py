# Process-wide monitoring: counters, token/cost tracking, health checks and
# the periodic log summaries. One Monitor per process, held on BotContext.
# The log files themselves are written by the handlers set up in
# config.setup_logging(); Monitor only tails them for !monitor and /bot/logs.

import asyncio
import json
import logging
import os
import resource
import time
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta

from senan.config import ERROR_LOG_FILE, LOG_FILE

logger = logging.getLogger(__name__)

# Estimated pricing per 1K tokens (USD). The Anthropic console has real billing.
PRICING_PER_1K = {"input": 0.015, "output": 0.075}

METRICS_INTERVAL_S = 15 * 60
HEALTH_INTERVAL_S = 5 * 60
DAILY_INTERVAL_S = 24 * 60 * 60

RECENT_ACTIVITY_S = 5 * 60
MAX_MEMORY_PERCENT = 80
MAX_ERROR_RATE_PERCENT = 10
HIGH_RSS_MB = 400


def format_uptime(seconds: float) -> str:
    seconds = int(seconds)
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400
    if days:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours:
        return f"{hours}h {minutes % 60}m"
    if minutes:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def _system_memory_mb():
    """(used, total) system memory in MB, or (None, None) where sysconf can't tell."""
    try:
        page = os.sysconf("SC_PAGE_SIZE")
        total = os.sysconf("SC_PHYS_PAGES") * page
        free = os.sysconf("SC_AVPHYS_PAGES") * page
    except (ValueError, OSError, AttributeError):
        return None, None
    return round((total - free) / 1024 / 1024), round(total / 1024 / 1024)


def _process_rss_mb() -> int:
    # ru_maxrss is KB on Linux: peak resident set size of this process
    return round(resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024)


class Monitor:

    def __init__(self, logs_dir: str):
        self.logs_dir = logs_dir
        self.start_time = time.time()
        self.last_activity = time.time()

        self.message_count = 0
        self.error_count = 0
        self.profile_switches = 0
        self.upload_count = 0
        self.command_counts = Counter()

        self.request_count = 0
        self.total_tokens = 0
        self.total_cost = 0.0
        self.daily_tokens = defaultdict(int)
        self.daily_cost = defaultdict(float)

        self._tasks = []

    # ─────────────────────────────────────────
    # TRACKING
    # ─────────────────────────────────────────

    def track_message(self, command: str = None) -> None:
        self.message_count += 1
        self.last_activity = time.time()
        if command:
            self.command_counts[command] += 1

    def track_error(self, error: Exception, context: str = None) -> None:
        self.error_count += 1
        logger.error("Error in %s: %s", context or "bot", error, exc_info=error)

    def track_profile_switch(self, from_profile: str, to_profile: str) -> None:
        self.profile_switches += 1
        logger.info("Profile switched: %s -> %s", from_profile, to_profile)

    def track_upload(self, filename: str, success: bool, file_id: str = None) -> None:
        if success:
            self.upload_count += 1
            logger.info("Uploaded %s (%s)", filename, file_id)
        else:
            logger.warning("Upload failed for %s", filename)

    def track_api_usage(self, input_tokens: int, output_tokens: int, model: str = "") -> float:
        """Record one completion call; returns its estimated cost in USD."""
        cost = input_tokens / 1000 * PRICING_PER_1K["input"] + output_tokens / 1000 * PRICING_PER_1K["output"]
        tokens = input_tokens + output_tokens
        today = date.today().isoformat()

        self.request_count += 1
        self.total_tokens += tokens
        self.total_cost += cost
        self.daily_tokens[today] += tokens
        self.daily_cost[today] += cost

        logger.info(
            "API usage (%s): %d input + %d output tokens = $%.4f (estimated)",
            model, input_tokens, output_tokens, cost,
        )
        return cost

    # ─────────────────────────────────────────
    # REPORTING
    # ─────────────────────────────────────────

    def uptime(self) -> str:
        return format_uptime(time.time() - self.start_time)

    def top_commands(self, limit: int = 10) -> list:
        return self.command_counts.most_common(limit)

    def cost_metrics(self) -> dict:
        today = date.today().isoformat()
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        days = max(1, len(self.daily_tokens))
        return {
            "total": {"tokens": self.total_tokens, "cost": round(self.total_cost, 4), "requests": self.request_count},
            "daily": {
                "today": {"tokens": self.daily_tokens.get(today, 0), "cost": round(self.daily_cost.get(today, 0.0), 4)},
                "yesterday": {"tokens": self.daily_tokens.get(yesterday, 0), "cost": round(self.daily_cost.get(yesterday, 0.0), 4)},
            },
            "average": {
                "cost_per_request": round(self.total_cost / self.request_count, 4) if self.request_count else 0,
                "tokens_per_request": round(self.total_tokens / self.request_count) if self.request_count else 0,
            },
            "estimated": {
                "monthly_cost": round(self.daily_cost.get(today, 0.0) * 30, 2),
                "tokens_per_day": round(sum(self.daily_tokens.values()) / days),
            },
        }

    def system_metrics(self) -> dict:
        used, total = _system_memory_mb()
        try:
            load = list(os.getloadavg())
        except OSError:
            load = []
        return {
            "uptime": self.uptime(),
            "memory": {"process_rss_mb": _process_rss_mb(), "system_used_mb": used, "system_total_mb": total},
            "cpu": {"load_average": load, "cpus": os.cpu_count()},
            "stats": {
                "messages_processed": self.message_count,
                "errors": self.error_count,
                "profile_switches": self.profile_switches,
                "uploads": self.upload_count,
                "last_activity": datetime.fromtimestamp(self.last_activity).isoformat(),
            },
            "commands": dict(self.command_counts),
            "costs": self.cost_metrics(),
        }

    def health(self, now: float = None) -> dict:
        """
        Healthy = a message within the last 5 minutes, system memory under 80%
        and an error rate under 10% of processed messages.
        """
        now = now or time.time()
        used, total = _system_memory_mb()
        memory_percent = (used / total * 100) if used is not None and total else 0
        error_rate = (self.error_count / self.message_count * 100) if self.message_count else 0
        checks = {
            "recent_activity": (now - self.last_activity) < RECENT_ACTIVITY_S,
            "memory_healthy": memory_percent < MAX_MEMORY_PERCENT,
            "error_rate_healthy": error_rate < MAX_ERROR_RATE_PERCENT,
        }
        return {"healthy": all(checks.values()), "checks": checks, "error_rate": round(error_rate, 2)}

    def status(self) -> dict:
        metrics = self.system_metrics()
        return {
            "status": "healthy" if self.health()["healthy"] else "unhealthy",
            "uptime": metrics["uptime"],
            "memory_mb": metrics["memory"]["process_rss_mb"],
            "messages": self.message_count,
            "errors": self.error_count,
            "profile_switches": self.profile_switches,
            "uploads": self.upload_count,
            "top_commands": self.top_commands(3),
            "last_activity": metrics["stats"]["last_activity"],
        }

    def recent_logs(self, errors_only: bool = False, limit: int = 50) -> list:
        """Last `limit` JSON log entries from today's log (or the error log)."""
        path = os.path.join(self.logs_dir, ERROR_LOG_FILE if errors_only else LOG_FILE)
        if not os.path.exists(path):
            return []
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()[-limit:]
        entries = []
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                entries.append({"level": "RAW", "message": line})
        return entries

    # ─────────────────────────────────────────
    # PERIODIC TASKS
    # ─────────────────────────────────────────

    def log_daily_stats(self) -> None:
        logger.info(
            "Daily statistics: uptime=%s messages=%d errors=%d profile_switches=%d uploads=%d top=%s",
            self.uptime(), self.message_count, self.error_count,
            self.profile_switches, self.upload_count, self.top_commands(5),
        )

    def check_metrics(self) -> None:
        metrics = self.system_metrics()
        logger.debug("System metrics: %s", json.dumps(metrics, default=str))
        if metrics["memory"]["process_rss_mb"] > HIGH_RSS_MB:
            logger.warning("High memory usage (%d MB), consider restarting", metrics["memory"]["process_rss_mb"])

    def check_health(self) -> None:
        health = self.health()
        if not health["healthy"]:
            logger.warning("Health check failed: %s", health["checks"])

    async def _every(self, seconds: float, fn) -> None:
        while True:
            await asyncio.sleep(seconds)
            try:
                fn()
            except Exception:
                logger.exception("Periodic check %s failed", getattr(fn, "__name__", fn))

    def start(self) -> None:
        """Start the periodic checks on the running event loop."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._every(METRICS_INTERVAL_S, self.check_metrics)),
            asyncio.create_task(self._every(HEALTH_INTERVAL_S, self.check_health)),
            asyncio.create_task(self._every(DAILY_INTERVAL_S, self.log_daily_stats)),
        ]

    def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks = []
