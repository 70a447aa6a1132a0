"""Prometheus metrics definitions and helpers"""
import logging
import time
from contextlib import asynccontextmanager
from reading_journey.config import ENABLE_PROMETHEUS

logger = logging.getLogger(__name__)


class PrometheusMetrics:
    """Container for all gamification metrics"""

    def __init__(self, enabled: bool = ENABLE_PROMETHEUS):
        if not enabled:
            logger.info("Prometheus metrics disabled")
            self._enabled = False
            return

        from prometheus_client import Counter, Histogram

        # Facade events
        self.gamification_events_total = Counter(
            'gamification_events_total',
            'Gamification events processed',
            ['event', 'status']
        )

        self.gamification_event_duration_seconds = Histogram(
            'gamification_event_duration_seconds',
            'Gamification event processing latency',
            ['event'],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0]
        )

        # Rewards
        self.xp_awarded_total = Counter(
            'xp_awarded_total',
            'Total XP granted',
            ['reason']
        )

        self.level_ups_total = Counter(
            'level_ups_total',
            'Level-ups across all users'
        )

        self.achievements_unlocked_total = Counter(
            'achievements_unlocked_total',
            'Achievements unlocked'
        )

        self.quests_completed_total = Counter(
            'quests_completed_total',
            'Quests completed'
        )

        # Best-effort hooks
        self.gamification_hook_failures_total = Counter(
            'gamification_hook_failures_total',
            'Gamification hook calls that failed and were skipped',
            ['event']
        )

        self._enabled = True
        logger.info("Prometheus metrics initialized")

    @property
    def enabled(self) -> bool:
        """Check if metrics are enabled"""
        return self._enabled


# Global metrics instance
metrics = PrometheusMetrics()


@asynccontextmanager
async def track_gamification_event(event: str):
    """Track one Facade call: count by outcome and time it"""
    if not metrics.enabled:
        yield
        return

    start_time = time.time()
    status = "error"

    try:
        yield
        status = "success"
    finally:
        duration = time.time() - start_time
        metrics.gamification_event_duration_seconds.labels(event=event).observe(duration)
        metrics.gamification_events_total.labels(event=event, status=status).inc()


def record_xp_award(reason: str, amount: int, leveled_up: bool) -> None:
    if not metrics.enabled:
        return
    if amount > 0:
        metrics.xp_awarded_total.labels(reason=reason).inc(amount)
    if leveled_up:
        metrics.level_ups_total.inc()


def record_achievement_unlock() -> None:
    if metrics.enabled:
        metrics.achievements_unlocked_total.inc()


def record_quest_completion() -> None:
    if metrics.enabled:
        metrics.quests_completed_total.inc()


def record_hook_failure(event: str) -> None:
    if metrics.enabled:
        metrics.gamification_hook_failures_total.labels(event=event).inc()
