"""
Requirement payloads for achievements and quests

Catalog rows carry `requirement = {"metric": ..., "count": N}`. Each metric is
a tag with one evaluator in METRIC_EVALUATORS reading the materialized
ActivityStats. Malformed payloads raise InvalidRequirementError; evaluation
callers log it and treat the condition as never satisfied.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from reading_journey.exceptions import InvalidRequirementError
from reading_journey.models.gamification import ActivityStats


class Metric(str, Enum):
    # Additive activity counters
    BOOKS_READ = "books_read"
    BOOKS_STARTED = "books_started"
    REVIEWS_WRITTEN = "reviews_written"
    BOOKS_RATED = "books_rated"
    READING_SESSIONS = "reading_sessions"
    PAGES_READ = "pages_read"
    MINUTES_READ = "minutes_read"
    CLUBS_JOINED = "clubs_joined"
    CLUBS_CREATED = "clubs_created"
    # Derived state
    STREAK_DAYS = "streak_days"
    LONGEST_STREAK = "longest_streak"
    GENRES_EXPLORED = "genres_explored"
    LEVEL = "level"
    TOTAL_XP = "total_xp"


COUNTER_METRICS = frozenset({
    Metric.BOOKS_READ,
    Metric.BOOKS_STARTED,
    Metric.REVIEWS_WRITTEN,
    Metric.BOOKS_RATED,
    Metric.READING_SESSIONS,
    Metric.PAGES_READ,
    Metric.MINUTES_READ,
    Metric.CLUBS_JOINED,
    Metric.CLUBS_CREATED,
})


@dataclass(frozen=True)
class Requirement:
    metric: Metric
    count: int

    @property
    def is_counter(self) -> bool:
        return self.metric in COUNTER_METRICS


def parse_requirement(raw: Any, catalog_id: Optional[str] = None) -> Requirement:
    """
    Parse a catalog requirement payload

    Raises:
        InvalidRequirementError: payload is not {"metric": <known>, "count": <int >= 1>}
    """
    if not isinstance(raw, dict):
        raise InvalidRequirementError("requirement must be an object", raw, catalog_id)

    metric_tag = raw.get("metric")
    try:
        metric = Metric(metric_tag)
    except ValueError:
        raise InvalidRequirementError(f"unknown metric {metric_tag!r}", raw, catalog_id) from None

    count = raw.get("count")
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidRequirementError(f"count must be a positive integer, got {count!r}", raw, catalog_id)

    return Requirement(metric=metric, count=count)


def _counter(metric: Metric) -> Callable[[ActivityStats], int]:
    return lambda stats: stats.counters.get(metric.value, 0)


METRIC_EVALUATORS: dict[Metric, Callable[[ActivityStats], int]] = {
    **{metric: _counter(metric) for metric in COUNTER_METRICS},
    Metric.STREAK_DAYS: lambda stats: stats.current_streak,
    Metric.LONGEST_STREAK: lambda stats: stats.longest_streak,
    Metric.GENRES_EXPLORED: lambda stats: len(stats.genres),
    Metric.LEVEL: lambda stats: stats.level,
    Metric.TOTAL_XP: lambda stats: stats.xp,
}


def current_value(requirement: Requirement, stats: ActivityStats) -> int:
    return METRIC_EVALUATORS[requirement.metric](stats)


def is_satisfied(requirement: Requirement, stats: ActivityStats) -> bool:
    return current_value(requirement, stats) >= requirement.count


def requirement_progress(requirement: Requirement, stats: ActivityStats) -> dict:
    """
    Progress toward a requirement

    Returns:
        {'current': int, 'required': int, 'percentage': int}
    """
    current = min(current_value(requirement, stats), requirement.count)
    return {
        "current": current,
        "required": requirement.count,
        "percentage": min(100, int(current * 100 / requirement.count)),
    }
