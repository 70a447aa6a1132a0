"""Monitoring: Prometheus metrics for the gamification engine"""
from reading_journey.monitoring.prometheus_metrics import metrics, track_gamification_event

__all__ = ["metrics", "track_gamification_event"]
