"""Upgrade-funnel analytics."""

from .upgrade_analytics import AnalyticsDelivery, UpgradeAnalytics, get_analytics_delivery

__all__ = [
    "AnalyticsDelivery",
    "UpgradeAnalytics",
    "get_analytics_delivery",
]
