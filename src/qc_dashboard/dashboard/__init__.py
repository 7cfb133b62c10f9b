"""
Dashboard and analytics modules.

This package contains:
- Rule-based anomaly detection and quality scoring
- KPI calculation and Markdown summaries
- Dashboard web API
"""

from .anomaly_detection import AnomalyDetector, quality_score
from .dashboard_analytics import DashboardAnalytics

__all__ = [
    'AnomalyDetector',
    'quality_score',
    'DashboardAnalytics',
]
