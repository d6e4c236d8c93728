"""Database models for CLV Insights"""

from clv_insights.models.report_preset import ReportPreset

__all__ = ["ReportPreset"]
