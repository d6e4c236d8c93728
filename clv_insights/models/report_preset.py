"""
Saved customer report presets
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from clv_insights.models.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class ReportPreset(Base):
    """Named, shop-scoped filter/sort/page-size configuration for the customer report"""
    __tablename__ = "report_presets"

    id = Column(String(36), primary_key=True, default=_new_id)
    shop = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    config = Column(Text, nullable=False, default="{}")  # JSON object of report query params
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
