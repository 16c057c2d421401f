"""
ResearchRecord model — one row per lead, overwritten by every research run.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from outbound.database import Base


class ResearchRecord(Base):
    __tablename__ = 'research_records'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    lead_id = Column(Text, ForeignKey('leads.id'), nullable=False, unique=True)
    # {persona_match: {...}, triggers: [...], messaging_angles: [...]}
    extracted_signals = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
