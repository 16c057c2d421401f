"""
LeadMemory model — append-only audit trail, one row per state-changing action.

Rows are never updated or deleted.
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy.sql import func

from outbound.database import Base


class LeadMemory(Base):
    __tablename__ = 'lead_memories'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Text, ForeignKey('leads.id'), nullable=False)
    tenant_id = Column(Text, nullable=True)
    source = Column(Text, nullable=False, default='system')   # human_edit / research_stage / ...
    event_type = Column(Text, nullable=False)                 # sequence_edited, pipeline_rerun, ...
    description = Column(Text, default='')
    context = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_lead_memories_lead_created', 'lead_id', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'lead_id': self.lead_id,
            'source': self.source,
            'event_type': self.event_type,
            'description': self.description,
            'context': self.context,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
