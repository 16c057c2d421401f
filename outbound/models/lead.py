"""
Lead model — the aggregate root. Created by ingestion, never deleted by the pipeline.

The pipeline stage is NOT a column: it is derived from the lead's research
record and email sequence (see outbound.pipeline.state.derive_lead_stage).
"""
import uuid

from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from outbound.database import Base


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(Text, ForeignKey('tenants.id'), nullable=False, index=True)
    first_name = Column(Text, default='')
    last_name = Column(Text, default='')
    email = Column(Text, default='')
    job_title = Column(Text, nullable=True)
    company_name = Column(Text, default='')
    company_domain = Column(Text, nullable=True)
    linkedin_url = Column(Text, nullable=True)
    qualification_decision = Column(Text, nullable=True)     # YES / NO / UNSURE
    qualification_reasoning = Column(Text, nullable=True)
    qualification_confidence = Column(Integer, nullable=True)  # 0-100
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'job_title': self.job_title,
            'company_name': self.company_name,
            'company_domain': self.company_domain,
            'linkedin_url': self.linkedin_url,
            'qualification': {
                'decision': self.qualification_decision,
                'reasoning': self.qualification_reasoning,
                'confidence': self.qualification_confidence,
            },
        }
