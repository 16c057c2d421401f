"""
EmailSequence model — the two outbound threads generated for a lead.

status walks drafting → ready → deployed → completed and never backwards.
thread_1 / thread_2 hold {subject, emails: [{subject, body}]} or NULL.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from outbound.database import Base


class EmailSequence(Base):
    __tablename__ = 'email_sequences'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    lead_id = Column(Text, ForeignKey('leads.id'), nullable=False, unique=True)
    tenant_id = Column(Text, ForeignKey('tenants.id'), nullable=False, index=True)
    status = Column(Text, nullable=False, default='drafting', index=True)
    thread_1 = Column(JSON(none_as_null=True), nullable=True)
    thread_2 = Column(JSON(none_as_null=True), nullable=True)
    send_reference = Column(Text, nullable=True)   # id handed back by the send system
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deployed_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'lead_id': self.lead_id,
            'tenant_id': self.tenant_id,
            'status': self.status,
            'thread_1': self.thread_1,
            'thread_2': self.thread_2,
            'send_reference': self.send_reference,
            'deployed_at': self.deployed_at.isoformat() if self.deployed_at else None,
        }
