"""
Tenant (brand) + membership models — read by the account and settings routes.
"""
import uuid

from sqlalchemy import Column, Integer, Text, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from outbound.database import Base


class Tenant(Base):
    __tablename__ = 'tenants'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    settings = Column(JSON, default=dict)   # onboarding_completed, targeting prefs, ...
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UserTenant(Base):
    __tablename__ = 'user_tenants'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    tenant_id = Column(Text, ForeignKey('tenants.id'), nullable=False)
    role = Column(Text, nullable=False, default='member')
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('user_id', 'tenant_id', name='uq_user_tenant'),
    )
