"""CommissionRule model - configured commission policy per agent/type/amount range."""

from sqlalchemy import Boolean, Column, DateTime, Numeric, String, func

from travelbooks.core.database import Base
from travelbooks.models.shared import UUIDType, generate_uuid


class CommissionRule(Base):
    """A commission rule.

    ``agent_id`` unset means the rule applies to every agent, ``booking_type``
    unset means every booking type, and either amount bound may be open.
    """

    __tablename__ = "commission_rules"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    agent_id = Column(String(100), index=True, nullable=True)
    booking_type = Column(String(20), nullable=True)
    min_booking_amount = Column(Numeric(12, 4), nullable=True)
    max_booking_amount = Column(Numeric(12, 4), nullable=True)
    commission_rate = Column(Numeric(7, 4), nullable=False)
    flat_fee = Column(Numeric(12, 4), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
