from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.core.errors import ValidationError
from travelbooks.core.money import to_decimal
from travelbooks.models.commission_rule import CommissionRule
from travelbooks.schemas.commission import CommissionRuleCreate, CommissionRuleUpdate


class CommissionRuleRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        agent_id: str | None = None,
        active_only: bool = False,
    ) -> list[CommissionRule]:
        query = self.db.query(CommissionRule)
        if agent_id:
            query = query.filter(CommissionRule.agent_id == agent_id)
        if active_only:
            query = query.filter(CommissionRule.is_active.is_(True))
        return query.order_by(CommissionRule.created_at.asc()).offset(skip).limit(limit).all()

    def get_active(self) -> list[CommissionRule]:
        return self.db.query(CommissionRule).filter(CommissionRule.is_active.is_(True)).all()

    def get_by_id(self, rule_id: UUID) -> CommissionRule | None:
        return self.db.query(CommissionRule).filter(CommissionRule.id == rule_id).first()

    def create(self, data: CommissionRuleCreate) -> CommissionRule:
        rule = CommissionRule(
            agent_id=data.agent_id,
            booking_type=data.booking_type.value if data.booking_type else None,
            min_booking_amount=data.min_booking_amount,
            max_booking_amount=data.max_booking_amount,
            commission_rate=data.commission_rate,
            flat_fee=data.flat_fee,
            is_active=data.is_active,
        )
        self.db.add(rule)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def update(self, rule_id: UUID, data: CommissionRuleUpdate) -> CommissionRule | None:
        rule = self.get_by_id(rule_id)
        if not rule:
            return None

        update_data = data.model_dump(exclude_unset=True)
        min_amount = update_data.get("min_booking_amount", rule.min_booking_amount)
        max_amount = update_data.get("max_booking_amount", rule.max_booking_amount)
        if (
            min_amount is not None
            and max_amount is not None
            and to_decimal(min_amount) > to_decimal(max_amount)
        ):
            raise ValidationError("min_booking_amount must not exceed max_booking_amount")

        for key, value in update_data.items():
            setattr(rule, key, value)

        self.db.commit()
        self.db.refresh(rule)
        return rule

    def delete(self, rule_id: UUID) -> bool:
        rule = self.get_by_id(rule_id)
        if not rule:
            return False
        self.db.delete(rule)
        self.db.commit()
        return True
