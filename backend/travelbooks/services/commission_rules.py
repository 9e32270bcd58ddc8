"""Commission rate resolution.

Rules are read once into immutable ``CandidateRule`` values. Each carries a
``RuleScope`` describing who and what it applies to:

* agent-specific or general (``agent_id`` set or not)
* typed or untyped (``booking_type`` set or not)
* bounded or unbounded (either amount bound set or not)

A rule matches a booking when every predicate in ``MATCHERS`` accepts it.
Resolution order:

1. a quote-level override rate wins outright
2. the best matching agent-specific rule
3. the best matching general rule
4. the policy default for the booking type
5. the global policy default
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.core.money import ZERO, to_decimal
from travelbooks.models.commission_rule import CommissionRule
from travelbooks.models.shared import BookingType
from travelbooks.repositories.commission_rule_repository import CommissionRuleRepository
from travelbooks.services.policy import PolicyProvider, SettingsPolicyProvider

logger = logging.getLogger(__name__)


class RateSource(str, Enum):
    OVERRIDE = "override"
    AGENT_RULE = "agent_rule"
    GENERAL_RULE = "general_rule"
    TYPE_DEFAULT = "type_default"
    GLOBAL_DEFAULT = "global_default"


@dataclass(frozen=True)
class RuleScope:
    agent_id: str | None = None
    booking_type: BookingType | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None

    @property
    def agent_specific(self) -> bool:
        return self.agent_id is not None

    @property
    def typed(self) -> bool:
        return self.booking_type is not None

    @property
    def bounded(self) -> bool:
        return self.min_amount is not None or self.max_amount is not None

    def width(self) -> Decimal:
        """Size of the amount range; open ranges sort after every closed one."""
        if self.min_amount is None or self.max_amount is None:
            return Decimal("Infinity")
        return self.max_amount - self.min_amount


@dataclass(frozen=True)
class CandidateRule:
    rule_id: UUID
    scope: RuleScope
    rate: Decimal
    flat_fee: Decimal = ZERO

    @classmethod
    def from_model(cls, rule: CommissionRule) -> "CandidateRule":
        booking_type = BookingType(rule.booking_type) if rule.booking_type else None
        return cls(
            rule_id=rule.id,  # type: ignore[arg-type]
            scope=RuleScope(
                agent_id=rule.agent_id,  # type: ignore[arg-type]
                booking_type=booking_type,
                min_amount=(
                    to_decimal(rule.min_booking_amount)
                    if rule.min_booking_amount is not None
                    else None
                ),
                max_amount=(
                    to_decimal(rule.max_booking_amount)
                    if rule.max_booking_amount is not None
                    else None
                ),
            ),
            rate=to_decimal(rule.commission_rate),
            flat_fee=to_decimal(rule.flat_fee),
        )


@dataclass(frozen=True)
class BookingQuery:
    agent_id: str | None
    booking_amount: Decimal
    booking_type: BookingType | None


@dataclass(frozen=True)
class ResolvedRate:
    rate: Decimal
    flat_fee: Decimal
    source: RateSource
    rule_id: UUID | None = None


Matcher = Callable[[RuleScope, BookingQuery], bool]


def match_agent(scope: RuleScope, query: BookingQuery) -> bool:
    return scope.agent_id is None or scope.agent_id == query.agent_id


def match_type(scope: RuleScope, query: BookingQuery) -> bool:
    return scope.booking_type is None or scope.booking_type == query.booking_type


def match_amount(scope: RuleScope, query: BookingQuery) -> bool:
    if scope.min_amount is not None and query.booking_amount < scope.min_amount:
        return False
    if scope.max_amount is not None and query.booking_amount > scope.max_amount:
        return False
    return True


MATCHERS: tuple[Matcher, ...] = (match_agent, match_type, match_amount)


def parse_booking_type(value: str) -> BookingType | None:
    """Booking type named by ``value``; None for a type without rules or a default rate."""
    try:
        return BookingType(value)
    except ValueError:
        logger.debug("Unknown booking type %r, resolving as untyped", value)
        return None


def specificity_key(candidate: CandidateRule) -> tuple[Any, ...]:
    scope = candidate.scope
    return (
        not scope.agent_specific,
        not scope.bounded,
        not scope.typed,
        scope.width(),
        str(candidate.rule_id),
    )


class CommissionRuleResolver:
    """Resolves the commission rate for one booking from a fixed rule set."""

    def __init__(
        self,
        rules: Iterable[CommissionRule | CandidateRule],
        policy: PolicyProvider | None = None,
    ):
        self.policy = policy or SettingsPolicyProvider()
        candidates = []
        for rule in rules:
            if isinstance(rule, CandidateRule):
                candidates.append(rule)
            elif rule.is_active:
                candidates.append(CandidateRule.from_model(rule))
        self.candidates = tuple(sorted(candidates, key=specificity_key))

    @classmethod
    def from_session(
        cls, db: Session, policy: PolicyProvider | None = None
    ) -> "CommissionRuleResolver":
        return cls(CommissionRuleRepository(db).get_active(), policy)

    def matching(self, query: BookingQuery) -> list[CandidateRule]:
        return [c for c in self.candidates if all(m(c.scope, query) for m in MATCHERS)]

    def resolve(
        self,
        agent_id: str | None,
        booking_amount: Any,
        booking_type: BookingType | str | None,
        quote_override_rate: Any = None,
    ) -> ResolvedRate:
        if quote_override_rate is not None:
            return ResolvedRate(
                rate=to_decimal(quote_override_rate), flat_fee=ZERO, source=RateSource.OVERRIDE
            )

        if isinstance(booking_type, str):
            booking_type = parse_booking_type(booking_type)
        query = BookingQuery(
            agent_id=agent_id,
            booking_amount=to_decimal(booking_amount),
            booking_type=booking_type,
        )
        matches = self.matching(query)

        if agent_id is not None:
            agent_matches = [c for c in matches if c.scope.agent_specific]
            if agent_matches:
                return self._from_rule(agent_matches[0], RateSource.AGENT_RULE)

        general_matches = [c for c in matches if not c.scope.agent_specific]
        if general_matches:
            return self._from_rule(general_matches[0], RateSource.GENERAL_RULE)

        if booking_type is not None:
            type_rate = self.policy.type_commission_rate(booking_type)
            if type_rate is not None:
                return ResolvedRate(rate=type_rate, flat_fee=ZERO, source=RateSource.TYPE_DEFAULT)

        return ResolvedRate(
            rate=self.policy.default_commission_rate(),
            flat_fee=ZERO,
            source=RateSource.GLOBAL_DEFAULT,
        )

    @staticmethod
    def _from_rule(candidate: CandidateRule, source: RateSource) -> ResolvedRate:
        logger.debug("Commission rule %s matched (%s)", candidate.rule_id, source.value)
        return ResolvedRate(
            rate=candidate.rate,
            flat_fee=candidate.flat_fee,
            source=source,
            rule_id=candidate.rule_id,
        )
