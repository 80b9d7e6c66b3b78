# mlm_system/services/distribution_service.py
"""
BV distribution service - credits the purchaser's ancestors level by level.

Level 1 is the immediate parent. With decay each level receives half of
the previous level's percentage, without decay every level receives the
base percentage. The walk has no depth limit: it ends at a root or at the
first level whose amount rounds to zero in the currency's minimal unit.

Runs on the caller's session and never commits. Any failure propagates,
so the caller's transaction rolls back the purchase and every credit
written so far together.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from models.distribution_rule import DistributionRule
from models.income import Income, IncomeLog
from models.member import Member
from mlm_system.config.compensation import (
    credit_amount,
    get_minor_unit,
    percentage_for_level,
    rounds_to_zero,
)
from mlm_system.errors import MemberNotFound
from mlm_system.services.rule_service import RuleService
from mlm_system.utils.chain_walker import ChainWalker

logger = logging.getLogger(__name__)


@dataclass
class DistributionResult:
    bv: Decimal
    creditsWritten: int
    levelsPaid: int
    totalDistributed: Decimal = Decimal("0")


class DistributionService:
    """Service for distributing Business Volume up the binary tree."""

    def __init__(self, session: Session):
        self.session = session
        self.rules = RuleService(session)
        self.walker = ChainWalker(session)

    def distribute(
            self,
            purchaserId: int,
            bvAmount: Decimal,
            purchaseId: int
    ) -> DistributionResult:
        """
        Compute and record income for every paid ancestor of the purchaser.

        Args:
            purchaserId: Buyer member ID
            bvAmount: Business Volume of the purchase
            purchaseId: Purchase the credits belong to

        Returns:
            DistributionResult(bv, creditsWritten, levelsPaid)

        Raises:
            NoActiveRule: No compensation policy is active
            MemberNotFound: Purchaser does not exist
        """
        rule = self.rules.requireActiveRule()

        purchaser = self.walker.get_member(purchaserId)
        if purchaser is None:
            raise MemberNotFound(f"Purchaser {purchaserId} not found")

        bv = Decimal(str(bvAmount))
        basePercentage = Decimal(str(rule.basePercentage))
        minorUnit = get_minor_unit()

        result = DistributionResult(bv=bv, creditsWritten=0, levelsPaid=0)

        def credit_ancestor(ancestor: Member, level: int) -> bool:
            """Write one level; stop once the amount rounds to zero."""
            percentage = percentage_for_level(basePercentage, level, rule.decayEnabled)
            amount = credit_amount(bv, percentage)

            if rounds_to_zero(amount, minorUnit):
                logger.debug(
                    f"Purchase {purchaseId}: level {level} amount {amount} rounds to zero, "
                    f"stopping walk"
                )
                return False

            self._writeCredit(
                rule=rule,
                toMemberId=ancestor.memberID,
                fromMemberId=purchaserId,
                purchaseId=purchaseId,
                level=level,
                percentage=percentage,
                amount=amount
            )
            result.creditsWritten += 1
            result.levelsPaid += 1
            result.totalDistributed += amount
            return True

        self.walker.walk_upline(purchaser, credit_ancestor)
        self.session.flush()

        logger.info(
            f"Distributed purchase {purchaseId}: bv={bv}, rule={rule.ruleID}, "
            f"levels={result.levelsPaid}, total={result.totalDistributed}"
        )
        return result

    def previewSchedule(
            self,
            bvAmount: Decimal,
            levels: int,
            rule: Optional[DistributionRule] = None
    ) -> List[Dict]:
        """
        Per-level percentages and amounts under a rule, without writing.

        Args:
            bvAmount: Business Volume
            levels: Number of levels to compute
            rule: Rule to use, the active one by default

        Returns:
            List of {"level", "percentage", "amount"} dicts, zero amounts included
        """
        if rule is None:
            rule = self.rules.requireActiveRule()

        bv = Decimal(str(bvAmount))
        base = Decimal(str(rule.basePercentage))

        schedule = []
        for level in range(1, levels + 1):
            percentage = percentage_for_level(base, level, rule.decayEnabled)
            schedule.append({
                "level": level,
                "percentage": percentage,
                "amount": credit_amount(bv, percentage),
            })
        return schedule

    def _writeCredit(
            self,
            rule: DistributionRule,
            toMemberId: int,
            fromMemberId: int,
            purchaseId: int,
            level: int,
            percentage: Decimal,
            amount: Decimal
    ) -> Income:
        """Append one Income row and its IncomeLog mirror."""
        income = Income(
            toMemberID=toMemberId,
            fromMemberID=fromMemberId,
            purchaseID=purchaseId,
            ruleID=rule.ruleID,
            level=level,
            percentage=percentage,
            amount=amount
        )
        self.session.add(income)
        self.session.flush()

        self.session.add(IncomeLog(
            incomeID=income.incomeID,
            toMemberID=toMemberId,
            fromMemberID=fromMemberId,
            purchaseID=purchaseId,
            level=level,
            incomeAmount=amount
        ))

        logger.debug(
            f"Income: purchase={purchaseId} level={level} to={toMemberId} "
            f"{float(percentage * 100):.4f}% = {amount}"
        )
        return income
