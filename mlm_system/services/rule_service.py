# mlm_system/services/rule_service.py
"""
Distribution rule lifecycle: Draft -> Active -> Superseded.

Only one rule is active at a time. Activation deactivates the current
rule and activates the new one in the same transaction; the partial
unique index on isActive rejects a concurrent second activation.
"""
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from config import Config
from models.distribution_rule import DistributionRule
from models.income import Income
from mlm_system.config.compensation import (
    DEFAULT_BASE_PERCENTAGE,
    DEFAULT_DECAY_ENABLED,
    normalize_percentage,
)
from mlm_system.errors import (
    InvalidRule,
    NoActiveRule,
    RuleLocked,
    RuleNotFound,
    TransactionAborted,
)

logger = logging.getLogger(__name__)


class RuleService:
    """Service for managing distribution rules."""

    def __init__(self, session: Session):
        self.session = session

    # ============================================================
    # READ
    # ============================================================

    def getActiveRule(self) -> Optional[DistributionRule]:
        return self.session.query(DistributionRule).filter(
            DistributionRule.isActive.is_(True)
        ).order_by(DistributionRule.createdAt.desc()).first()

    def requireActiveRule(self) -> DistributionRule:
        """
        Get the active rule or fail.

        Raises:
            NoActiveRule: If no rule is active
        """
        rule = self.getActiveRule()
        if rule is None:
            logger.error("No active distribution rule configured")
            raise NoActiveRule("No active distribution rule")
        return rule

    def getRule(self, ruleId: int) -> DistributionRule:
        rule = self.session.get(DistributionRule, ruleId)
        if rule is None:
            raise RuleNotFound(f"Rule {ruleId} not found")
        return rule

    def listRules(self, limit: int = 10) -> List[DistributionRule]:
        """Most recent rules first."""
        return self.session.query(DistributionRule).order_by(
            DistributionRule.createdAt.desc(),
            DistributionRule.ruleID.desc()
        ).limit(limit).all()

    def isReferenced(self, ruleId: int) -> bool:
        """True once any income row was computed under this rule."""
        return self.session.query(Income.incomeID).filter(
            Income.ruleID == ruleId
        ).first() is not None

    # ============================================================
    # WRITE
    # ============================================================

    def createRule(
            self,
            basePercentage,
            decayEnabled: bool,
            isActive: bool = True
    ) -> DistributionRule:
        """
        Create a rule, optionally making it the active one.

        Args:
            basePercentage: Fraction (0.1) or percent (10)
            decayEnabled: Halve the percentage at each level
            isActive: Activate immediately (default)

        Returns:
            Persisted rule

        Raises:
            InvalidRule: basePercentage out of range
            TransactionAborted: Lost an activation race
        """
        percentage = self._validatePercentage(basePercentage)

        rule = DistributionRule(
            basePercentage=percentage,
            decayEnabled=bool(decayEnabled),
            isActive=False
        )

        try:
            self.session.add(rule)
            self.session.flush()
            if isActive:
                self._swapActive(rule)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.error(f"Rule creation aborted: {e}")
            raise TransactionAborted("Concurrent rule activation, retry") from e

        logger.info(
            f"Created rule {rule.ruleID}: base={percentage}, "
            f"decay={rule.decayEnabled}, active={rule.isActive}"
        )
        return rule

    def activateRule(self, ruleId: int) -> DistributionRule:
        """
        Make `ruleId` the single active rule.

        Raises:
            RuleNotFound: Unknown rule
            TransactionAborted: Lost an activation race
        """
        rule = self.getRule(ruleId)
        if rule.isActive:
            logger.debug(f"Rule {ruleId} already active")
            return rule

        try:
            self._swapActive(rule)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.error(f"Rule {ruleId} activation aborted: {e}")
            raise TransactionAborted("Concurrent rule activation, retry") from e

        logger.info(f"Rule {ruleId} activated")
        return rule

    def deactivateRule(self, ruleId: int) -> DistributionRule:
        rule = self.getRule(ruleId)
        if rule.isActive:
            rule.isActive = False
            self.session.commit()
            logger.warning(f"Rule {ruleId} deactivated - no active rule remains")
        return rule

    def updateRule(
            self,
            ruleId: int,
            basePercentage=None,
            decayEnabled: Optional[bool] = None,
            isActive: Optional[bool] = None
    ) -> DistributionRule:
        """
        Edit a rule that has not paid anything yet.

        Raises:
            InvalidRule: Nothing to update or bad percentage
            RuleLocked: Rule already referenced by income rows
            TransactionAborted: Lost an activation race, nothing saved
        """
        if basePercentage is None and decayEnabled is None and isActive is None:
            raise InvalidRule("No fields to update")

        rule = self.getRule(ruleId)

        if basePercentage is not None or decayEnabled is not None:
            if self.isReferenced(ruleId):
                raise RuleLocked(
                    f"Rule {ruleId} already paid income; create a new rule instead"
                )
            if basePercentage is not None:
                rule.basePercentage = self._validatePercentage(basePercentage)
            if decayEnabled is not None:
                rule.decayEnabled = bool(decayEnabled)

        # Field edits and activation change commit together
        try:
            if isActive is True and not rule.isActive:
                self._swapActive(rule)
            elif isActive is False and rule.isActive:
                rule.isActive = False
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.error(f"Rule {ruleId} update aborted: {e}")
            raise TransactionAborted("Concurrent rule activation, retry") from e

        logger.info(
            f"Rule {ruleId} updated: base={rule.basePercentage}, "
            f"decay={rule.decayEnabled}, active={rule.isActive}"
        )
        return rule

    def deleteRule(self, ruleId: int) -> None:
        """
        Raises:
            RuleLocked: Rule is active or referenced by income rows
        """
        rule = self.getRule(ruleId)
        if rule.isActive:
            raise RuleLocked(f"Rule {ruleId} is active")
        if self.isReferenced(ruleId):
            raise RuleLocked(f"Rule {ruleId} already paid income")

        self.session.delete(rule)
        self.session.commit()
        logger.info(f"Rule {ruleId} deleted")

    def ensureDefaultRule(self) -> Optional[DistributionRule]:
        """
        Create the configured default rule when the table is empty.

        Returns:
            The created rule, or None if rules already exist
        """
        if self.session.query(DistributionRule.ruleID).first() is not None:
            return None

        base = Config.get(Config.DEFAULT_BASE_PERCENTAGE, DEFAULT_BASE_PERCENTAGE)
        decay = Config.get(Config.DEFAULT_DECAY_ENABLED, DEFAULT_DECAY_ENABLED)
        logger.info(f"No distribution rules found, creating default ({base}, decay={decay})")
        return self.createRule(base, decay, isActive=True)

    @staticmethod
    def serialize(rule: DistributionRule) -> Dict:
        return {
            "ruleId": rule.ruleID,
            "basePercentage": Decimal(str(rule.basePercentage)),
            "decayEnabled": rule.decayEnabled,
            "isActive": rule.isActive,
            "createdAt": rule.createdAt,
            "updatedAt": rule.updatedAt,
        }

    # ============================================================
    # INTERNALS
    # ============================================================

    def _swapActive(self, rule: DistributionRule) -> None:
        """Deactivate every other rule, then activate `rule`. No commit."""
        self.session.execute(
            update(DistributionRule)
            .where(DistributionRule.isActive.is_(True))
            .where(DistributionRule.ruleID != rule.ruleID)
            .values(isActive=False)
            .execution_options(synchronize_session="fetch")
        )
        rule.isActive = True
        self.session.flush()

    @staticmethod
    def _validatePercentage(value) -> Decimal:
        try:
            return normalize_percentage(value)
        except (ValueError, ArithmeticError) as e:
            raise InvalidRule(str(e)) from e
