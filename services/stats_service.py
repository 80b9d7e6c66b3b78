# bvengine/services/stats_service.py
"""
Reporting service - dashboard totals and per-member ledgers.

Totals of distributed income come from IncomeLog so reporting never
scans the Income ledger.
"""
import logging
from decimal import Decimal
from typing import Dict, List
from sqlalchemy import func
from sqlalchemy.orm import Session

from models.member import Member
from models.purchase import Purchase
from models.service import Service, STATUS_ACTIVE
from models.income import Income, IncomeLog

logger = logging.getLogger(__name__)


def _as_decimal(value) -> Decimal:
    """SUM() returns NULL on empty sets and float on SQLite."""
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


class StatsService:
    """
    Service for global and member-specific statistics.

    Usage:
        stats = StatsService(session)
        dashboard = stats.getDashboard()
    """

    def __init__(self, session: Session):
        self.session = session

    # ═══════════════════════════════════════════════════════════════════════
    # GLOBAL STATISTICS
    # ═══════════════════════════════════════════════════════════════════════

    def getDashboard(self) -> Dict:
        """
        Admin dashboard figures.

        Returns:
            Dict with totalMembers, totalBVGenerated,
            totalIncomeDistributed, activeServices
        """
        totalMembers = self.session.query(func.count(Member.memberID)).scalar() or 0

        activeServices = self.session.query(func.count(Service.serviceID)).filter(
            Service.status == STATUS_ACTIVE
        ).scalar() or 0

        totalBV = self.session.query(func.sum(Purchase.bv)).filter(
            Purchase.bv.isnot(None)
        ).scalar()

        totalIncome = self.session.query(func.sum(IncomeLog.incomeAmount)).scalar()

        dashboard = {
            "totalMembers": totalMembers,
            "totalBVGenerated": _as_decimal(totalBV),
            "totalIncomeDistributed": _as_decimal(totalIncome),
            "activeServices": activeServices,
        }
        logger.debug(f"Dashboard: {dashboard}")
        return dashboard

    # ═══════════════════════════════════════════════════════════════════════
    # MEMBER-SPECIFIC STATISTICS
    # ═══════════════════════════════════════════════════════════════════════

    def listIncome(self, memberId: int, limit: int = 100) -> List[Income]:
        """Income credited to a member, newest first."""
        return self.session.query(Income).filter(
            Income.toMemberID == memberId
        ).order_by(
            Income.createdAt.desc(),
            Income.incomeID.desc()
        ).limit(limit).all()

    def getMemberIncomeTotal(self, memberId: int) -> Decimal:
        total = self.session.query(func.sum(IncomeLog.incomeAmount)).filter(
            IncomeLog.toMemberID == memberId
        ).scalar()
        return _as_decimal(total)

    # ═══════════════════════════════════════════════════════════════════════
    # RECONCILIATION
    # ═══════════════════════════════════════════════════════════════════════

    def getPurchaseIncomeTotal(self, purchaseId: int) -> Decimal:
        """Sum of the purchase's Income rows."""
        total = self.session.query(func.sum(Income.amount)).filter(
            Income.purchaseID == purchaseId
        ).scalar()
        return _as_decimal(total)

    def getPurchaseIncomeLogTotal(self, purchaseId: int) -> Decimal:
        """Sum of the purchase's IncomeLog mirror rows."""
        total = self.session.query(func.sum(IncomeLog.incomeAmount)).filter(
            IncomeLog.purchaseID == purchaseId
        ).scalar()
        return _as_decimal(total)

    def findLedgerMismatches(self) -> List[Dict]:
        """
        Purchases whose Income and IncomeLog totals disagree.

        Returns:
            List of {"purchaseId", "income", "incomeLog"} dicts
        """
        incomeTotals = dict(
            self.session.query(Income.purchaseID, func.sum(Income.amount))
            .group_by(Income.purchaseID).all()
        )
        logTotals = dict(
            self.session.query(IncomeLog.purchaseID, func.sum(IncomeLog.incomeAmount))
            .group_by(IncomeLog.purchaseID).all()
        )

        mismatches = []
        for purchaseId in sorted(set(incomeTotals) | set(logTotals)):
            income = _as_decimal(incomeTotals.get(purchaseId))
            incomeLog = _as_decimal(logTotals.get(purchaseId))
            if income != incomeLog:
                mismatches.append({
                    "purchaseId": purchaseId,
                    "income": income,
                    "incomeLog": incomeLog,
                })

        if mismatches:
            logger.warning(f"Found {len(mismatches)} purchases with ledger mismatches")
        return mismatches
