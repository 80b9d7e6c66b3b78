#!/usr/bin/env python3
"""
Check income credits for a purchase.

Displays the per-level breakdown from the ledger and compares it with
the schedule of the rule that paid it.

Usage:
    python scripts/check_incomes.py --purchase-id 123
    python scripts/check_incomes.py --last  # Check last purchase
"""

import sys
import os
import argparse
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_session
from models.member import Member
from models.purchase import Purchase
from models.income import Income
from models.distribution_rule import DistributionRule
from mlm_system.services.distribution_service import DistributionService
from services.stats_service import StatsService

import logging

logging.basicConfig(level=logging.WARNING)


def main():
    """Check incomes."""
    parser = argparse.ArgumentParser(description='Check income credits for purchase')
    parser.add_argument('--purchase-id', type=int, help='Purchase ID to check')
    parser.add_argument('--last', action='store_true', help='Check last purchase')
    args = parser.parse_args()

    Config.initialize_from_env()
    session = get_session()

    try:
        # Find purchase
        if args.last:
            purchase = session.query(Purchase).order_by(
                Purchase.createdAt.desc(),
                Purchase.purchaseID.desc()
            ).first()
        elif args.purchase_id:
            purchase = session.get(Purchase, args.purchase_id)
        else:
            print("❌ Specify --purchase-id or --last")
            return

        if not purchase:
            print("❌ Purchase not found")
            return

        buyer = session.get(Member, purchase.memberID)

        print("\n" + "=" * 80)
        print("INCOME CHECK")
        print("=" * 80)
        print(f"\nPurchase ID: {purchase.purchaseID}")
        print(f"Buyer: {buyer.name} (ID: {buyer.memberID})")
        print(f"Service: {purchase.serviceName} (${purchase.price})")
        print(f"BV: {purchase.bv}")
        print(f"Levels paid: {purchase.levelsPaid}")
        print(f"Date: {purchase.createdAt}")

        incomes = session.query(Income).filter_by(
            purchaseID=purchase.purchaseID
        ).order_by(Income.level).all()

        if not incomes:
            print("\n❌ No income found for this purchase")
            return

        print(f"\n{len(incomes)} credit(s) found:")
        print("-" * 80)

        total_paid = Decimal("0")
        for income in incomes:
            member = session.get(Member, income.toMemberID)
            print(
                f"Level {income.level:3}: "
                f"{member.name:20} (ID: {member.memberID:6}) "
                f"{float(income.percentage) * 100:9.5f}% = {Decimal(str(income.amount)):>14}"
            )
            total_paid += Decimal(str(income.amount))

        print("-" * 80)

        stats = StatsService(session)
        log_total = stats.getPurchaseIncomeLogTotal(purchase.purchaseID)

        print(f"\nTotal paid (Income):     {total_paid}")
        print(f"Total paid (IncomeLog):  {log_total}")

        # Compare with the schedule of the rule that paid it
        rule = session.get(DistributionRule, incomes[0].ruleID) if incomes[0].ruleID else None
        if rule is not None and purchase.bv is not None:
            schedule = DistributionService(session).previewSchedule(
                purchase.bv, len(incomes), rule=rule
            )
            expected = sum((level["amount"] for level in schedule), Decimal("0"))
            print(f"Expected (rule {rule.ruleID}):   {expected}")
            if abs(expected - total_paid) < Decimal("0.01") and log_total == total_paid:
                print("\n✅ INCOME DISTRIBUTION CORRECT!")
            else:
                print("\n⚠️  WARNING: Income sum mismatch!")

        print("\n" + "=" * 80 + "\n")

    finally:
        session.close()


if __name__ == "__main__":
    main()
