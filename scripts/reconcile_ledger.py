#!/usr/bin/env python3
"""
Reconcile Income against IncomeLog for every purchase.

Usage:
    python scripts/reconcile_ledger.py
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_session
from services.stats_service import StatsService

import logging

logging.basicConfig(level=logging.WARNING)


def main():
    Config.initialize_from_env()
    session = get_session()

    try:
        stats = StatsService(session)
        dashboard = stats.getDashboard()
        mismatches = stats.findLedgerMismatches()

        print("\n" + "=" * 80)
        print("LEDGER RECONCILIATION")
        print("=" * 80)
        print(f"\nMembers:              {dashboard['totalMembers']}")
        print(f"BV generated:         {dashboard['totalBVGenerated']}")
        print(f"Income distributed:   {dashboard['totalIncomeDistributed']}")

        if not mismatches:
            print("\n✅ Income and IncomeLog agree for every purchase")
            return

        print(f"\n⚠️  {len(mismatches)} purchase(s) disagree:")
        for row in mismatches:
            print(
                f"  purchase {row['purchaseId']}: "
                f"Income={row['income']} IncomeLog={row['incomeLog']}"
            )
        sys.exit(1)

    finally:
        session.close()


if __name__ == "__main__":
    main()
