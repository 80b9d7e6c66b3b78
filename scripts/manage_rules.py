#!/usr/bin/env python3
"""
Manage distribution rules.

Usage:
    python scripts/manage_rules.py list
    python scripts/manage_rules.py create --base 10 --decay
    python scripts/manage_rules.py create --base 0.05 --no-decay --inactive
    python scripts/manage_rules.py activate 3
    python scripts/manage_rules.py preview --bv 1000 --levels 8
"""

import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_session
from mlm_system.errors import MLMError
from mlm_system.services.distribution_service import DistributionService
from mlm_system.services.rule_service import RuleService

import logging

logging.basicConfig(level=logging.WARNING)


def print_rule(rule_data):
    marker = "✅" if rule_data["isActive"] else "  "
    print(
        f"{marker} #{rule_data['ruleId']:4} "
        f"base={float(rule_data['basePercentage']) * 100:6.2f}% "
        f"decay={'on ' if rule_data['decayEnabled'] else 'off'} "
        f"created={rule_data['createdAt']}"
    )


def main():
    parser = argparse.ArgumentParser(description='Manage distribution rules')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('list', help='List recent rules')

    create = sub.add_parser('create', help='Create a rule')
    create.add_argument('--base', required=True, help='Base percentage (0.1 or 10)')
    create.add_argument('--decay', dest='decay', action='store_true', default=True)
    create.add_argument('--no-decay', dest='decay', action='store_false')
    create.add_argument('--inactive', action='store_true', help='Do not activate')

    activate = sub.add_parser('activate', help='Activate a rule')
    activate.add_argument('rule_id', type=int)

    preview = sub.add_parser('preview', help='Show the active rule schedule')
    preview.add_argument('--bv', required=True)
    preview.add_argument('--levels', type=int, default=10)

    args = parser.parse_args()

    Config.initialize_from_env()
    session = get_session()

    try:
        rules = RuleService(session)

        if args.command == 'list':
            for rule in rules.listRules(limit=20):
                print_rule(RuleService.serialize(rule))

        elif args.command == 'create':
            rule = rules.createRule(args.base, args.decay, isActive=not args.inactive)
            print_rule(RuleService.serialize(rule))

        elif args.command == 'activate':
            rule = rules.activateRule(args.rule_id)
            print_rule(RuleService.serialize(rule))

        elif args.command == 'preview':
            schedule = DistributionService(session).previewSchedule(args.bv, args.levels)
            for level in schedule:
                print(
                    f"Level {level['level']:3}: "
                    f"{float(level['percentage']) * 100:10.6f}% = {level['amount']}"
                )

    except MLMError as e:
        print(f"❌ {e}")
        sys.exit(1)

    finally:
        session.close()


if __name__ == "__main__":
    main()
