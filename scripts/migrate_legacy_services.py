#!/usr/bin/env python3
"""
One-time migration of legacy service records.

Folds legacy `bv` / `isActive` fields into `businessVolume` / `status`.
Input is a JSON array of service objects.

Usage:
    python scripts/migrate_legacy_services.py services.json
"""

import sys
import os
import json
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_session
from services.catalog_service import CatalogService

import logging

logging.basicConfig(level=logging.INFO)


def main():
    parser = argparse.ArgumentParser(description='Migrate legacy service records')
    parser.add_argument('path', help='JSON file with a list of services')
    args = parser.parse_args()

    with open(args.path, encoding='utf-8') as f:
        rows = json.load(f)

    if not isinstance(rows, list):
        print("❌ Expected a JSON array of services")
        sys.exit(1)

    Config.initialize_from_env()
    session = get_session()

    try:
        results = CatalogService(session).migrateLegacyServices(rows)
        print(
            f"added={results['added']} updated={results['updated']} "
            f"errors={results['errors']}"
        )
        for error_msg in results["error_messages"]:
            print(f"  - {error_msg}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
