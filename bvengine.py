# bvengine/bvengine.py
"""
BV compensation engine - initialization entry point.

Loads configuration, creates tables, makes sure a distribution rule
exists and optionally bootstraps the first admin.

Usage:
    python bvengine.py
    python bvengine.py --admin-email admin@example.com --admin-name Admin
"""
import argparse
import logging
import sys

from config import Config, ConfigurationError
from core.db import setup_database, get_db_session_ctx
from mlm_system.errors import MemberAlreadyExists
from mlm_system.services.registration_service import RegistrationService
from mlm_system.services.rule_service import RuleService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('bvengine.log')
    ]
)

logger = logging.getLogger(__name__)


def initialize(admin_email=None, admin_name=None) -> None:
    """
    Initialize configuration, database and compensation policy.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    logger.info("=" * 60)
    logger.info("BV ENGINE INITIALIZATION")
    logger.info("=" * 60)

    # ═══════════════════════════════════════════════════════════════════════
    # STEP 1: Load configuration from .env
    # ═══════════════════════════════════════════════════════════════════════
    Config.initialize_from_env()
    Config.validate_critical_keys()
    logging.getLogger().setLevel(Config.get(Config.LOG_LEVEL, "INFO"))
    logger.info("✓ Configuration loaded")

    # ═══════════════════════════════════════════════════════════════════════
    # STEP 2: Setup database
    # ═══════════════════════════════════════════════════════════════════════
    setup_database()
    logger.info("✓ Database ready")

    # ═══════════════════════════════════════════════════════════════════════
    # STEP 3: Default distribution rule
    # ═══════════════════════════════════════════════════════════════════════
    with get_db_session_ctx() as session:
        rule = RuleService(session).ensureDefaultRule()
        if rule:
            logger.info(f"✓ Default rule {rule.ruleID} created")
        else:
            logger.info("✓ Distribution rules already configured")

    # ═══════════════════════════════════════════════════════════════════════
    # STEP 4: First admin (optional)
    # ═══════════════════════════════════════════════════════════════════════
    if admin_email:
        with get_db_session_ctx() as session:
            try:
                admin = RegistrationService(session).bootstrapAdmin(admin_name, admin_email)
                logger.info(f"✓ Admin {admin.email} created, referral code {admin.referralCode}")
            except MemberAlreadyExists as e:
                logger.warning(f"Admin bootstrap skipped: {e}")

    logger.info("=" * 60)
    logger.info("✅ INITIALIZATION COMPLETE")
    logger.info("=" * 60)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Initialize the BV compensation engine')
    parser.add_argument('--admin-email', help='Create the first admin with this email')
    parser.add_argument('--admin-name', default='Admin', help='Display name for the first admin')
    args = parser.parse_args()

    try:
        initialize(args.admin_email, args.admin_name)
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
