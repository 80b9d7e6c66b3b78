# tests/conftest.py
"""
Pytest configuration and shared fixtures.

Every test gets a fresh SQLite database file, created through the same
engine factory the application uses (foreign keys, SAVEPOINT support).

Run:
    pytest tests -v
"""
import itertools
from decimal import Decimal

import pytest
from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from config import Config
from core.db import create_db_engine
from models import Base, Member, Purchase, Income, IncomeLog
from mlm_system.services.rule_service import RuleService
from services.catalog_service import CatalogService

# =============================================================================
# INITIALIZE CONFIG
# =============================================================================

Config.initialize_from_env()

# =============================================================================
# CONSTANTS
# =============================================================================

TEST_BV = Decimal("1000.00")
TEST_PRICE = Decimal("100.00")


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine(tmp_path):
    """Fresh database per test."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'bvengine_test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create database session for each test."""
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def config_override(monkeypatch):
    """Override Config values for a single test."""

    def _set(key, value):
        monkeypatch.setitem(Config._config, key, value)

    return _set


# =============================================================================
# MEMBER FIXTURES
# =============================================================================

@pytest.fixture
def make_member(session):
    """
    Factory for committed members.

    Usage:
        root = make_member()
        left = make_member(parent=root, position="left")
        legacy = make_member(parent=root)  # no position
    """
    counter = itertools.count(1)

    def _make(parent=None, position=None, name=None):
        n = next(counter)
        member = Member(
            name=name or f"member{n}",
            email=f"member{n}@example.com",
            referralCode=f"TEST{n:04d}",
            parentID=parent.memberID if parent else None,
            position=position
        )
        session.add(member)
        session.commit()
        return member

    return _make


@pytest.fixture
def make_chain(make_member):
    """
    Factory for a straight parent chain.

    make_chain(3) returns [root, level2, level1, buyer]: the buyer has
    3 ancestors, index -2 is its parent.
    """

    def _make(ancestors: int):
        root = make_member(name="root")
        chain = [root]
        for i in range(ancestors):
            chain.append(make_member(parent=chain[-1], position="left", name=f"node{i + 1}"))
        return chain

    return _make


# =============================================================================
# RULE / CATALOG FIXTURES
# =============================================================================

@pytest.fixture
def active_rule(session):
    """Active 10% rule with decay."""
    return RuleService(session).createRule(Decimal("0.10"), True)


@pytest.fixture
def service(session):
    """Active catalog service with BV 1000."""
    return CatalogService(session).createService("Starter Pack", TEST_PRICE, TEST_BV)


@pytest.fixture
def make_purchase(session, service):
    """Unfinalized purchase row, as created before distribution runs."""

    def _make(buyer):
        purchase = Purchase(
            memberID=buyer.memberID,
            serviceID=service.serviceID,
            serviceName=service.name,
            price=service.price,
            bv=None
        )
        session.add(purchase)
        session.flush()
        return purchase

    return _make


# =============================================================================
# HELPER FIXTURES
# =============================================================================

@pytest.fixture
def count_rows(session):
    """Row counter: count_rows(Model, **filters)."""

    def _count(model, **filters):
        return session.query(model).filter_by(**filters).count()

    return _count


@pytest.fixture
def ledger_sums(session):
    """
    Sums of Income.amount and IncomeLog.incomeAmount for a purchase.

    Returns dict with 'income' and 'log' functions.
    """

    def _income(purchase_id: int) -> Decimal:
        result = session.query(
            func.coalesce(func.sum(Income.amount), 0)
        ).filter(Income.purchaseID == purchase_id).scalar()
        return Decimal(str(result))

    def _log(purchase_id: int) -> Decimal:
        result = session.query(
            func.coalesce(func.sum(IncomeLog.incomeAmount), 0)
        ).filter(IncomeLog.purchaseID == purchase_id).scalar()
        return Decimal(str(result))

    return {'income': _income, 'log': _log}
