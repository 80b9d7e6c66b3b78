# tests/test_purchase_service.py
"""
Tests for purchase creation.

Purchase row, BV distribution and BV finalization commit together or
not at all.

Run:
    pytest tests/test_purchase_service.py -v
"""
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from models import Income, IncomeLog, Purchase
from mlm_system.errors import (
    MemberNotFound,
    NoActiveRule,
    ServiceNotFound,
    TransactionAborted,
)
from mlm_system.services.distribution_service import DistributionService
from mlm_system.services.purchase_service import PurchaseService
from services.catalog_service import CatalogService


# =============================================================================
# TEST CLASS: successful purchase
# =============================================================================

class TestCreatePurchase:

    def test_purchase_is_finalized_with_counts(
            self, session, active_rule, service, make_chain
    ):
        chain = make_chain(6)
        buyer = chain[-1]

        result = PurchaseService(session).createPurchase(buyer.memberID, service.serviceID)

        assert result["bv"] == Decimal("1000")
        assert result["levelsPaid"] == 6
        assert result["creditsWritten"] == 6

        purchase = session.get(Purchase, result["purchaseId"])
        assert purchase.isFinalized
        assert Decimal(str(purchase.bv)) == Decimal("1000")
        assert purchase.levelsPaid == 6
        assert purchase.creditsWritten == 6
        assert purchase.serviceName == service.name

    def test_log_total_equals_income_total(
            self, session, active_rule, service, make_chain, ledger_sums
    ):
        chain = make_chain(6)

        result = PurchaseService(session).createPurchase(chain[-1].memberID, service.serviceID)

        income_total = ledger_sums['income'](result["purchaseId"])
        assert income_total == Decimal("196.875")
        assert ledger_sums['log'](result["purchaseId"]) == income_total

    def test_purchases_listed_newest_first(self, session, active_rule, service, make_chain):
        chain = make_chain(1)
        purchases = PurchaseService(session)

        first = purchases.createPurchase(chain[-1].memberID, service.serviceID)
        second = purchases.createPurchase(chain[-1].memberID, service.serviceID)

        listed = purchases.listPurchases(chain[-1].memberID)
        assert [p.purchaseID for p in listed] == [second["purchaseId"], first["purchaseId"]]

    def test_bv_snapshot_survives_catalog_change(
            self, session, active_rule, service, make_chain
    ):
        chain = make_chain(1)
        result = PurchaseService(session).createPurchase(chain[-1].memberID, service.serviceID)

        CatalogService(session).updateService(service.serviceID, businessVolume="5")

        purchase = session.get(Purchase, result["purchaseId"])
        assert Decimal(str(purchase.bv)) == Decimal("1000")


# =============================================================================
# TEST CLASS: atomicity
# =============================================================================

class TestPurchaseAtomicity:
    """A failure anywhere leaves no purchase and no credits."""

    def test_failure_at_third_ancestor_rolls_back_everything(
            self, session, active_rule, service, make_chain, count_rows, monkeypatch
    ):
        chain = make_chain(5)
        buyer = chain[-1]

        original = DistributionService._writeCredit
        calls = {"n": 0}

        def fail_on_third(self, **kwargs):
            calls["n"] += 1
            if calls["n"] == 3:
                raise OperationalError("INSERT INTO incomes", {}, Exception("forced failure"))
            return original(self, **kwargs)

        monkeypatch.setattr(DistributionService, "_writeCredit", fail_on_third)

        with pytest.raises(TransactionAborted):
            PurchaseService(session).createPurchase(buyer.memberID, service.serviceID)

        assert calls["n"] == 3
        assert count_rows(Income) == 0
        assert count_rows(IncomeLog) == 0
        assert count_rows(Purchase) == 0

    def test_retry_after_failure_succeeds(
            self, session, active_rule, service, make_chain, count_rows, monkeypatch
    ):
        chain = make_chain(3)

        def broken(self, **kwargs):
            raise OperationalError("INSERT INTO incomes", {}, Exception("forced failure"))

        with monkeypatch.context() as patch:
            patch.setattr(DistributionService, "_writeCredit", broken)
            with pytest.raises(TransactionAborted):
                PurchaseService(session).createPurchase(chain[-1].memberID, service.serviceID)

        result = PurchaseService(session).createPurchase(chain[-1].memberID, service.serviceID)

        assert result["levelsPaid"] == 3
        assert count_rows(Purchase) == 1
        assert count_rows(Income) == 3

    def test_no_active_rule_blocks_purchase(self, session, service, make_chain, count_rows):
        chain = make_chain(2)

        with pytest.raises(NoActiveRule):
            PurchaseService(session).createPurchase(chain[-1].memberID, service.serviceID)

        assert count_rows(Purchase) == 0
        assert count_rows(Income) == 0


# =============================================================================
# TEST CLASS: validation
# =============================================================================

class TestPurchaseValidation:

    def test_unknown_member(self, session, active_rule, service):
        with pytest.raises(MemberNotFound):
            PurchaseService(session).createPurchase(999999, service.serviceID)

    def test_unknown_service(self, session, active_rule, make_member):
        buyer = make_member()

        with pytest.raises(ServiceNotFound):
            PurchaseService(session).createPurchase(buyer.memberID, 999999)

    def test_inactive_service(self, session, active_rule, service, make_member):
        buyer = make_member()
        CatalogService(session).updateService(service.serviceID, status="inactive")

        with pytest.raises(ServiceNotFound):
            PurchaseService(session).createPurchase(buyer.memberID, service.serviceID)
