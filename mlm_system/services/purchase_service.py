# mlm_system/services/purchase_service.py
"""
Purchase service - creates a purchase and distributes its BV atomically.

Transaction flow:
1. Insert Purchase with bv = NULL (placeholder)
2. Distribute BV up the parent chain (Income + IncomeLog per level)
3. Finalize Purchase.bv / levelsPaid / creditsWritten
4. Commit - or roll back all of the above together
"""
from decimal import Decimal
from typing import Dict, List
from sqlalchemy.orm import Session
import logging

from models.member import Member
from models.purchase import Purchase
from models.service import Service, STATUS_ACTIVE
from mlm_system.errors import (
    MemberNotFound,
    MLMError,
    ServiceNotFound,
    TransactionAborted,
)
from mlm_system.services.distribution_service import DistributionService

logger = logging.getLogger(__name__)


class PurchaseService:
    """Service for purchase creation and listing."""

    def __init__(self, session: Session):
        self.session = session

    def createPurchase(self, memberId: int, serviceId: int) -> Dict:
        """
        Create a purchase and credit the buyer's ancestors in one transaction.

        Args:
            memberId: Buyer member ID (authenticated caller)
            serviceId: Purchased service ID

        Returns:
            Dict with purchaseId, bv, creditsWritten, levelsPaid

        Raises:
            MemberNotFound: Unknown buyer
            ServiceNotFound: Unknown or inactive service
            NoActiveRule: No compensation policy, purchase not completed
            TransactionAborted: Any write failed, nothing persisted
        """
        member = self.session.get(Member, memberId)
        if member is None:
            raise MemberNotFound(f"Member {memberId} not found")

        service = self.session.query(Service).filter_by(
            serviceID=serviceId,
            status=STATUS_ACTIVE
        ).first()
        if service is None:
            raise ServiceNotFound(f"Service {serviceId} not found or inactive")

        bvAmount = Decimal(str(service.businessVolume))

        try:
            purchase = Purchase(
                memberID=member.memberID,
                serviceID=service.serviceID,
                serviceName=service.name,
                price=service.price,
                bv=None
            )
            self.session.add(purchase)
            self.session.flush()

            distribution = DistributionService(self.session).distribute(
                purchaserId=member.memberID,
                bvAmount=bvAmount,
                purchaseId=purchase.purchaseID
            )

            purchase.bv = distribution.bv
            purchase.levelsPaid = distribution.levelsPaid
            purchase.creditsWritten = distribution.creditsWritten

            self.session.commit()

        except MLMError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.error(
                f"Purchase of service {serviceId} by member {memberId} aborted: {e}",
                exc_info=True
            )
            raise TransactionAborted(f"Purchase failed and was rolled back: {e}") from e

        logger.info(
            f"Purchase {purchase.purchaseID} completed: member={memberId}, "
            f"service={serviceId}, bv={distribution.bv}, levels={distribution.levelsPaid}"
        )

        return {
            "purchaseId": purchase.purchaseID,
            "bv": distribution.bv,
            "creditsWritten": distribution.creditsWritten,
            "levelsPaid": distribution.levelsPaid,
        }

    def listPurchases(self, memberId: int, limit: int = 50) -> List[Purchase]:
        """Member's purchases, newest first."""
        return self.session.query(Purchase).filter(
            Purchase.memberID == memberId
        ).order_by(
            Purchase.createdAt.desc(),
            Purchase.purchaseID.desc()
        ).limit(limit).all()
