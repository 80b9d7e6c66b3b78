# mlm_system/services/registration_service.py
"""
Registration service - creates members and places them in the binary tree.

With a referral code the new member goes into the sponsor's subtree
(shallowest, leftmost free slot). Without one the member becomes a root.
Credentials and notifications are handled outside this service.
"""
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from models.member import Member, ROLE_ADMIN, ROLE_USER
from mlm_system.errors import (
    InvalidReferralCode,
    MemberAlreadyExists,
    MLMError,
    TransactionAborted,
)
from mlm_system.services.placement_service import PlacementService
from mlm_system.utils.referral_code import generate_unique_referral_code

logger = logging.getLogger(__name__)


class RegistrationService:
    """Service for member registration."""

    def __init__(self, session: Session):
        self.session = session
        self.placement = PlacementService(session)

    def registerMember(
            self,
            name: str,
            email: str,
            referralCode: Optional[str] = None,
            role: str = ROLE_USER
    ) -> Member:
        """
        Register a member, placing them under the referral code's owner.

        Args:
            name: Display name
            email: Unique email (case-insensitive)
            referralCode: Sponsor's referral code, None for a root member
            role: admin or user

        Returns:
            Committed Member

        Raises:
            MemberAlreadyExists: Email already registered
            InvalidReferralCode: No member owns the referral code
            PlacementConflict / PlacementExhausted: See PlacementService
            TransactionAborted: Insert failed for another reason
        """
        email = self._normalizeEmail(email)
        referralCode = referralCode.strip() if referralCode else None

        if self._emailTaken(email):
            raise MemberAlreadyExists(f"Email already in use: {email}")

        try:
            newCode = generate_unique_referral_code(self.session)

            if referralCode:
                sponsor = self.session.query(Member).filter_by(
                    referralCode=referralCode
                ).first()
                if sponsor is None:
                    raise InvalidReferralCode(f"Invalid referral code: {referralCode}")

                def build(parentId: int, position: str) -> Member:
                    return Member(
                        name=name,
                        email=email,
                        role=role,
                        referralCode=newCode,
                        parentID=parentId,
                        position=position
                    )

                member = self.placement.placeMember(sponsor.memberID, build)
            else:
                member = Member(
                    name=name,
                    email=email,
                    role=role,
                    referralCode=newCode,
                    parentID=None,
                    position=None
                )
                self.session.add(member)
                self.session.flush()

            self.session.commit()

        except MLMError:
            self.session.rollback()
            raise
        except IntegrityError as e:
            self.session.rollback()
            if self._emailTaken(email):
                raise MemberAlreadyExists(f"Email already in use: {email}") from e
            logger.error(f"Registration of {email} aborted: {e}")
            raise TransactionAborted(f"Registration failed: {e}") from e
        except Exception as e:
            self.session.rollback()
            logger.error(f"Registration of {email} aborted: {e}", exc_info=True)
            raise TransactionAborted(f"Registration failed and was rolled back: {e}") from e

        logger.info(
            f"Registered member {member.memberID} ({email}), "
            f"parent={member.parentID}, position={member.position}"
        )
        return member

    def bootstrapAdmin(self, name: str, email: str) -> Member:
        """
        Create the first admin as a root member.

        Raises:
            MemberAlreadyExists: An admin already exists or email taken
        """
        existingAdmin = self.session.query(Member.memberID).filter_by(role=ROLE_ADMIN).first()
        if existingAdmin:
            raise MemberAlreadyExists("Admin already exists")

        return self.registerMember(name or "Admin", email, referralCode=None, role=ROLE_ADMIN)

    def getByReferralCode(self, referralCode: str) -> Optional[Member]:
        return self.session.query(Member).filter_by(referralCode=referralCode).first()

    def _emailTaken(self, email: str) -> bool:
        return self.session.query(Member.memberID).filter_by(email=email).first() is not None

    @staticmethod
    def _normalizeEmail(email: str) -> str:
        return email.strip().lower()
