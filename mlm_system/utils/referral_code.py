"""
Referral code generation.
"""
import secrets
import logging
from sqlalchemy.orm import Session

from config import Config
from models.member import Member
from mlm_system.errors import ReferralCodeExhausted

logger = logging.getLogger(__name__)

# No 0/O, 1/I/L
ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
MAX_ATTEMPTS = 10


def random_code(length: int) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def generate_unique_referral_code(session: Session, length: int = None) -> str:
    """
    Generate a referral code not used by any member yet.

    The unique index on Member.referralCode still guards the insert;
    this only keeps collisions rare.

    Raises:
        ReferralCodeExhausted: If every attempt collided
    """
    if length is None:
        length = Config.get(Config.REFERRAL_CODE_LENGTH, 8)

    for attempt in range(MAX_ATTEMPTS):
        code = random_code(length)
        exists = session.query(Member.memberID).filter_by(referralCode=code).first()
        if not exists:
            return code
        logger.debug(f"Referral code collision on attempt {attempt + 1}")

    raise ReferralCodeExhausted("Unable to generate unique referral code")
