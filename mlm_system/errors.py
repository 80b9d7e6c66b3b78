"""
Exceptions raised by the compensation engine.
"""


class MLMError(Exception):
    """Base exception for compensation engine errors."""
    pass


# ═══════════════════════════════════════════════════════════════════════════
# PLACEMENT
# ═══════════════════════════════════════════════════════════════════════════

class PlacementExhausted(MLMError):
    """
    Placement search hit its safety bound or ran out of nodes.

    A well-formed binary tree always has a free slot, so this signals a
    corrupted tree. Never retried.
    """
    pass


class PlacementConflict(MLMError):
    """A concurrent placement or backfill took the slot first. Transient."""
    pass


# ═══════════════════════════════════════════════════════════════════════════
# DISTRIBUTION
# ═══════════════════════════════════════════════════════════════════════════

class NoActiveRule(MLMError):
    """No active distribution rule; purchases cannot complete."""
    pass


class TransactionAborted(MLMError):
    """
    Underlying write failed and the whole transaction was rolled back.
    No partial state persists, so the request is safe to resubmit.
    """
    pass


# ═══════════════════════════════════════════════════════════════════════════
# RULES
# ═══════════════════════════════════════════════════════════════════════════

class RuleNotFound(MLMError):
    pass


class RuleLocked(MLMError):
    """Rule is referenced by income rows (or active) and cannot change."""
    pass


class InvalidRule(MLMError):
    pass


# ═══════════════════════════════════════════════════════════════════════════
# MEMBERS / CATALOG
# ═══════════════════════════════════════════════════════════════════════════

class MemberNotFound(MLMError):
    pass


class MemberAlreadyExists(MLMError):
    pass


class InvalidReferralCode(MLMError):
    pass


class ReferralCodeExhausted(MLMError):
    """Could not generate a unique referral code within the attempt budget."""
    pass


class ServiceNotFound(MLMError):
    pass
