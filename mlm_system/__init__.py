"""
MLM System - binary placement and BV distribution.
"""

# Services
from mlm_system.services.placement_service import PlacementService, PlacementResult
from mlm_system.services.rule_service import RuleService
from mlm_system.services.distribution_service import DistributionService, DistributionResult
from mlm_system.services.registration_service import RegistrationService
from mlm_system.services.purchase_service import PurchaseService

# Compensation schedule
from mlm_system.config.compensation import percentage_for_level

# Errors
from mlm_system.errors import (
    MLMError,
    PlacementExhausted,
    PlacementConflict,
    NoActiveRule,
    TransactionAborted,
)

__all__ = [
    # Services
    'PlacementService',
    'PlacementResult',
    'RuleService',
    'DistributionService',
    'DistributionResult',
    'RegistrationService',
    'PurchaseService',

    # Config
    'percentage_for_level',

    # Errors
    'MLMError',
    'PlacementExhausted',
    'PlacementConflict',
    'NoActiveRule',
    'TransactionAborted',
]
