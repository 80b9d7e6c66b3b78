"""
Database models for the BV compensation engine.
Import all models here for easy access.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Core models
from models.member import Member
from models.service import Service
from models.purchase import Purchase

# Compensation models
from models.distribution_rule import DistributionRule
from models.income import Income, IncomeLog

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Core
    'Member',
    'Service',
    'Purchase',

    # Compensation
    'DistributionRule',
    'Income',
    'IncomeLog',
]
