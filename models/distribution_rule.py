"""
DistributionRule model - compensation policy (base percentage + decay flag).

At most one row is active; the partial unique index makes that a database
constraint rather than an application convention.
"""
from sqlalchemy import Column, Integer, Boolean, DECIMAL, Index, CheckConstraint, text
from models.base import Base, AuditMixin


class DistributionRule(Base, AuditMixin):
    __tablename__ = 'distribution_rules'

    ruleID = Column(Integer, primary_key=True, autoincrement=True)

    basePercentage = Column(DECIMAL(10, 6), nullable=False)  # fraction, 0.10 == 10%
    decayEnabled = Column(Boolean, nullable=False, default=True)
    isActive = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "\"basePercentage\" >= 0 AND \"basePercentage\" <= 1",
            name='ck_rule_base_percentage'
        ),
        Index(
            'uq_distribution_rule_active',
            'isActive',
            unique=True,
            sqlite_where=text("isActive = 1"),
            postgresql_where=text('"isActive" IS TRUE'),
        ),
    )

    def __repr__(self):
        return (
            f"<DistributionRule(ruleID={self.ruleID}, base={self.basePercentage}, "
            f"decay={self.decayEnabled}, active={self.isActive})>"
        )
