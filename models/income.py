"""
Income ledger - one append-only credit per (purchase, level).
IncomeLog mirrors every Income write for aggregate reporting.
"""
from sqlalchemy import Column, Integer, DECIMAL, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from models.base import Base, ExactDecimal, _get_current_time


class Income(Base):
    __tablename__ = 'incomes'

    incomeID = Column(Integer, primary_key=True, autoincrement=True)

    toMemberID = Column(Integer, ForeignKey('members.memberID'), nullable=False, index=True)
    fromMemberID = Column(Integer, ForeignKey('members.memberID'), nullable=False)
    purchaseID = Column(Integer, ForeignKey('purchases.purchaseID'), nullable=False)
    ruleID = Column(Integer, ForeignKey('distribution_rules.ruleID'), nullable=True, index=True)

    level = Column(Integer, nullable=False)

    # Percentage actually applied, never a pointer to a mutable rule
    percentage = Column(ExactDecimal, nullable=False)
    amount = Column(DECIMAL(28, 8), nullable=False)

    createdAt = Column(DateTime, default=_get_current_time)

    # Relationships
    purchase = relationship('Purchase', backref='incomes')

    __table_args__ = (
        UniqueConstraint('purchaseID', 'level', name='uq_income_purchase_level'),
    )

    def __repr__(self):
        return (
            f"<Income(purchaseID={self.purchaseID}, to={self.toMemberID}, "
            f"level={self.level}, amount={self.amount})>"
        )


class IncomeLog(Base):
    __tablename__ = 'income_logs'

    logID = Column(Integer, primary_key=True, autoincrement=True)

    incomeID = Column(Integer, ForeignKey('incomes.incomeID'), nullable=False, unique=True)
    toMemberID = Column(Integer, nullable=False)
    fromMemberID = Column(Integer, nullable=False)
    purchaseID = Column(Integer, nullable=False)
    level = Column(Integer, nullable=False)

    incomeAmount = Column(DECIMAL(28, 8), nullable=False)

    createdAt = Column(DateTime, default=_get_current_time)

    __table_args__ = (
        Index('ix_income_log_purchase', 'purchaseID'),
        Index('ix_income_log_to_member', 'toMemberID'),
    )

    def __repr__(self):
        return f"<IncomeLog(incomeID={self.incomeID}, amount={self.incomeAmount})>"
