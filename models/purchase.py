"""
Purchase model - one row per purchase event.

bv stays NULL until the distribution run finalizes it inside the same
transaction that created the row.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class Purchase(Base, AuditMixin):
    __tablename__ = 'purchases'

    purchaseID = Column(Integer, primary_key=True, autoincrement=True)

    # Relations
    memberID = Column(Integer, ForeignKey('members.memberID'), nullable=False, index=True)
    serviceID = Column(Integer, ForeignKey('services.serviceID'), nullable=False)

    # Service snapshot at purchase time
    serviceName = Column(String, nullable=False)
    price = Column(DECIMAL(18, 2), nullable=False)

    # Finalized by the distribution run
    bv = Column(DECIMAL(18, 2), nullable=True)
    levelsPaid = Column(Integer, nullable=False, default=0)
    creditsWritten = Column(Integer, nullable=False, default=0)

    # Relationships
    member = relationship('Member')
    service = relationship('Service')

    @property
    def isFinalized(self) -> bool:
        return self.bv is not None

    def __repr__(self):
        return f"<Purchase(purchaseID={self.purchaseID}, memberID={self.memberID}, bv={self.bv})>"
