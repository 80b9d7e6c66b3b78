"""
Service model - a purchasable catalog item carrying Business Volume.
One canonical field per concept: businessVolume and status.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, CheckConstraint
from models.base import Base, AuditMixin

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"


class Service(Base, AuditMixin):
    __tablename__ = 'services'

    serviceID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)

    price = Column(DECIMAL(18, 2), nullable=False)
    businessVolume = Column(DECIMAL(18, 2), nullable=False)

    status = Column(String, nullable=False, default=STATUS_ACTIVE, index=True)  # active, inactive

    __table_args__ = (
        CheckConstraint("price >= 0", name='ck_service_price'),
        CheckConstraint("\"businessVolume\" >= 0", name='ck_service_bv'),
    )

    @property
    def isActive(self) -> bool:
        return self.status == STATUS_ACTIVE

    def __repr__(self):
        return f"<Service(serviceID={self.serviceID}, name={self.name}, bv={self.businessVolume})>"
