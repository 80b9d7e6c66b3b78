# bvengine/services/catalog_service.py
"""
Service catalog - purchasable services and their Business Volume.

Older data carried duplicate fields (bv next to businessVolume, a boolean
isActive next to status). They are folded into the canonical fields once
by migrateLegacyServices, not synchronized on every write.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session

from models.service import Service, STATUS_ACTIVE, STATUS_INACTIVE
from mlm_system.errors import ServiceNotFound

logger = logging.getLogger(__name__)

VALID_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE)


def _non_negative(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{field} must be a number, got {value!r}") from e
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"{field} must be >= 0, got {value!r}")
    return amount


def normalize_legacy_service(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a legacy service record onto canonical fields.

    businessVolume wins over bv, status wins over isActive.

    Returns:
        Dict with name, price, businessVolume, status

    Raises:
        ValueError: Record has no usable BV or price
    """
    businessVolume = row.get("businessVolume")
    if businessVolume is None:
        businessVolume = row.get("bv")
    if businessVolume is None:
        raise ValueError(f"Service {row.get('name')!r} has neither businessVolume nor bv")

    status = row.get("status")
    if status not in VALID_STATUSES:
        isActive = row.get("isActive")
        status = STATUS_INACTIVE if isActive is False else STATUS_ACTIVE

    return {
        "name": (row.get("name") or "").strip(),
        "price": _non_negative(row.get("price"), "price"),
        "businessVolume": _non_negative(businessVolume, "businessVolume"),
        "status": status,
    }


class CatalogService:
    """Service for managing the service catalog."""

    def __init__(self, session: Session):
        self.session = session

    def createService(
            self,
            name: str,
            price,
            businessVolume,
            status: str = STATUS_ACTIVE
    ) -> Service:
        if status not in VALID_STATUSES:
            raise ValueError(f"status must be one of {VALID_STATUSES}, got {status!r}")
        if not name or not name.strip():
            raise ValueError("name is required")

        service = Service(
            name=name.strip(),
            price=_non_negative(price, "price"),
            businessVolume=_non_negative(businessVolume, "businessVolume"),
            status=status
        )
        self.session.add(service)
        self.session.commit()

        logger.info(f"Created service {service.serviceID}: {service.name}, bv={service.businessVolume}")
        return service

    def getService(self, serviceId: int) -> Service:
        service = self.session.get(Service, serviceId)
        if service is None:
            raise ServiceNotFound(f"Service {serviceId} not found")
        return service

    def updateService(
            self,
            serviceId: int,
            name: Optional[str] = None,
            price=None,
            businessVolume=None,
            status: Optional[str] = None
    ) -> Service:
        """
        Update catalog fields. Existing purchases keep their own snapshot.
        """
        service = self.getService(serviceId)

        if name is not None:
            service.name = name.strip()
        if price is not None:
            service.price = _non_negative(price, "price")
        if businessVolume is not None:
            service.businessVolume = _non_negative(businessVolume, "businessVolume")
        if status is not None:
            if status not in VALID_STATUSES:
                raise ValueError(f"status must be one of {VALID_STATUSES}, got {status!r}")
            service.status = status

        self.session.commit()
        logger.info(f"Updated service {serviceId}")
        return service

    def listServices(self, activeOnly: bool = True) -> List[Service]:
        query = self.session.query(Service)
        if activeOnly:
            query = query.filter(Service.status == STATUS_ACTIVE)
        return query.order_by(Service.createdAt.desc(), Service.serviceID.desc()).all()

    def migrateLegacyServices(self, rows: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        """
        One-time import of legacy service records into canonical fields.

        Rows are matched by name; existing services are updated.

        Returns:
            Dict with added / updated / errors counters and error messages
        """
        results = {
            "added": 0,
            "updated": 0,
            "errors": 0,
            "error_messages": []
        }

        for idx, row in enumerate(rows, start=1):
            try:
                data = normalize_legacy_service(row)
                if not data["name"]:
                    raise ValueError("name is required")
            except ValueError as e:
                results["errors"] += 1
                results["error_messages"].append(f"Row {idx}: {e}")
                continue

            service = self.session.query(Service).filter_by(name=data["name"]).first()
            if service is None:
                self.session.add(Service(**data))
                results["added"] += 1
            else:
                service.price = data["price"]
                service.businessVolume = data["businessVolume"]
                service.status = data["status"]
                results["updated"] += 1

        self.session.commit()

        logger.info(
            f"Legacy services migrated: added={results['added']}, "
            f"updated={results['updated']}, errors={results['errors']}"
        )
        for error_msg in results["error_messages"][:3]:
            logger.warning(f"  - {error_msg}")

        return results
