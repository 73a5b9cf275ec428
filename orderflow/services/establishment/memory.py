"""
In-Memory Establishment Provider

Holds business hours, catalog and delivery fees as plain objects. Used by
the tests and by anything that wants to swap configuration at runtime.
"""

from typing import Optional

from orderflow.schemas import BusinessHoursConfig, CatalogSnapshot
from orderflow.services.establishment.base import BaseEstablishmentProvider


class InMemoryEstablishmentProvider(BaseEstablishmentProvider):

    def __init__(
        self,
        business_hours: Optional[BusinessHoursConfig] = None,
        catalog: Optional[CatalogSnapshot] = None,
        delivery_fees: Optional[dict[str, float]] = None,
    ):
        self.business_hours = business_hours or BusinessHoursConfig()
        self.catalog = catalog or CatalogSnapshot()
        self.delivery_fees = dict(delivery_fees or {})

    @property
    def provider_name(self) -> str:
        return "memory"

    async def get_business_hours(self) -> BusinessHoursConfig:
        return self.business_hours

    async def get_catalog_snapshot(self) -> CatalogSnapshot:
        return self.catalog

    async def get_delivery_fee(self, neighborhood: str) -> Optional[float]:
        key = neighborhood.strip().lower()
        for name, fee in self.delivery_fees.items():
            if name.strip().lower() == key:
                return fee
        return None
