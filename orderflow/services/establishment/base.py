"""
Establishment Provider Abstract Base Class

Read-only access to what the configuration-management collaborator owns:
weekly business hours, the catalog snapshot and per-neighborhood delivery
fees. The Order Service reads these on every order; it never writes them.
"""

from abc import ABC, abstractmethod
from typing import Optional

from orderflow.schemas import BusinessHoursConfig, CatalogSnapshot


class BaseEstablishmentProvider(ABC):
    """Abstract source of establishment configuration."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def get_business_hours(self) -> BusinessHoursConfig:
        pass

    @abstractmethod
    async def get_catalog_snapshot(self) -> CatalogSnapshot:
        pass

    @abstractmethod
    async def get_delivery_fee(self, neighborhood: str) -> Optional[float]:
        """
        Configured fee for a neighborhood.

        Returns:
            The fee, or None when the neighborhood has no configured fee
        """
        pass
