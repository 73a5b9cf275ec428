"""
Establishment Provider Factory

Returns the provider that serves business hours, catalog snapshot and
delivery fees.
"""

import logging

from orderflow.core.config import Settings
from orderflow.services.establishment.base import BaseEstablishmentProvider
from orderflow.services.establishment.file import FileEstablishmentProvider
from orderflow.services.establishment.memory import InMemoryEstablishmentProvider

logger = logging.getLogger(__name__)


def build_establishment_provider(settings: Settings) -> BaseEstablishmentProvider:
    logger.info(f"Establishment Provider: reading {settings.establishment_file}")
    return FileEstablishmentProvider(settings.establishment_file)


__all__ = [
    "build_establishment_provider",
    "BaseEstablishmentProvider",
    "FileEstablishmentProvider",
    "InMemoryEstablishmentProvider",
]
