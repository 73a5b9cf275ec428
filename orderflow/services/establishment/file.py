"""
File Establishment Provider

Reads establishment configuration from a JSON document:

    {
        "business_hours": {"monday": {"open": true, "start": "18:00", "end": "23:00"}, ...},
        "catalog": {"allow_half_and_half": true, "categories": [...], "items": [...]},
        "delivery_fees": [{"neighborhood": "Centro", "fee": 5.0}, ...]
    }

The file is re-read when its modification time changes, so edits made by
the configuration tooling apply without a restart.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from orderflow.schemas import BusinessHoursConfig, CatalogSnapshot, DeliveryFee
from orderflow.services.establishment.base import BaseEstablishmentProvider

logger = logging.getLogger(__name__)


class EstablishmentDocument(BaseModel):
    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)
    catalog: CatalogSnapshot = Field(default_factory=CatalogSnapshot)
    delivery_fees: list[DeliveryFee] = Field(default_factory=list)


class FileEstablishmentProvider(BaseEstablishmentProvider):

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._document: Optional[EstablishmentDocument] = None
        self._mtime: Optional[float] = None

    @property
    def provider_name(self) -> str:
        return "file"

    def _load(self) -> EstablishmentDocument:
        if not self.path.exists():
            if self._document is None:
                logger.warning(f"Establishment file {self.path} not found, every day is closed")
                self._document = EstablishmentDocument()
            return self._document

        mtime = self.path.stat().st_mtime
        if self._document is None or mtime != self._mtime:
            with self.path.open(encoding="utf-8") as fh:
                self._document = EstablishmentDocument.model_validate(json.load(fh))
            self._mtime = mtime
            logger.info(
                f"Loaded establishment file {self.path}: "
                f"{len(self._document.catalog.items)} catalog items"
            )
        return self._document

    async def _current(self) -> EstablishmentDocument:
        return await run_in_threadpool(self._load)

    async def get_business_hours(self) -> BusinessHoursConfig:
        return (await self._current()).business_hours

    async def get_catalog_snapshot(self) -> CatalogSnapshot:
        return (await self._current()).catalog

    async def get_delivery_fee(self, neighborhood: str) -> Optional[float]:
        key = neighborhood.strip().lower()
        for entry in (await self._current()).delivery_fees:
            if entry.neighborhood.strip().lower() == key:
                return entry.fee
        return None
