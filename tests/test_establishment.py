"""
Establishment Provider Tests

The JSON file provider: hours, catalog and fees read from disk, reloaded
when the file changes, and loaded off the event loop.
"""

import json
import os

import pytest

from orderflow.services.establishment import file as file_provider
from orderflow.services.establishment.file import FileEstablishmentProvider


def write_document(path, fee: float, mtime: int) -> None:
    path.write_text(json.dumps({
        "business_hours": {"friday": {"open": True, "start": "18:00", "end": "23:00"}},
        "catalog": {"items": [{"id": "pz-1", "name": "Margherita", "category": "pizzas", "price": 30.0}]},
        "delivery_fees": [{"neighborhood": "Centro", "fee": fee}],
    }), encoding="utf-8")
    os.utime(path, (mtime, mtime))


@pytest.mark.asyncio
class TestFileEstablishmentProvider:

    async def test_reads_document(self, tmp_path):
        path = tmp_path / "establishment.json"
        write_document(path, fee=5.0, mtime=1_700_000_000)
        provider = FileEstablishmentProvider(path)

        hours = await provider.get_business_hours()
        catalog = await provider.get_catalog_snapshot()

        assert hours.friday.start == "18:00"
        assert catalog.find_item(item_id="pz-1").name == "Margherita"
        assert await provider.get_delivery_fee("  centro ") == 5.0
        assert await provider.get_delivery_fee("Savassi") is None

    async def test_reloads_when_file_changes(self, tmp_path):
        path = tmp_path / "establishment.json"
        write_document(path, fee=5.0, mtime=1_700_000_000)
        provider = FileEstablishmentProvider(path)
        assert await provider.get_delivery_fee("Centro") == 5.0

        write_document(path, fee=7.5, mtime=1_700_000_060)

        assert await provider.get_delivery_fee("Centro") == 7.5

    async def test_missing_file_is_closed_every_day(self, tmp_path):
        provider = FileEstablishmentProvider(tmp_path / "absent.json")

        hours = await provider.get_business_hours()

        assert hours.friday is None
        assert (await provider.get_catalog_snapshot()).items == []

    async def test_file_is_loaded_in_threadpool(self, tmp_path, monkeypatch):
        path = tmp_path / "establishment.json"
        write_document(path, fee=5.0, mtime=1_700_000_000)
        offloaded = []

        async def recording_threadpool(func, *args, **kwargs):
            offloaded.append(func)
            return func(*args, **kwargs)

        monkeypatch.setattr(file_provider, "run_in_threadpool", recording_threadpool)
        provider = FileEstablishmentProvider(path)

        await provider.get_catalog_snapshot()

        assert offloaded == [provider._load]
