"""Pytest configuration and shared fixtures.

Test Categories:
| Category | Focus                          | Tools                     |
| Unit     | Encoders, builders, pipeline   | pytest, openpyxl reload   |
| E2E      | Service and CLI workflows      | pytest, typer CliRunner   |
"""

from __future__ import annotations

import json
import tempfile
from collections.abc import Generator
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from wasilah.config.settings import Settings
from wasilah.core.service import ExportService
from wasilah.data.providers import MemoryDownloader, StaticRecordProvider
from wasilah.data.store import MemoryKeyValueStore

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "e2e: End-to-end tests (full workflows)")
    config.addinivalue_line("markers", "slow: Slow tests (may take > 1s)")


# =============================================================================
# COMMON FIXTURES
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_dir: Path) -> Settings:
    """Default settings with the data directory pointed at a temp dir."""
    data = Settings.defaults().model_dump()
    data["general"]["data_dir"] = str(temp_dir / "store")
    data["general"]["storage_backend"] = "memory"
    return Settings.from_dict(data)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 6, 15, 12, 0, 0)


# =============================================================================
# SAMPLE RECORDS
# =============================================================================


@pytest.fixture
def project_records() -> list[dict[str, Any]]:
    """Raw project records with mixed field spellings, as the data layer returns them."""
    return [
        {
            "id": "P-001",
            "name": "Clean Water Initiative",
            "ngoName": "Water For All",
            "category": "Water",
            "status": "Active",
            "budget": "PKR 12,500,000",
            "amount_spent": 4500000,
            "beneficiaries": 5000,
            "startDate": "2024-01-15",
            "location": "Karachi",
            "tags": ["water", "health"],
        },
        {
            "id": "P-002",
            "name": "School Rebuild",
            "ngo_name": "Education First",
            "category": "Education",
            "status": "Completed",
            "budget": 3000000,
            "spent": 3000000,
            "beneficiaries": 1200,
            "startDate": "2023-09-01",
            "location": "Lahore",
            "tags": ["education"],
        },
        {
            "id": "P-003",
            "name": "Mobile Clinics",
            "ngoName": "Health Bridge",
            "category": "Health",
            "status": "active",
            "budget": 8000000,
            "spent": 1000000,
            "beneficiaries": 8000,
            "startDate": "2024-05-20",
            "location": "Quetta",
            "tags": "health, rural",
        },
        {
            "id": "P-004",
            "name": "Solar Villages",
            "ngoName": "Green Energy",
            "category": "Energy",
            "status": "Planning",
            "startDate": "2024-06-01",
            "location": "Multan",
        },
    ]


@pytest.fixture
def payment_records() -> list[dict[str, Any]]:
    return [
        {"id": "PAY-1", "projectName": "Clean Water", "amount": 250000, "status": "completed",
         "type": "milestone", "disbursedAt": "2024-02-01T10:00:00Z"},
        {"id": "PAY-2", "projectName": "School Rebuild", "amount": "PKR 1,000,000",
         "status": "pending", "type": "advance", "disbursedAt": "2024-03-10T09:30:00Z"},
        {"id": "PAY-3", "projectName": "Mobile Clinics", "amount": 75000, "status": "failed",
         "type": "milestone", "disbursedAt": "2024-04-05T15:45:00Z"},
        {"id": "PAY-4", "projectName": "Clean Water", "amount": 500000, "status": "completed",
         "type": "final", "disbursedAt": "2024-05-22T11:00:00Z"},
        {"id": "PAY-5", "projectName": "Solar Villages", "amount": 125000, "status": "completed",
         "type": "advance", "disbursedAt": "2024-06-01T08:15:00Z"},
    ]


@pytest.fixture
def records_dir(temp_dir: Path, project_records, payment_records) -> Path:
    """Directory of ``<entity_type>.json`` record files."""
    directory = temp_dir / "records"
    directory.mkdir()
    (directory / "projects.json").write_text(json.dumps(project_records), encoding="utf-8")
    (directory / "payments.json").write_text(json.dumps(payment_records), encoding="utf-8")
    return directory


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def downloader() -> MemoryDownloader:
    return MemoryDownloader()


@pytest.fixture
def provider(project_records, payment_records) -> StaticRecordProvider:
    return StaticRecordProvider({"projects": project_records, "payments": payment_records})


@pytest.fixture
def service(
    settings: Settings,
    memory_store: MemoryKeyValueStore,
    provider: StaticRecordProvider,
    downloader: MemoryDownloader,
) -> Generator[ExportService, None, None]:
    """Initialized export service over in-memory collaborators."""
    svc = ExportService(settings, store=memory_store, provider=provider, downloader=downloader)
    svc.init()
    yield svc
    svc.teardown()
