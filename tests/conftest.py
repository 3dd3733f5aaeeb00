import os
import sys
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

# Ensure the package is importable without installation
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from certengine import CertificationEngine, SqliteRecordStore, StaticKeyProvider
from certengine.api import create_app

FIXED_NOW = datetime(2025, 3, 1, 9, 30, 0, 123456, tzinfo=timezone.utc)


def fixed_clock():
    return FIXED_NOW


@pytest.fixture
def store(tmp_path):
    s = SqliteRecordStore(str(tmp_path / "certengine.db"))
    yield s
    s.close()


@pytest.fixture
def seal_keys():
    return StaticKeyProvider.generate("test-seal-001")


@pytest.fixture
def engine(store, seal_keys):
    return CertificationEngine(store=store, key_provider=seal_keys, clock=fixed_clock)


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))
