"""Shared fixtures: in-memory and SQLite row stores, a virtual clock, and a wired store/policy pair."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hotspot_sync.backend import Backend
from hotspot_sync.entity_store import EntityStore
from hotspot_sync.persistence_adapter import PersistenceAdapter
from hotspot_sync.project_service import ProjectService
from hotspot_sync.row_store import MemoryRowStoreClient, SqlRowStoreClient
from hotspot_sync.scheduler import VirtualClock
from hotspot_sync.sync_policy import SyncPolicy


@pytest.fixture
def clock():
    return VirtualClock(start=1000.0)


@pytest.fixture
def memory_client():
    return MemoryRowStoreClient()


@pytest.fixture
def sql_client():
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    factory = sessionmaker(bind=engine, autoflush=False, future=True)
    yield SqlRowStoreClient(factory, engine=engine)
    engine.dispose()


@pytest.fixture
def adapter(memory_client):
    adapter = PersistenceAdapter(memory_client)
    adapter.initialize(memory_client.create_document("Hotspot Editor - Test"))
    return adapter


@pytest.fixture
def store(adapter, clock):
    return EntityStore(adapter=adapter, clock=clock)


@pytest.fixture
def policy(store, adapter):
    return SyncPolicy(store, adapter)


@pytest.fixture
def service(memory_client, clock):
    return ProjectService(client=memory_client, clock=clock)


@pytest.fixture
def backend(service):
    return Backend(service)
