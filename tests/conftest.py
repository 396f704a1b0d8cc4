"""Shared fixtures: an in-memory SQLite engine and the services built on it."""

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

import backend.models  # noqa: F401
from backend.engine.locks import KeyedLocks
from backend.engine.signal_processor import SignalProcessor
from backend.repositories.sql import SqlUnitOfWork
from backend.services.batch_registry import BatchRegistry


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def uow_factory(engine):
    return lambda: SqlUnitOfWork(engine)


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite: every thread gets its own connection and transaction."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 1},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_uow_factory(file_engine):
    return lambda: SqlUnitOfWork(file_engine)


@pytest.fixture
def locks():
    return KeyedLocks()


@pytest.fixture
def processor(uow_factory, locks):
    return SignalProcessor(uow_factory, locks)


@pytest.fixture
def registry(uow_factory, locks):
    return BatchRegistry(uow_factory, locks)

