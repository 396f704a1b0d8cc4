"""Shared API dependencies."""

from collections.abc import Callable

from fastapi import Depends

from backend.database import unit_of_work
from backend.engine.signal_processor import SignalProcessor
from backend.repositories.base import UnitOfWork
from backend.services.batch_registry import BatchRegistry


def get_uow_factory() -> Callable[[], UnitOfWork]:
    """Factory for per-request units of work. Overridden in tests."""
    return unit_of_work


def get_signal_processor(
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
) -> SignalProcessor:
    return SignalProcessor(uow_factory)


def get_batch_registry(
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
) -> BatchRegistry:
    return BatchRegistry(uow_factory)
