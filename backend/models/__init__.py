"""Database models."""

from backend.models.trade import Trade
from backend.models.batch import Batch, BatchSymbol
from backend.models.batch_log import BatchLogEntry

__all__ = [
    "Trade",
    "Batch",
    "BatchSymbol",
    "BatchLogEntry",
]
