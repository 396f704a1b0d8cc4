"""Analytics API: per-batch dashboard series derived from the batch log."""

from collections.abc import Callable

from fastapi import APIRouter, Depends, Query

from backend.api.deps import get_uow_factory
from backend.repositories.base import UnitOfWork
from backend.services import batch_analytics
from backend.services.batch_registry import batch_view, require_batch
from backend.utils.constants import TRADE_LOG_PAGE_LIMIT

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


def _entries(uow_factory: Callable[[], UnitOfWork], batch_id: int):
    with uow_factory() as uow:
        require_batch(uow, batch_id)
        return uow.logs.entries(batch_id)


@router.get("/{batch_id}/summary")
def batch_summary(batch_id: int, uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)):
    """KPI snapshot: trade counts, PnL stats and the latest running state."""
    with uow_factory() as uow:
        batch = require_batch(uow, batch_id)
        entries = uow.logs.entries(batch_id)
        return {
            "batch": batch_view(uow, batch),
            "stats": batch_analytics.summary_stats(entries),
            "latest": batch_analytics.latest_snapshot(entries),
        }


@router.get("/{batch_id}/trade-log")
def trade_log(
    batch_id: int,
    limit: int = Query(default=TRADE_LOG_PAGE_LIMIT, ge=1, le=5000),
    offset: int = Query(default=0, ge=0),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    with uow_factory() as uow:
        require_batch(uow, batch_id)
        entries = uow.logs.entries(batch_id, limit=limit, offset=offset)
        return [batch_analytics.entry_dict(e) for e in entries]


@router.get("/{batch_id}/capital-by-trade")
def capital_by_trade(batch_id: int, uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)):
    return batch_analytics.capital_by_trade(_entries(uow_factory, batch_id))


@router.get("/{batch_id}/capital-by-day")
def capital_by_day(batch_id: int, uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)):
    return batch_analytics.capital_by_day(_entries(uow_factory, batch_id))


@router.get("/{batch_id}/trades-per-day")
def trades_per_day(batch_id: int, uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)):
    return batch_analytics.trades_per_day(_entries(uow_factory, batch_id))


@router.get("/{batch_id}/cumulative-trades")
def cumulative_trades(batch_id: int, uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)):
    return batch_analytics.cumulative_trade_count(_entries(uow_factory, batch_id))


@router.get("/{batch_id}/symbol-breakdown")
def symbol_breakdown(batch_id: int, uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)):
    return batch_analytics.symbol_breakdown(_entries(uow_factory, batch_id))


@router.get("/{batch_id}/drawdown")
def drawdown(batch_id: int, uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)):
    return batch_analytics.drawdown_series(_entries(uow_factory, batch_id))
