"""Trade history API."""

from collections.abc import Callable

from fastapi import APIRouter, Depends, Query

from backend.api.deps import get_uow_factory
from backend.errors import NotFoundError
from backend.repositories.base import UnitOfWork
from backend.schemas.trade import TradeRead
from backend.utils.constants import STATUS_CLOSED, STATUS_OPEN, TRADES_PAGE_LIMIT

router = APIRouter(prefix="/api/trades", tags=["trades"])


@router.get("", response_model=list[TradeRead])
def list_trades(
    status: str | None = Query(default=None, pattern=f"^({STATUS_OPEN}|{STATUS_CLOSED})$"),
    symbol: str | None = None,
    limit: int = Query(default=TRADES_PAGE_LIMIT, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    with uow_factory() as uow:
        return uow.trades.list(
            status=status,
            symbol=symbol.strip().upper() if symbol else None,
            limit=limit,
            offset=offset,
        )


@router.get("/symbols", response_model=list[str])
def list_symbols(uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)):
    """Every symbol seen on a signal, for populating batch membership pickers."""
    with uow_factory() as uow:
        return uow.trades.distinct_symbols()


@router.get("/{trade_id}", response_model=TradeRead)
def get_trade(trade_id: int, uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)):
    with uow_factory() as uow:
        trade = uow.trades.get(trade_id)
        if not trade:
            raise NotFoundError(f"Trade {trade_id} not found")
        return trade
