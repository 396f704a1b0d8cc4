"""CRUD API for batches and their symbol membership."""

from fastapi import APIRouter, Depends

from backend.api.deps import get_batch_registry
from backend.schemas.batch import BatchCreate, BatchRead, BatchUpdate, SymbolAdd, SymbolsReplace
from backend.services.batch_registry import BatchRegistry

router = APIRouter(prefix="/api/batches", tags=["batches"])


@router.get("", response_model=list[BatchRead])
def list_batches(registry: BatchRegistry = Depends(get_batch_registry)):
    return registry.list()


@router.post("", response_model=BatchRead, status_code=201)
def create_batch(data: BatchCreate, registry: BatchRegistry = Depends(get_batch_registry)):
    return registry.create(
        name=data.name,
        capital=data.capital,
        start_time=data.start_time,
        symbols=data.symbols,
    )


@router.get("/{batch_id}", response_model=BatchRead)
def get_batch(batch_id: int, registry: BatchRegistry = Depends(get_batch_registry)):
    return registry.get(batch_id)


@router.put("/{batch_id}", response_model=BatchRead)
def update_batch(
    batch_id: int,
    data: BatchUpdate,
    registry: BatchRegistry = Depends(get_batch_registry),
):
    return registry.update(batch_id, **data.model_dump(exclude_unset=True))


@router.delete("/{batch_id}", status_code=204)
def delete_batch(batch_id: int, registry: BatchRegistry = Depends(get_batch_registry)):
    registry.delete(batch_id)


@router.put("/{batch_id}/symbols", response_model=BatchRead)
def replace_symbols(
    batch_id: int,
    data: SymbolsReplace,
    registry: BatchRegistry = Depends(get_batch_registry),
):
    return registry.set_symbols(batch_id, data.symbols)


@router.post("/{batch_id}/symbols", response_model=BatchRead)
def add_symbol(
    batch_id: int,
    data: SymbolAdd,
    registry: BatchRegistry = Depends(get_batch_registry),
):
    return registry.add_symbol(batch_id, data.symbol)


@router.delete("/{batch_id}/symbols/{symbol}", response_model=BatchRead)
def remove_symbol(
    batch_id: int,
    symbol: str,
    registry: BatchRegistry = Depends(get_batch_registry),
):
    return registry.remove_symbol(batch_id, symbol)


@router.post("/{batch_id}/rebuild", response_model=BatchRead)
def rebuild_batch(batch_id: int, registry: BatchRegistry = Depends(get_batch_registry)):
    """Recompute the batch log from the full trade history."""
    return registry.rebuild(batch_id)
