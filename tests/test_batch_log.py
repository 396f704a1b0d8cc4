"""Tests for the batch log engine: running capital, peak, drawdown and rebuilds."""

from datetime import datetime
from decimal import Decimal

import pytest

from backend.engine.batch_log import BatchLogEngine, RunningState, advance, replay
from backend.models.batch import Batch
from backend.services.trade_ledger import TradeLedger

from helpers import MemoryUnitOfWork, make_signal

LOG_FIELDS = (
    "trade_id", "trade_number", "symbol", "pnl_percent", "pnl_absolute",
    "capital_before", "capital_after", "cumulative_pnl", "drawdown",
    "max_drawdown", "peak_capital", "capital_exact", "peak_exact",
)


def _rows(uow, batch_id):
    return [tuple(getattr(e, f) for f in LOG_FIELDS) for e in uow.logs.entries(batch_id)]


def _close(uow, symbol, entry, exit_, opened_at, closed_at, direction="bullish"):
    ledger = TradeLedger(uow)
    ledger.apply(make_signal(symbol, entry, kind="entry", direction=direction, at=opened_at))
    return ledger.apply(make_signal(symbol, exit_, kind="exit", at=closed_at)).trade


def _batch(uow, capital="100000", symbols=("BTC",), start_time=None):
    batch = uow.batches.add(Batch(name="test", capital=Decimal(capital), start_time=start_time))
    uow.batches.replace_symbols(batch.id, list(symbols))
    return batch


# ---------------------------------------------------------------------------
# 1. Pure arithmetic
# ---------------------------------------------------------------------------

class TestReplay:
    def test_gain_then_loss(self):
        first, second = replay(Decimal("100000"), [Decimal("10"), Decimal("-20")])

        assert first.pnl_absolute == Decimal("10000.00")
        assert first.capital_after == Decimal("110000.00")
        assert first.peak_capital == Decimal("110000.00")
        assert first.drawdown == Decimal("0.0000")
        assert first.cumulative_pnl == Decimal("10000.00")

        assert second.capital_before == Decimal("110000.00")
        assert second.pnl_absolute == Decimal("-22000.00")
        assert second.capital_after == Decimal("88000.00")
        assert second.peak_capital == Decimal("110000.00")
        assert second.drawdown == Decimal("20.0000")
        assert second.max_drawdown == Decimal("20.0000")
        assert second.cumulative_pnl == Decimal("-12000.00")
        assert second.trade_number == 2

    def test_recovery_keeps_max_drawdown(self):
        rows = replay(Decimal("1000"), [Decimal("-10"), Decimal("5"), Decimal("20")])
        assert rows[0].max_drawdown == Decimal("10.0000")
        assert rows[1].drawdown == Decimal("5.5000")
        assert rows[1].max_drawdown == Decimal("10.0000")
        assert rows[2].drawdown == Decimal("0.0000")
        assert rows[2].max_drawdown == Decimal("10.0000")
        assert rows[2].peak_capital == rows[2].capital_after

    def test_invariants_over_sequence(self):
        pnls = [Decimal(p) for p in ("3.1", "-7.25", "12.5", "-0.3333", "0", "-15", "8.75", "-2.2")]
        rows = replay(Decimal("25000"), pnls)
        for previous, row in zip(rows, rows[1:]):
            assert row.capital_before == previous.capital_after
            assert row.peak_capital >= previous.peak_capital
            assert row.max_drawdown >= previous.max_drawdown
        for row in rows:
            assert row.peak_capital >= row.capital_after
            assert row.max_drawdown >= row.drawdown
        assert [row.trade_number for row in rows] == list(range(1, len(pnls) + 1))

    def test_wiped_out_capital_has_full_drawdown(self):
        rows = replay(Decimal("100"), [Decimal("-100"), Decimal("10")])
        assert rows[0].capital_after == Decimal("0.00")
        assert rows[0].drawdown == Decimal("100.0000")
        assert rows[1].pnl_absolute == Decimal("0.00")

    def test_zero_peak_has_no_drawdown(self):
        _, figures = advance(RunningState.seed(Decimal("0")), Decimal("0"), Decimal("-5"))
        assert figures.drawdown == Decimal("0.0000")

    def test_exact_capital_carried_unrounded(self):
        rows = replay(Decimal("100000"), [Decimal("33.3333"), Decimal("1.2345")])
        assert rows[0].capital_exact == "133333.3000"
        assert Decimal(rows[1].capital_exact) != rows[1].capital_after


# ---------------------------------------------------------------------------
# 2. Engine over stored trades
# ---------------------------------------------------------------------------

class TestBatchLogEngine:
    def test_append_matches_rebuild(self):
        uow = MemoryUnitOfWork()
        batch = _batch(uow, symbols=("BTC", "ETH"))
        engine = BatchLogEngine(uow)
        closes = [
            ("BTC", 100, 133.3333, 1),
            ("ETH", 50, 47.1, 2),
            ("BTC", 120, 121.7, 3),
            ("ETH", 48, 39.9, 4),
            ("BTC", 99.5, 104.25, 5),
        ]
        for symbol, entry, exit_, hour in closes:
            trade = _close(uow, symbol, entry, exit_, f"2026-01-0{hour}T08:00:00", f"2026-01-0{hour}T16:00:00")
            engine.append(batch, trade)
        appended = _rows(uow, batch.id)

        engine.rebuild(batch)
        assert _rows(uow, batch.id) == appended
        assert len(appended) == 5

    def test_non_member_trades_ignored(self):
        uow = MemoryUnitOfWork()
        batch = _batch(uow, symbols=("BTC",))
        _close(uow, "ETH", 100, 110, "2026-01-01T08:00:00", "2026-01-01T09:00:00")
        _close(uow, "BTC", 100, 110, "2026-01-01T08:00:00", "2026-01-01T10:00:00")
        entries = BatchLogEngine(uow).rebuild(batch)
        assert [e.symbol for e in entries] == ["BTC"]

    def test_start_time_filters_by_entry(self):
        uow = MemoryUnitOfWork()
        batch = _batch(uow, start_time=datetime(2026, 1, 2))
        _close(uow, "BTC", 100, 110, "2026-01-01T23:00:00", "2026-01-02T01:00:00")
        late = _close(uow, "BTC", 100, 90, "2026-01-02T02:00:00", "2026-01-02T03:00:00")
        entries = BatchLogEngine(uow).rebuild(batch)
        assert [e.trade_id for e in entries] == [late.id]
        assert entries[0].capital_after == Decimal("90000.00")

    def test_affected_batches_respect_start_time(self):
        uow = MemoryUnitOfWork()
        early = _batch(uow)
        late = _batch(uow, start_time=datetime(2026, 6, 1))
        trade = _close(uow, "BTC", 100, 110, "2026-01-01T08:00:00", "2026-01-01T09:00:00")
        assert [b.id for b in BatchLogEngine(uow).affected_batches(trade)] == [early.id]
        assert late.id != early.id

    def test_out_of_order_exit_rebuilds(self):
        uow = MemoryUnitOfWork()
        batch = _batch(uow, symbols=("BTC", "ETH"))
        engine = BatchLogEngine(uow)

        later = _close(uow, "BTC", 100, 110, "2026-01-01T08:00:00", "2026-01-03T08:00:00")
        engine.append(batch, later)
        earlier = _close(uow, "ETH", 100, 80, "2026-01-01T08:00:00", "2026-01-02T08:00:00")
        entry = engine.append(batch, earlier)

        entries = uow.logs.entries(batch.id)
        assert [e.trade_id for e in entries] == [earlier.id, later.id]
        assert entry.trade_number == 1
        assert entries[1].capital_before == Decimal("80000.00")
        assert entries[1].capital_after == Decimal("88000.00")

    def test_reprocessing_last_trade_updates_in_place(self):
        uow = MemoryUnitOfWork()
        batch = _batch(uow)
        engine = BatchLogEngine(uow)
        first = _close(uow, "BTC", 100, 110, "2026-01-01T08:00:00", "2026-01-01T09:00:00")
        engine.append(batch, first)
        second = _close(uow, "BTC", 100, 90, "2026-01-01T10:00:00", "2026-01-01T11:00:00")
        engine.append(batch, second)
        before = _rows(uow, batch.id)

        engine.append(batch, second)
        assert _rows(uow, batch.id) == before
        assert len(uow.logs.rows) == 2

    def test_reprocessing_mid_sequence_trade_rebuilds(self):
        uow = MemoryUnitOfWork()
        batch = _batch(uow)
        engine = BatchLogEngine(uow)
        first = _close(uow, "BTC", 100, 110, "2026-01-01T08:00:00", "2026-01-01T09:00:00")
        engine.append(batch, first)
        engine.append(batch, _close(uow, "BTC", 100, 90, "2026-01-01T10:00:00", "2026-01-01T11:00:00"))
        before = _rows(uow, batch.id)

        entry = engine.append(batch, first)
        assert entry.trade_number == 1
        assert _rows(uow, batch.id) == before

    def test_open_trade_rejected(self):
        uow = MemoryUnitOfWork()
        batch = _batch(uow)
        trade = TradeLedger(uow).apply(make_signal("BTC", 100, at="2026-01-01T08:00:00")).trade
        with pytest.raises(ValueError):
            BatchLogEngine(uow).append(batch, trade)

    def test_rebuild_without_symbols_clears(self):
        uow = MemoryUnitOfWork()
        batch = _batch(uow)
        engine = BatchLogEngine(uow)
        engine.append(batch, _close(uow, "BTC", 100, 110, "2026-01-01T08:00:00", "2026-01-01T09:00:00"))
        uow.batches.replace_symbols(batch.id, [])
        assert engine.rebuild(batch) == []
        assert uow.logs.entries(batch.id) == []

    def test_exit_time_ties_broken_by_trade_id(self):
        uow = MemoryUnitOfWork()
        batch = _batch(uow, symbols=("BTC", "ETH"))
        a = _close(uow, "BTC", 100, 110, "2026-01-01T08:00:00", "2026-01-01T09:00:00")
        b = _close(uow, "ETH", 100, 90, "2026-01-01T08:00:00", "2026-01-01T09:00:00")
        entries = BatchLogEngine(uow).rebuild(batch)
        assert [e.trade_id for e in entries] == sorted([a.id, b.id])
