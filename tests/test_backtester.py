from datetime import date

import pytest

from streak_bounce_engine.backtester import allocate_capital, backtest, normalize_symbols, portfolio_backtest
from streak_bounce_engine.errors import InvalidParameters
from streak_bounce_engine.series import series_from_closes

from conftest import DOWN3, FLAT_UP

# DOWN3 with streak 1 / hold 1 / lookback 10 trades at entry indices 1, 2, 6, 7
EXPECTED_FINAL = 10000.0 * 90 / 92 * 89 / 87


@pytest.fixture
def down():
    return series_from_closes(DOWN3, end=date(2024, 3, 29))


class TestSingleStock:
    def test_hand_computed_trades(self, down):
        res = backtest(down, streak_length=1, lookback_days=10, hold_days=1, initial_capital=10000.0)
        assert res.total_trades == 4
        assert [(t.entry_price, t.exit_price) for t in res.trades] == [
            (91.0, 90.0), (92.0, 91.0), (88.0, 89.0), (87.0, 88.0),
        ]
        assert (res.winning_trades, res.losing_trades) == (2, 2)
        assert res.win_rate == pytest.approx(50.0)
        assert res.final_capital == pytest.approx(EXPECTED_FINAL)
        assert res.total_return == pytest.approx((EXPECTED_FINAL - 10000.0) / 100.0)
        assert res.trades[-1].running_capital == pytest.approx(res.final_capital)

    def test_trade_dates(self, down):
        res = backtest(down, 1, 10, 1)
        first, third = res.trades[0], res.trades[2]
        assert (first.entry_date, first.exit_date) == (date(2024, 3, 28), date(2024, 3, 29))
        assert (third.entry_date, third.exit_date) == (date(2024, 3, 21), date(2024, 3, 22))
        assert third.return_percent > 0 > first.return_percent

    def test_newest_entry_first(self, down):
        res = backtest(down, 1, 10, 1)
        dates = [t.entry_date for t in res.trades]
        assert dates == sorted(dates, reverse=True)

    def test_idempotent(self, down):
        assert backtest(down, 1, 10, 1) == backtest(down, 1, 10, 1)

    def test_no_room_for_a_trade(self):
        res = backtest(series_from_closes([5, 4, 3]), 2, 252, 1, 5000.0)
        assert res.total_trades == 0
        assert res.trades == ()
        assert res.final_capital == 5000.0
        assert res.total_return == 0.0
        assert res.win_rate == 0.0

    def test_lookback_at_or_past_series_length(self, down):
        """The oldest bar has no predecessor, so it is never a streak end."""
        exact, past = backtest(down, 1, 10, 1), backtest(down, 1, 1000, 1)
        assert past.trades == exact.trades
        assert past.total_trades == exact.total_trades == 4
        assert past.final_capital == exact.final_capital
        assert past.lookback_days == 1000
        assert backtest(down, 1, 11, 1).total_trades == 4

    def test_longer_hold(self, down):
        res = backtest(down, 1, 10, 2)
        # candidates start at i = 3; entries at 2, 6, 7 exit two bars later
        assert [(t.entry_price, t.exit_price) for t in res.trades] == [(92.0, 90.0), (88.0, 94.0), (87.0, 89.0)]

    def test_to_dict_limits_trades(self, down):
        out = backtest(down, 1, 10, 1, symbol="DOWN").to_dict(trades_limit=2)
        assert out["totalTrades"] == 4
        assert len(out["trades"]) == 2
        assert out["trades"][0]["entryDate"] == "2024-03-28"
        assert out["symbol"] == "DOWN"

    @pytest.mark.parametrize("kwargs", [
        {"streak_length": 0},
        {"lookback_days": 0},
        {"hold_days": 0},
        {"initial_capital": 0.0},
        {"initial_capital": -5.0},
    ])
    def test_invalid_settings(self, down, kwargs):
        settings = {"streak_length": 3, "lookback_days": 252, "hold_days": 1, "initial_capital": 10000.0}
        settings.update(kwargs)
        with pytest.raises(InvalidParameters):
            backtest(down, **settings)


class TestAllocation:
    def test_normalize_symbols(self):
        assert normalize_symbols([" aapl", "MSFT", "aapl", "", None]) == ("AAPL", "MSFT")

    def test_equal_split(self):
        assert allocate_capital(("A", "B", "C", "D"), 10000.0) == {"A": 2500.0, "B": 2500.0, "C": 2500.0, "D": 2500.0}

    def test_weights_are_normalized(self):
        out = allocate_capital(("DOWN", "UP"), 8000.0, {"down": 3, "UP": 1})
        assert out == {"DOWN": pytest.approx(6000.0), "UP": pytest.approx(2000.0)}

    def test_bad_weights(self):
        with pytest.raises(InvalidParameters):
            allocate_capital(("A", "B"), 1000.0, {"A": 1.0})
        with pytest.raises(InvalidParameters):
            allocate_capital(("A", "B"), 1000.0, {"A": 1.0, "B": 0.0})
        with pytest.raises(InvalidParameters, match="must be numbers"):
            allocate_capital(("A", "B"), 1000.0, {"A": "abc", "B": 1.0})
        with pytest.raises(InvalidParameters):
            allocate_capital(("A", "B"), 1000.0, {"A": None, "B": 1.0})


class TestPortfolio:
    def _fetch(self, mapping):
        def fetch(symbol):
            if symbol not in mapping:
                raise KeyError(symbol)
            return mapping[symbol]
        return fetch

    def test_capital_conservation_and_placeholder(self, down):
        fetch = self._fetch({"DOWN": down, "UP": series_from_closes(FLAT_UP)})
        res = portfolio_backtest(
            ["down", "UP", "MISSING"], fetch,
            streak_length=1, lookback_days=10, hold_days=1, initial_capital=9000.0,
        )
        assert res.symbols == ("DOWN", "UP", "MISSING")
        assert sum(res.allocations.values()) == pytest.approx(9000.0)

        by_symbol = {r.symbol: r for r in res.stock_results}
        missing = by_symbol["MISSING"]
        assert missing.error is not None
        assert missing.final_capital == pytest.approx(3000.0)
        assert missing.total_return == 0.0
        assert by_symbol["UP"].total_trades == 0
        assert by_symbol["DOWN"].final_capital == pytest.approx(EXPECTED_FINAL * 0.3)

        assert res.final_capital == pytest.approx(sum(r.final_capital for r in res.stock_results))
        assert res.average_stock_return == pytest.approx(
            (by_symbol["DOWN"].total_return + by_symbol["UP"].total_return) / 2
        )
        assert res.total_trades == 4
        assert all(t.symbol == "DOWN" for t in res.trades)
        assert (res.winning_trades, res.losing_trades) == (2, 2)
        assert res.win_rate == pytest.approx(50.0)

    def test_trades_merged_newest_first(self):
        fetch = self._fetch({
            "A": series_from_closes(DOWN3, end=date(2024, 3, 29)),
            "B": series_from_closes(DOWN3, end=date(2024, 3, 26)),
        })
        res = portfolio_backtest(["A", "B"], fetch, streak_length=1, lookback_days=10, hold_days=1)
        dates = [t.entry_date for t in res.trades]
        assert len(dates) == 8
        assert dates == sorted(dates, reverse=True)
        assert res.trades[0].symbol == "A"

    def test_to_dict_shape(self, down):
        res = portfolio_backtest(["DOWN"], self._fetch({"DOWN": down}), streak_length=1, lookback_days=10)
        out = res.to_dict(trades_limit=3)
        assert set(out) == {"portfolio", "settings", "stockResults", "trades", "summary"}
        assert out["summary"]["totalTrades"] == 4
        assert len(out["trades"]) == 3
        assert out["trades"][0]["symbol"] == "DOWN"
        assert out["settings"] == {"streakLength": 1, "holdDays": 1, "lookbackDays": 10}

    def test_weighted(self, down):
        fetch = self._fetch({"DOWN": down, "UP": series_from_closes(FLAT_UP)})
        res = portfolio_backtest(
            ["DOWN", "UP"], fetch, streak_length=1, lookback_days=10, initial_capital=8000.0,
            weights={"DOWN": 3, "UP": 1},
        )
        assert res.allocations["DOWN"] == pytest.approx(6000.0)
        assert res.final_capital == pytest.approx(6000.0 * 90 / 92 * 89 / 87 + 2000.0)

    def test_empty_symbols(self):
        with pytest.raises(InvalidParameters, match="at least one stock symbol"):
            portfolio_backtest([], self._fetch({}))
        with pytest.raises(InvalidParameters):
            portfolio_backtest(["", "  "], self._fetch({}))
