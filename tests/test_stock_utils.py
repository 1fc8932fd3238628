"""Tests for symbol normalisation and company-name lookup (yfinance mocked)."""

import json
from unittest.mock import MagicMock, patch

import pytest

from newsdigest.core.stock_utils import get_long_name, normalize_symbol
from newsdigest.models.datatypes import MARKET


@pytest.mark.parametrize("raw, expected", [
    ("NYSE:SMRT", "SMRT"),
    ("NASDAQ: aapl", "AAPL"),
    ("(NASDAQ:NVDA)", "NVDA"),
    (" msft ", "MSFT"),
    ("", MARKET),
    (None, MARKET),
    ("market", MARKET),
    (["AAPL", "MSFT"], MARKET),
    (7, MARKET),
])
def test_normalize_symbol(raw, expected):
    assert normalize_symbol(raw) == expected


class TestGetLongName:

    def test_market_needs_no_lookup(self, tmp_path):
        with patch("newsdigest.core.stock_utils.yf.Ticker") as ticker:
            assert get_long_name(MARKET, str(tmp_path)) == MARKET
        ticker.assert_not_called()

    def test_cache_hit_skips_yfinance(self, tmp_path):
        (tmp_path / "stock_aliases.json").write_text(json.dumps({"AAPL": "Apple Inc."}), encoding="utf-8")

        with patch("newsdigest.core.stock_utils.yf.Ticker") as ticker:
            assert get_long_name("AAPL", str(tmp_path)) == "Apple Inc."
        ticker.assert_not_called()

    def test_yfinance_result_is_cached(self, tmp_path):
        ticker = MagicMock()
        ticker.info = {"longName": "NVIDIA Corporation"}

        with patch("newsdigest.core.stock_utils.yf.Ticker", return_value=ticker):
            assert get_long_name("nvda", str(tmp_path)) == "NVIDIA Corporation"

        cached = json.loads((tmp_path / "stock_aliases.json").read_text(encoding="utf-8"))
        assert cached == {"NVDA": "NVIDIA Corporation"}

    def test_yfinance_failure_falls_back_to_symbol(self, tmp_path):
        with patch("newsdigest.core.stock_utils.yf.Ticker", side_effect=RuntimeError("rate limited")):
            assert get_long_name("XYZ", str(tmp_path)) == "XYZ"
