"""Utility helpers for stock identities — symbol normalisation and company-name lookup."""

import json
import os
import re
from typing import Optional

import yfinance as yf

from newsdigest.core.logger import logger
from newsdigest.models.datatypes import MARKET

_CACHE_FILENAME = "stock_aliases.json"

# "NYSE:SMRT", "NASDAQ: AAPL", "(NASDAQ:AAPL)"
_EXCHANGE_PREFIX = re.compile(r"^\(?\s*(?:NYSE|NASDAQ|AMEX|NYSEARCA|OTC|TSX|LSE)\s*:\s*", re.IGNORECASE)


def normalize_symbol(symbol: Optional[str]) -> str:
    """Strip an exchange prefix and whitespace; empty input becomes ``"Market"``.

    Examples:
        ``"NYSE:SMRT"`` → ``"SMRT"``
        ``" aapl "`` → ``"AAPL"``
        ``""`` → ``"Market"``
    """
    if not isinstance(symbol, str) or not symbol.strip():
        return MARKET
    cleaned = _EXCHANGE_PREFIX.sub("", symbol.strip()).strip(" )")
    if not cleaned:
        return MARKET
    if cleaned.lower() == MARKET.lower():
        return MARKET
    return cleaned.upper()


def _cache_path(output_dir: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    return os.path.join(output_dir, _CACHE_FILENAME)


def _load_cache(output_dir: str) -> dict:
    path = _cache_path(output_dir)
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _save_cache(output_dir: str, data: dict) -> None:
    with open(_cache_path(output_dir), "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def get_long_name(symbol: str, output_dir: str = "output") -> str:
    """Return the company longName for a ticker.

    Resolution order:
      1. ``<output_dir>/stock_aliases.json`` (local cache) — zero network cost.
      2. ``yf.Ticker(symbol).info["longName"]`` — one network call, result cached.
      3. The symbol itself when yfinance fails or returns an empty string.

    The ``"Market"`` sentinel resolves to itself without a lookup.
    """
    symbol = normalize_symbol(symbol)
    if symbol == MARKET:
        return MARKET

    cache = _load_cache(output_dir)
    if symbol in cache:
        logger.debug(f"get_long_name cache hit: {symbol} → {cache[symbol]}")
        return cache[symbol]

    long_name = _fetch_long_name_from_yfinance(symbol)

    cache[symbol] = long_name
    _save_cache(output_dir, cache)
    logger.info(f"get_long_name cached: {symbol} → {long_name}")
    return long_name


def _fetch_long_name_from_yfinance(symbol: str) -> str:
    try:
        info: dict = yf.Ticker(symbol).info
        long_name: str = (info.get("longName") or info.get("shortName") or "").strip()
        if long_name:
            return long_name
        logger.warning(
            f"get_long_name: yfinance returned empty longName for {symbol}. "
            f"Falling back to ticker symbol."
        )
    except Exception as exc:
        logger.warning(
            f"get_long_name: yfinance raised for {symbol}: {exc}. "
            f"Falling back to ticker symbol."
        )
    return symbol
