"""
Exchange Rate Table

Holds currency -> USD conversion factors used when folding match groups.

Rate Semantics:
    A rate is the number of foreign currency units per 1 USD, so

        price_usd = price / rate

    e.g. {"EUR": 0.9} turns 100 EUR into ~111.11 USD.

Defaults:
    - The table always starts with {"USD": 1.0}
    - A currency with no entry converts at rate 1 (price passes through
      unchanged). Callers that care can check has_rate() first.

Thread Safety:
    The table is long-lived shared state: a rate poller may push updates
    while an aggregation cycle is running. All access goes through a lock,
    and snapshot() hands each cycle its own copy.
"""

import math
import threading
from typing import Dict, Mapping, Optional

from core.logging import get_logger


DEFAULT_RATES: Dict[str, float] = {"USD": 1.0}

logger = get_logger(__name__)


def _normalize_code(currency: str) -> str:
    return currency.strip().upper()


class ExchangeRateTable:
    """
    Thread-safe mapping of currency code to rate (foreign units per USD).

    Example:
        >>> table = ExchangeRateTable()
        >>> table.update({"EUR": 0.9, "GBP": 0.79})
        >>> round(table.to_usd(100, "EUR"), 2)
        111.11
        >>> table.to_usd(100, "JPY")  # unknown currency -> rate 1
        100.0
    """

    def __init__(self, rates: Optional[Mapping[str, float]] = None):
        self._lock = threading.Lock()
        self._rates: Dict[str, float] = dict(DEFAULT_RATES)
        if rates:
            self.update(rates)

    def update(self, rates: Mapping[str, float]) -> None:
        """
        Merge rates into the table, overwriting existing entries.

        The update is all-or-nothing: if any rate is invalid, nothing is
        applied.

        Args:
            rates: Mapping of currency code to rate (foreign units per USD)

        Raises:
            ValueError: If a code is empty or a rate is not a finite number > 0
        """
        validated: Dict[str, float] = {}
        for currency, rate in rates.items():
            code = _normalize_code(currency)
            if not code:
                raise ValueError("Currency code cannot be empty")
            try:
                value = float(rate)
            except (TypeError, ValueError):
                raise ValueError(f"Rate for {code} must be a number, got {rate!r}")
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"Rate for {code} must be a finite number > 0, got {rate!r}")
            validated[code] = value

        with self._lock:
            self._rates.update(validated)

        if validated:
            logger.debug(f"Exchange rates updated: {validated}")

    def rate(self, currency: str) -> float:
        """Rate for `currency`, or 1.0 when the table has no entry."""
        with self._lock:
            return self._rates.get(_normalize_code(currency), 1.0)

    def has_rate(self, currency: str) -> bool:
        with self._lock:
            return _normalize_code(currency) in self._rates

    def to_usd(self, price: float, currency: str) -> float:
        """Convert `price` expressed in `currency` to USD."""
        return price / self.rate(currency)

    def snapshot(self) -> "ExchangeRateTable":
        """Independent copy; later updates to this table do not affect it."""
        with self._lock:
            rates = dict(self._rates)
        copy = ExchangeRateTable()
        copy._rates = rates
        return copy

    def as_dict(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._rates)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rates)

    def __repr__(self) -> str:
        return f"<ExchangeRateTable(currencies={sorted(self.as_dict())})>"
