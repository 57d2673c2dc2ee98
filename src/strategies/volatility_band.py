"""Rolling-window volatility band used to suppress buys on spikes."""

from __future__ import annotations

from collections import deque
from decimal import Decimal


class VolatilityBand:
    """Mean +/- k standard deviations over the last ``period`` prices.

    Every statistic is ``None`` until exactly ``period`` samples are held.
    The spread is the population standard deviation.
    """

    def __init__(self, period: int, multiplier: Decimal = Decimal("2")) -> None:
        if period <= 0:
            raise ValueError("period must be positive")
        self.period = period
        self.multiplier = Decimal(str(multiplier))
        self._prices: deque[Decimal] = deque(maxlen=period)

    def observe(self, price: Decimal) -> None:
        self._prices.append(Decimal(str(price)))

    @property
    def ready(self) -> bool:
        return len(self._prices) == self.period

    def __len__(self) -> int:
        return len(self._prices)

    def mean(self) -> Decimal | None:
        if not self.ready:
            return None
        return sum(self._prices, Decimal("0")) / Decimal(self.period)

    def spread(self) -> Decimal | None:
        mean = self.mean()
        if mean is None:
            return None
        variance = sum(((p - mean) ** 2 for p in self._prices), Decimal("0")) / Decimal(
            self.period
        )
        return variance.sqrt()

    def upper_band(self) -> Decimal | None:
        mean = self.mean()
        if mean is None:
            return None
        return mean + self.multiplier * self.spread()

    def lower_band(self) -> Decimal | None:
        mean = self.mean()
        if mean is None:
            return None
        return mean - self.multiplier * self.spread()
