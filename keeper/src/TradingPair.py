"""TradingPair: The asset pair whose price rounds are played on.

.. code-block:: python

    >>> pair = TradingPair.from_string("ETH/USD")
    >>> str(pair)
    'eth/usd'
    >>> pair.symbol("-")
    'ETH-USD'
"""

from __future__ import annotations


class TradingPair:
    """A base/quote pair such as eth/usd.

    :ivar base: Base currency symbol (lowercase).
    :ivar quote: Quote currency symbol (lowercase).
    """

    def __init__(self, base: str, quote: str) -> None:
        """Initialize a trading pair.

        :param base: Base currency symbol (e.g., "eth", "btc").
        :param quote: Quote currency symbol (e.g., "usd").
        :raises ValueError: If either symbol is empty.
        """
        if not base.strip() or not quote.strip():
            raise ValueError(f"Invalid pair symbols: {base!r}/{quote!r}")
        self.base = base.strip().lower()
        self.quote = quote.strip().lower()

    def __str__(self) -> str:
        return f"{self.base}/{self.quote}"

    def __repr__(self) -> str:
        return f"TradingPair({self.base!r}, {self.quote!r})"

    def __hash__(self) -> int:
        return hash(str(self))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TradingPair):
            return NotImplemented
        return str(self) == str(other)

    def symbol(self, separator: str = "") -> str:
        """Return the upper-case exchange symbol, e.g. ``ETH-USD``.

        :param separator: String placed between base and quote.
        """
        return f"{self.base.upper()}{separator}{self.quote.upper()}"

    @classmethod
    def from_string(cls, pair_str: str) -> TradingPair:
        """Parse a pair string in format "base/quote".

        :param pair_str: Pair string like "eth/usd".
        :returns: New TradingPair instance.
        :raises ValueError: If pair string format is invalid.
        """
        parts = pair_str.lower().split("/")
        if len(parts) != 2:
            raise ValueError(
                f"Invalid pair format '{pair_str}'. Expected 'base/quote' (e.g., 'eth/usd')"
            )
        return cls(parts[0], parts[1])
