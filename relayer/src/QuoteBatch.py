"""QuoteBatch: Raw oracle quotes and the canonical relay payload.

.. code-block:: python

    >>> batch = QuoteBatch(["BTC"], [42000], [1700000000000000000], [7])
    >>> len(batch)
    1
    >>> batch.as_args()
    (['BTC'], [42000], [1700000000000000000], [7])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

Rate = int | float


@dataclass(frozen=True)
class RawQuote:
    """One entry of the oracle ``result`` list, fields kept as strings.

    :ivar symbol: Asset symbol (e.g., "BTC").
    :ivar multiplier: Fixed-point scale the oracle used, as a string.
    :ivar px: Price as a numeric string.
    :ivar request_id: Oracle request id as an integer string.
    :ivar resolve_time: Resolve time in Unix seconds as an integer string.
    """

    symbol: str
    multiplier: str
    px: str
    request_id: str
    resolve_time: str

    FIELDS = ("symbol", "multiplier", "px", "request_id", "resolve_time")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawQuote:
        """Build a RawQuote from one decoded JSON object.

        JSON numbers are converted to their string form.

        :param data: Dict holding every field in ``FIELDS``.
        :returns: New RawQuote instance.
        :raises KeyError: If a field is missing.
        """
        return cls(**{name: str(data[name]) for name in cls.FIELDS})


@dataclass
class QuoteBatch:
    """Index-aligned quote sequences submitted in one transaction.

    Entry ``i`` of every sequence describes the same quote.

    :ivar symbols: Asset symbols.
    :ivar rates: Prices, unscaled.
    :ivar resolve_times: Resolve times in nanoseconds since the epoch.
    :ivar request_ids: Oracle request ids.
    """

    symbols: list[str] = field(default_factory=list)
    rates: list[Rate] = field(default_factory=list)
    resolve_times: list[int] = field(default_factory=list)
    request_ids: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        lengths = {
            len(self.symbols),
            len(self.rates),
            len(self.resolve_times),
            len(self.request_ids),
        }
        if len(lengths) != 1:
            raise ValueError(
                "QuoteBatch sequences must have equal length: "
                f"symbols={len(self.symbols)}, rates={len(self.rates)}, "
                f"resolve_times={len(self.resolve_times)}, "
                f"request_ids={len(self.request_ids)}"
            )

    def __len__(self) -> int:
        return len(self.symbols)

    def as_args(self) -> tuple[list[str], list[Rate], list[int], list[int]]:
        """Return the sequences in relay contract argument order."""
        return (self.symbols, self.rates, self.resolve_times, self.request_ids)

    def describe(self) -> str:
        """Return a one-line summary like ``BTC=42000.5@7, ETH=2200@8``."""
        return ", ".join(
            f"{symbol}={rate}@{request_id}"
            for symbol, rate, request_id in zip(
                self.symbols, self.rates, self.request_ids
            )
        )


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a successful relay submission.

    :ivar status: Submission status ("success").
    :ivar transaction_ref: Transaction hash as a hex string.
    :ivar block_number: Block the transaction was included in.
    :ivar gas_used: Gas consumed by the transaction.
    """

    status: str
    transaction_ref: str
    block_number: int | None = None
    gas_used: int | None = None
