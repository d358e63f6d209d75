"""PriceNormalizer: Convert raw oracle quotes into a QuoteBatch.

The oracle reports every price with a fixed-point multiplier of 1e9 and
resolve times in Unix seconds. The relay contract expects resolve times in
nanoseconds, so the seconds value is widened by appending nine zero digits.
Python integers are exact, so no precision is lost for large epochs.

.. code-block:: python

    >>> quote = RawQuote("BTC", "1000000000", "42000.5", "7", "1700000000")
    >>> normalize([quote])
    QuoteBatch(symbols=['BTC'], rates=[42000.5], resolve_times=[1700000000000000000], request_ids=[7])
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

from .errors import ParseError, SchemaViolation
from .QuoteBatch import QuoteBatch, Rate, RawQuote

logger = logging.getLogger(__name__)

# Fixed-point scale used by the oracle for every price.
E9 = 1_000_000_000

# Digits appended to a seconds timestamp to express it in nanoseconds.
NANOSECOND_DIGITS = "0" * 9

# Digits of the largest uint64, the widest integer field the contract stores.
MAX_UINT_DIGITS = 20


def parse_rate(symbol: str, px: str) -> Rate:
    """Parse an oracle price without rescaling it.

    Integral prices stay exact ints; fractional prices become floats.

    :param symbol: Symbol the price belongs to (for error messages).
    :param px: Price string.
    :returns: Parsed price.
    :raises ParseError: If the price is not a finite non-negative number.
    """
    text = px.strip()
    if not text.isascii() or "_" in text:
        raise ParseError(f"{symbol}: invalid price {px!r}")
    try:
        rate: Rate = int(text)
    except ValueError:
        try:
            rate = float(text)
        except ValueError:
            raise ParseError(f"{symbol}: invalid price {px!r}") from None
        if not math.isfinite(rate):
            raise ParseError(f"{symbol}: non-finite price {px!r}")
    if rate < 0:
        raise ParseError(f"{symbol}: negative price {px!r}")
    return rate


def _parse_uint(symbol: str, name: str, value: str) -> str:
    text = value.strip()
    if not text.isascii() or not text.isdigit():
        raise ParseError(f"{symbol}: invalid {name} {value!r}")
    if len(text) > MAX_UINT_DIGITS:
        raise ParseError(f"{symbol}: {name} {text[:24]}... exceeds {MAX_UINT_DIGITS} digits")
    return text


def widen_resolve_time(symbol: str, resolve_time: str) -> int:
    """Convert a resolve time in seconds to nanoseconds.

    :param symbol: Symbol the quote belongs to (for error messages).
    :param resolve_time: Unix seconds as a decimal integer string.
    :returns: Unix nanoseconds.
    :raises ParseError: If the value is not a non-negative integer.
    """
    return int(_parse_uint(symbol, "resolve_time", resolve_time) + NANOSECOND_DIGITS)


def normalize(raw_quotes: Sequence[RawQuote], scale: int = E9) -> QuoteBatch:
    """Build a QuoteBatch from raw oracle quotes.

    Quotes keep the order in which the oracle returned them. The batch is
    only returned once every quote has been validated; any failure rejects
    the whole batch.

    :param raw_quotes: Quotes from the oracle response.
    :param scale: Expected multiplier of every quote.
    :returns: Index-aligned QuoteBatch with one entry per quote.
    :raises SchemaViolation: If any quote's multiplier differs from scale.
    :raises ParseError: If any numeric field cannot be parsed.
    """
    expected = str(scale)
    symbols: list[str] = []
    rates: list[Rate] = []
    resolve_times: list[int] = []
    request_ids: list[int] = []

    # A wrong multiplier rejects the batch even if other fields are unparsable
    for quote in raw_quotes:
        if quote.multiplier.strip() != expected:
            raise SchemaViolation(
                f"{quote.symbol}: multiplier {quote.multiplier} is not equal {expected}"
            )

    for quote in raw_quotes:
        symbols.append(quote.symbol)
        rates.append(parse_rate(quote.symbol, quote.px))
        resolve_times.append(widen_resolve_time(quote.symbol, quote.resolve_time))
        request_ids.append(int(_parse_uint(quote.symbol, "request_id", quote.request_id)))

    logger.debug(f"Normalized {len(symbols)} quotes: {symbols}")
    return QuoteBatch(symbols, rates, resolve_times, request_ids)
